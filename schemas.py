from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

import game_config

CharacterClass = Literal["ARCHER", "WARRIOR", "MAGE"]
Role = Literal["Member", "Vice-Leader", "Leader"]
MemberStatus = Literal["online", "offline", "away"]


# --- Bosses ---

class BossCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    level: int = Field(ge=1, le=999)
    location: str = Field(min_length=1, max_length=120)
    respawn_time_hours: float = Field(gt=0, le=24 * 30)
    is_alive: bool = True
    icon_type: str = game_config.DEFAULT_ICON_TYPE
    icon_color: str = game_config.DEFAULT_ICON_COLOR
    image_url: Optional[str] = None


class BossBatchCreate(BaseModel):
    bosses: List[BossCreate] = Field(min_length=1)


class BossUpdate(BaseModel):
    # kill / revive own the timer fields; they are not patchable here
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    level: Optional[int] = Field(default=None, ge=1, le=999)
    location: Optional[str] = Field(default=None, min_length=1, max_length=120)
    respawn_time_hours: Optional[float] = Field(default=None, gt=0, le=24 * 30)
    icon_type: Optional[str] = None
    icon_color: Optional[str] = None
    image_url: Optional[str] = None


class BossKill(BaseModel):
    killed_by: Optional[str] = Field(default=None, max_length=80)


class BossRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    level: int
    location: str
    respawn_time_hours: float
    is_alive: bool
    last_killed_at: Optional[datetime] = None
    last_killed_by: Optional[str] = None
    icon_type: str
    icon_color: str
    image_url: Optional[str] = None


class BossTimer(BossRead):
    """A boss plus its timer as of the moment it was read."""

    effective_alive: bool
    status: Literal["alive", "soon", "dead"]
    time_remaining_ms: int
    time_remaining: str
    progress_percent: float


class DashboardSummary(BaseModel):
    total_bosses: int
    bosses_alive: int
    active_timers: int
    upcoming_spawns: int
    spawning_soon: int
    total_members: int
    members_online: int


# --- Members ---

class MemberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    password: str = Field(min_length=4, max_length=128)
    level: int = Field(ge=1, le=999)
    character_class: CharacterClass
    power: float = Field(ge=0)
    dkp: int = 0
    role: Role = game_config.ROLE_MEMBER
    status: MemberStatus = "offline"


class MemberSelfUpdate(BaseModel):
    level: Optional[int] = Field(default=None, ge=1, le=999)
    power: Optional[float] = Field(default=None, ge=0)


class MemberUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=40)
    password: Optional[str] = Field(default=None, min_length=4, max_length=128)
    level: Optional[int] = Field(default=None, ge=1, le=999)
    character_class: Optional[CharacterClass] = None
    power: Optional[float] = Field(default=None, ge=0)
    dkp: Optional[int] = None
    role: Optional[Role] = None
    status: Optional[MemberStatus] = None


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    level: int
    character_class: str
    power: float
    dkp: int
    role: str
    status: str
    joined_at: datetime


class LoginRequest(BaseModel):
    name: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(MemberRead):
    is_leader: bool
    is_admin: bool


# --- Activities ---

class ActivityCreate(BaseModel):
    type: str = Field(min_length=1, max_length=40)
    description: str = Field(min_length=1)
    boss_id: Optional[str] = None
    member_id: Optional[str] = None


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    description: str
    boss_id: Optional[str] = None
    member_id: Optional[str] = None
    timestamp: datetime
    time_ago: Optional[str] = None


# --- Notifications ---

class NotificationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    message: str = Field(min_length=1)
    created_by: str


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    message: str
    created_by: str
    created_at: datetime
    is_active: bool
