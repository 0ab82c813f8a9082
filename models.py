from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from database import Base
from timer_utils import utcnow
import uuid


def new_id():
    return str(uuid.uuid4())


class Boss(Base):
    __tablename__ = "bosses"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, index=True)
    level = Column(Integer, nullable=False)
    location = Column(String, nullable=False)

    # respawn interval, fractional hours allowed (e.g. 2.5)
    respawn_time_hours = Column(Float, nullable=False)

    # only ever changed by an explicit kill / revive
    is_alive = Column(Boolean, nullable=False, default=True)
    last_killed_at = Column(DateTime, nullable=True)
    last_killed_by = Column(String, nullable=True)

    icon_type = Column(String, nullable=False, default="dragon")
    icon_color = Column(String, nullable=False, default="red")
    image_url = Column(String, nullable=True)


class Member(Base):
    __tablename__ = "members"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, unique=True, index=True)

    # bcrypt hash, never serialized
    password = Column(String, nullable=False)

    level = Column(Integer, nullable=False)
    character_class = Column(String, nullable=False)
    power = Column(Float, nullable=False)
    dkp = Column(Integer, nullable=False, default=0)
    role = Column(String, nullable=False, default="Member")
    status = Column(String, nullable=False, default="offline")
    joined_at = Column(DateTime, nullable=False, default=utcnow)


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(String, nullable=False)
    description = Column(String, nullable=False)

    # plain columns: may point at a boss / member that was deleted since
    boss_id = Column(String(36), nullable=True, index=True)
    member_id = Column(String(36), nullable=True, index=True)

    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
