"""Boss lifecycle, activity log, notifications and roster bookkeeping.

All state lives in a ``storage.Storage``; the services only decide what
to write and which activity entry goes with it. The primary write always
happens first. If the activity append that follows fails, the primary
write stands and the failure is logged.
"""
import logging

import game_config
import models
import schemas
import timer_utils
from security import hash_password, verify_password
from settings import get_settings
from storage import PersistenceError

logger = logging.getLogger(__name__)

# fields that may be cleared with an explicit null
NULLABLE_BOSS_FIELDS = ("image_url",)


class ValidationFailure(Exception):
    """Payload is well-formed but conflicts with stored data."""


class ActivityLog:
    def __init__(self, storage, clock=timer_utils.utcnow):
        self.storage = storage
        self.clock = clock

    def record(self, type, description, boss_id=None, member_id=None):
        activity = models.Activity(
            type=type,
            description=description,
            boss_id=boss_id,
            member_id=member_id,
            timestamp=self.clock(),
        )
        return self.storage.add_activity(activity)

    def record_side_effect(self, type, description, boss_id=None, member_id=None):
        """Like ``record`` but never fails the caller's operation."""
        try:
            return self.record(type, description, boss_id=boss_id, member_id=member_id)
        except PersistenceError:
            logger.exception("Could not record %s activity: %s", type, description)
            return None

    def list(self, limit=None):
        return self.storage.list_activities(limit)


class BossService:
    def __init__(self, storage, activity_log=None, clock=timer_utils.utcnow):
        self.storage = storage
        self.clock = clock
        self.activity = activity_log or ActivityLog(storage, clock)

    def list(self):
        return self.storage.list_bosses()

    def get(self, boss_id):
        return self.storage.get_boss(boss_id)

    def _build(self, payload: schemas.BossCreate):
        data = payload.model_dump()
        return models.Boss(
            last_killed_at=None,
            last_killed_by=None,
            **data,
        )

    def create(self, payload: schemas.BossCreate):
        boss = self.storage.add_boss(self._build(payload))
        logger.info("Boss %s (%s) added", boss.name, boss.id)
        self.activity.record_side_effect(
            game_config.BOSS_ADDED,
            f"{boss.name} added to boss list",
            boss_id=boss.id,
        )
        return boss

    def create_many(self, payloads):
        # every payload is already schema-validated at this point
        return [self.create(payload) for payload in payloads]

    def seed_defaults(self):
        """Insert the default roster into an empty store. No activity."""
        if self.storage.has_bosses():
            return []
        created = []
        for defaults in game_config.default_bosses():
            created.append(self.storage.add_boss(self._build(schemas.BossCreate(**defaults))))
        logger.info("Seeded %d default bosses", len(created))
        return created

    def update(self, boss_id, payload: schemas.BossUpdate):
        boss = self.storage.get_boss(boss_id)
        if boss is None:
            return None

        fields = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_BOSS_FIELDS
        }
        changed = {key: value for key, value in fields.items() if getattr(boss, key) != value}
        if not changed:
            return boss

        updated = self.storage.update_boss(boss_id, changed)
        if updated is None:
            return None
        self.activity.record_side_effect(
            game_config.BOSS_UPDATED,
            f"{updated.name} updated ({', '.join(sorted(changed))})",
            boss_id=boss_id,
        )
        return updated

    def kill(self, boss_id, killed_by=None):
        """Start (or restart) the respawn timer. Valid from any state."""
        killed_by = (killed_by or "").strip() or None
        updated = self.storage.update_boss(
            boss_id,
            {
                "is_alive": False,
                "last_killed_at": self.clock(),
                "last_killed_by": killed_by,
            },
        )
        if updated is None:
            return None

        if killed_by:
            description = f"{updated.name} has been killed by {killed_by}"
        else:
            description = f"{updated.name} has been killed"
        logger.info("Boss %s killed (by %s)", updated.id, killed_by or "unknown")
        self.activity.record_side_effect(game_config.BOSS_KILLED, description, boss_id=boss_id)
        return updated

    def revive(self, boss_id):
        """Undo a kill: back to alive with no timer."""
        updated = self.storage.update_boss(
            boss_id,
            {"is_alive": True, "last_killed_at": None, "last_killed_by": None},
        )
        if updated is None:
            return None

        self.activity.record_side_effect(
            game_config.BOSS_SPAWNED,
            f"{updated.name} was revived (kill undone)",
            boss_id=boss_id,
        )
        return updated

    def delete(self, boss_id):
        boss = self.storage.get_boss(boss_id)
        if boss is None:
            return False
        name = boss.name
        if not self.storage.delete_boss(boss_id):
            return False

        logger.info("Boss %s (%s) deleted", name, boss_id)
        self.activity.record_side_effect(
            game_config.BOSS_DELETED,
            f"{name} removed from boss list",
            boss_id=boss_id,
        )
        return True


def boss_timer(boss, now=None):
    """Boss with its timer fields derived as of ``now``."""
    now = now or timer_utils.utcnow()
    remaining = timer_utils.time_remaining_ms(boss.last_killed_at, boss.respawn_time_hours, now)
    base = schemas.BossRead.model_validate(boss)
    return schemas.BossTimer(
        **base.model_dump(),
        effective_alive=timer_utils.effective_alive(boss, now),
        status=timer_utils.status_band(boss, now),
        time_remaining_ms=remaining,
        time_remaining=timer_utils.format_time_remaining(remaining),
        progress_percent=timer_utils.progress_percent(
            boss.last_killed_at, boss.respawn_time_hours, now
        ),
    )


def dashboard_summary(bosses, members, now=None):
    now = now or timer_utils.utcnow()
    soon_ms = game_config.SPAWNING_SOON_MINUTES * 60_000
    timers = [b for b in bosses if not b.is_alive]

    return schemas.DashboardSummary(
        total_bosses=len(bosses),
        bosses_alive=sum(1 for b in bosses if timer_utils.effective_alive(b, now)),
        active_timers=len(timers),
        upcoming_spawns=sum(1 for b in timers if timer_utils.is_upcoming(b, now)),
        spawning_soon=sum(
            1
            for b in timers
            if 0 < timer_utils.time_remaining_ms(b.last_killed_at, b.respawn_time_hours, now) <= soon_ms
        ),
        total_members=len(members),
        members_online=sum(1 for m in members if m.status == "online"),
    )


class NotificationBoard:
    """Single active broadcast; publishing replaces whatever was up."""

    def __init__(self, storage, clock=timer_utils.utcnow):
        self.storage = storage
        self.clock = clock

    def publish(self, payload: schemas.NotificationCreate):
        if self.storage.get_member(payload.created_by) is None:
            raise ValidationFailure("Unknown notification author")

        self.storage.deactivate_notifications()
        notification = models.Notification(
            title=payload.title,
            message=payload.message,
            created_by=payload.created_by,
            created_at=self.clock(),
            is_active=True,
        )
        return self.storage.add_notification(notification)

    def get_active(self):
        return self.storage.get_active_notification()

    def clear(self):
        self.storage.deactivate_notifications()


class MemberService:
    def __init__(self, storage, activity_log=None, clock=timer_utils.utcnow, settings=None):
        self.storage = storage
        self.clock = clock
        self.settings = settings or get_settings()
        self.activity = activity_log or ActivityLog(storage, clock)

    def is_admin(self, member):
        return member.name == self.settings.admin_name

    def capabilities(self, member):
        admin = self.is_admin(member)
        return {
            "is_admin": admin,
            "is_leader": not admin and member.role in game_config.LEADER_ROLES,
        }

    def list(self):
        # the admin account never shows up on the roster
        return [m for m in self.storage.list_members() if not self.is_admin(m)]

    def get(self, member_id):
        return self.storage.get_member(member_id)

    def _ensure_name_free(self, name, member_id=None):
        # only ensure_admin may create the admin account
        if name.strip().lower() == self.settings.admin_name.lower():
            raise ValidationFailure(f"Member name {name!r} is reserved")
        existing = self.storage.get_member_by_name(name, ignore_case=True)
        if existing is not None and existing.id != member_id:
            raise ValidationFailure(f"Member name {name!r} is already taken")

    def register(self, payload: schemas.MemberCreate):
        self._ensure_name_free(payload.name)

        data = payload.model_dump()
        data["password"] = hash_password(payload.password)
        member = self.storage.add_member(models.Member(joined_at=self.clock(), **data))

        logger.info("Member %s joined", member.name)
        self.activity.record_side_effect(
            game_config.MEMBER_JOINED,
            f"{member.name} joined the legion",
            member_id=member.id,
        )
        return member

    def ensure_admin(self, password):
        existing = self.storage.get_member_by_name(self.settings.admin_name, ignore_case=True)
        if existing is not None:
            if existing.name != self.settings.admin_name:
                logger.warning("Admin name %s is held by member %s", self.settings.admin_name, existing.id)
            return None
        admin = models.Member(
            name=self.settings.admin_name,
            password=hash_password(password),
            level=1,
            character_class=game_config.CHARACTER_CLASSES[0],
            power=0.0,
            dkp=0,
            role=game_config.ROLE_LEADER,
            status="offline",
            joined_at=self.clock(),
        )
        logger.info("Created admin account %s", admin.name)
        return self.storage.add_member(admin)

    def authenticate(self, name, password):
        member = self.storage.get_member_by_name(name.strip(), ignore_case=True)
        if member is None or not verify_password(password, member.password):
            return None
        return member

    def self_update(self, name, payload: schemas.MemberSelfUpdate):
        member = self.storage.get_member_by_name(name)
        if member is None:
            return None
        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        if not fields:
            return member
        return self.storage.update_member(member.id, fields)

    def update(self, member_id, payload: schemas.MemberUpdate):
        member = self.storage.get_member(member_id)
        if member is None:
            return None

        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in fields and fields["name"] != member.name:
            self._ensure_name_free(fields["name"], member_id)
        if "password" in fields:
            fields["password"] = hash_password(fields["password"])
        if not fields:
            return member

        old_dkp = member.dkp
        updated = self.storage.update_member(member_id, fields)
        if updated is None:
            return None

        if "dkp" in fields and fields["dkp"] != old_dkp:
            delta = fields["dkp"] - old_dkp
            self.activity.record_side_effect(
                game_config.DKP_CHANGE,
                f"{updated.name} DKP {old_dkp} -> {updated.dkp} ({delta:+d})",
                member_id=member_id,
            )
        return updated

    def delete(self, member_id):
        member = self.storage.get_member(member_id)
        if member is None:
            return False
        name = member.name
        if not self.storage.delete_member(member_id):
            return False

        logger.info("Member %s left", name)
        self.activity.record_side_effect(
            game_config.MEMBER_LEFT,
            f"{name} left the legion",
            member_id=member_id,
        )
        return True
