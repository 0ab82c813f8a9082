"""Persistence for bosses, members, activities and notifications.

``Storage`` is the interface the services talk to. ``MemoryStorage`` keeps
everything in dicts for the lifetime of the process (tests, local demos);
``DatabaseStorage`` goes through a SQLAlchemy session. Both hand back the
ORM classes from ``models`` so callers never care which one is behind them.

Each write is its own unit of work: nothing here spans two writes.
"""
import abc
import logging
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
from timer_utils import utcnow

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The backing store failed; the operation did not happen."""

    def __init__(self, operation, original=None):
        super().__init__(f"{operation} failed")
        self.operation = operation
        self.original = original


def _by_name(record):
    return (record.name.lower(), record.name)


class Storage(abc.ABC):
    # --- bosses ---
    @abc.abstractmethod
    def list_bosses(self):
        """All bosses, name ascending."""

    @abc.abstractmethod
    def get_boss(self, boss_id):
        """The boss or None."""

    @abc.abstractmethod
    def has_bosses(self):
        ...

    @abc.abstractmethod
    def add_boss(self, boss):
        ...

    @abc.abstractmethod
    def update_boss(self, boss_id, fields):
        """Apply ``fields`` and return the updated boss, or None if missing."""

    @abc.abstractmethod
    def delete_boss(self, boss_id):
        """True if a row was removed."""

    # --- members ---
    @abc.abstractmethod
    def list_members(self):
        ...

    @abc.abstractmethod
    def get_member(self, member_id):
        ...

    @abc.abstractmethod
    def get_member_by_name(self, name, ignore_case=False):
        ...

    @abc.abstractmethod
    def add_member(self, member):
        ...

    @abc.abstractmethod
    def update_member(self, member_id, fields):
        ...

    @abc.abstractmethod
    def delete_member(self, member_id):
        ...

    # --- activities ---
    @abc.abstractmethod
    def list_activities(self, limit=None):
        """Newest first, optionally capped."""

    @abc.abstractmethod
    def add_activity(self, activity):
        ...

    # --- notifications ---
    @abc.abstractmethod
    def get_active_notification(self):
        ...

    @abc.abstractmethod
    def add_notification(self, notification):
        ...

    @abc.abstractmethod
    def deactivate_notifications(self):
        ...


class MemoryStorage(Storage):
    """Dict-backed store. Lost on restart."""

    def __init__(self):
        self._bosses = {}
        self._members = {}
        self._activities = []
        self._notifications = []

    @staticmethod
    def _stamp(record, **defaults):
        if record.id is None:
            record.id = models.new_id()
        for key, value in defaults.items():
            if getattr(record, key) is None:
                setattr(record, key, value)
        return record

    @staticmethod
    def _apply(record, fields):
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    # --- bosses ---
    def list_bosses(self):
        return sorted(self._bosses.values(), key=_by_name)

    def get_boss(self, boss_id):
        return self._bosses.get(boss_id)

    def has_bosses(self):
        return bool(self._bosses)

    def add_boss(self, boss):
        self._stamp(boss)
        self._bosses[boss.id] = boss
        return boss

    def update_boss(self, boss_id, fields):
        boss = self._bosses.get(boss_id)
        if boss is None:
            return None
        return self._apply(boss, fields)

    def delete_boss(self, boss_id):
        return self._bosses.pop(boss_id, None) is not None

    # --- members ---
    def list_members(self):
        return sorted(self._members.values(), key=_by_name)

    def get_member(self, member_id):
        return self._members.get(member_id)

    def get_member_by_name(self, name, ignore_case=False):
        for member in self._members.values():
            if member.name == name or (ignore_case and member.name.lower() == name.lower()):
                return member
        return None

    def add_member(self, member):
        self._stamp(member, joined_at=utcnow())
        self._members[member.id] = member
        return member

    def update_member(self, member_id, fields):
        member = self._members.get(member_id)
        if member is None:
            return None
        return self._apply(member, fields)

    def delete_member(self, member_id):
        return self._members.pop(member_id, None) is not None

    # --- activities ---
    def list_activities(self, limit=None):
        # newest insert wins ties on equal timestamps
        ordered = sorted(reversed(self._activities), key=lambda a: a.timestamp, reverse=True)
        return ordered[:limit] if limit is not None else ordered

    def add_activity(self, activity):
        self._stamp(activity, timestamp=utcnow())
        self._activities.append(activity)
        return activity

    # --- notifications ---
    def get_active_notification(self):
        active = [n for n in reversed(self._notifications) if n.is_active]
        if not active:
            return None
        return max(active, key=lambda n: n.created_at)

    def add_notification(self, notification):
        self._stamp(notification, created_at=utcnow(), is_active=True)
        self._notifications.append(notification)
        return notification

    def deactivate_notifications(self):
        for notification in self._notifications:
            notification.is_active = False


class DatabaseStorage(Storage):
    """SQLAlchemy-backed store bound to one session (one request)."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("%s failed: %s", operation, exc)
            raise PersistenceError(operation, exc) from exc

    def _insert(self, record, operation):
        with self._guard(operation):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        return record

    def _patch(self, model, record_id, fields, operation):
        with self._guard(operation):
            record = self.db.get(model, record_id)
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            self.db.commit()
            self.db.refresh(record)
        return record

    def _remove(self, model, record_id, operation):
        with self._guard(operation):
            record = self.db.get(model, record_id)
            if record is None:
                return False
            self.db.delete(record)
            self.db.commit()
        return True

    # --- bosses ---
    def list_bosses(self):
        with self._guard("list bosses"):
            return (
                self.db.query(models.Boss)
                .order_by(func.lower(models.Boss.name), models.Boss.name)
                .all()
            )

    def get_boss(self, boss_id):
        with self._guard("get boss"):
            return self.db.get(models.Boss, boss_id)

    def has_bosses(self):
        with self._guard("count bosses"):
            return self.db.query(models.Boss.id).first() is not None

    def add_boss(self, boss):
        return self._insert(boss, "create boss")

    def update_boss(self, boss_id, fields):
        return self._patch(models.Boss, boss_id, fields, "update boss")

    def delete_boss(self, boss_id):
        return self._remove(models.Boss, boss_id, "delete boss")

    # --- members ---
    def list_members(self):
        with self._guard("list members"):
            return (
                self.db.query(models.Member)
                .order_by(func.lower(models.Member.name), models.Member.name)
                .all()
            )

    def get_member(self, member_id):
        with self._guard("get member"):
            return self.db.get(models.Member, member_id)

    def get_member_by_name(self, name, ignore_case=False):
        with self._guard("get member"):
            query = self.db.query(models.Member)
            if ignore_case:
                query = query.filter(func.lower(models.Member.name) == name.lower())
            else:
                query = query.filter(models.Member.name == name)
            return query.first()

    def add_member(self, member):
        return self._insert(member, "create member")

    def update_member(self, member_id, fields):
        return self._patch(models.Member, member_id, fields, "update member")

    def delete_member(self, member_id):
        return self._remove(models.Member, member_id, "delete member")

    # --- activities ---
    def list_activities(self, limit=None):
        with self._guard("list activities"):
            query = self.db.query(models.Activity).order_by(models.Activity.timestamp.desc())
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def add_activity(self, activity):
        return self._insert(activity, "record activity")

    # --- notifications ---
    def get_active_notification(self):
        with self._guard("get notification"):
            return (
                self.db.query(models.Notification)
                .filter(models.Notification.is_active.is_(True))
                .order_by(models.Notification.created_at.desc())
                .first()
            )

    def add_notification(self, notification):
        return self._insert(notification, "create notification")

    def deactivate_notifications(self):
        with self._guard("clear notifications"):
            (
                self.db.query(models.Notification)
                .filter(models.Notification.is_active.is_(True))
                .update({models.Notification.is_active: False}, synchronize_session=False)
            )
            self.db.commit()
