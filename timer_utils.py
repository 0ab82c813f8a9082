"""Respawn timer arithmetic.

Everything here is pure: callers pass ``now`` (naive UTC) or get the
current time. Remaining time is in milliseconds so the numbers line up
with what the browser shows.
"""
from datetime import datetime, timedelta, timezone

import game_config

HOUR_MS = 3_600_000
_ONE_MS = timedelta(milliseconds=1)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def time_remaining_ms(last_killed_at, respawn_time_hours, now=None):
    """Milliseconds until respawn, never negative. 0 when never killed."""
    if last_killed_at is None:
        return 0
    now = _naive_utc(now or utcnow())
    respawn_at = _naive_utc(last_killed_at) + timedelta(hours=respawn_time_hours)
    return max(0, (respawn_at - now) // _ONE_MS)


def progress_percent(last_killed_at, respawn_time_hours, now=None):
    """Share of the respawn interval already elapsed, clamped to [0, 100]."""
    if last_killed_at is None:
        return 0.0
    total = timedelta(hours=respawn_time_hours)
    if total <= timedelta(0):
        return 100.0
    now = _naive_utc(now or utcnow())
    elapsed = now - _naive_utc(last_killed_at)
    if elapsed >= total:
        return 100.0
    return max(0.0, min(100.0, elapsed / total * 100))


def effective_alive(boss, now=None):
    # stored flag OR timer ran out; the stored flag is left untouched
    return bool(boss.is_alive) or time_remaining_ms(
        boss.last_killed_at, boss.respawn_time_hours, now
    ) <= 0


def is_upcoming(boss, now=None):
    if boss.is_alive:
        return False
    remaining = time_remaining_ms(boss.last_killed_at, boss.respawn_time_hours, now)
    return 0 < remaining < game_config.UPCOMING_WINDOW_MINUTES * 60_000


def status_band(boss, now=None):
    if effective_alive(boss, now):
        return "alive"
    remaining = time_remaining_ms(boss.last_killed_at, boss.respawn_time_hours, now)
    if remaining <= game_config.SPAWNING_SOON_MINUTES * 60_000:
        return "soon"
    return "dead"


def format_time_remaining(milliseconds):
    """HH:MM:SS, hours keep growing past 24."""
    if milliseconds <= 0:
        return "00:00:00"
    total_seconds = int(milliseconds // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_relative_time(timestamp, now=None):
    now = _naive_utc(now or utcnow())
    diff = now - _naive_utc(timestamp)
    minutes = int(diff.total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day{'' if days == 1 else 's'} ago"
    if hours > 0:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    if minutes > 0:
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
    return "Just now"
