"""Human-readable package age and the staleness rule."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from rabbithole.models import UNKNOWN_AGE

# No release in two years means the package is stale. Not configurable.
STALE_THRESHOLD = timedelta(days=2 * 365)

DAYS_PER_MONTH = 30


def parse_timestamp(date_str: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the registry.

    Accepts a trailing "Z". Naive timestamps are taken as UTC. Returns None for
    empty or unparseable input.
    """
    if not date_str:
        return None
    text = date_str.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''} ago"


def describe_elapsed(elapsed: timedelta) -> str:
    """Render an elapsed duration as "N days ago", "N months ago" or "Yy Mm ago"."""
    days = int(elapsed.total_seconds() // 86400)
    if days < DAYS_PER_MONTH:
        return f"{days} days ago"

    months = days // DAYS_PER_MONTH
    if months < 12:
        return _plural(months, "month")

    years, remaining_months = divmod(months, 12)
    if remaining_months == 0:
        return _plural(years, "year")
    return f"{years}y {remaining_months}m ago"


def format_age(date_str: str | None, now: datetime | None = None) -> str:
    """Age label for a publish timestamp, or "unknown" when there is none."""
    then = parse_timestamp(date_str)
    if then is None:
        return UNKNOWN_AGE
    return describe_elapsed(_now(now) - then)


def is_stale(date_str: str | None, now: datetime | None = None) -> bool:
    """True if the timestamp is more than two years old.

    Exactly two years is not stale. A missing timestamp is never stale.
    """
    then = parse_timestamp(date_str)
    if then is None:
        return False
    return _now(now) - then > STALE_THRESHOLD
