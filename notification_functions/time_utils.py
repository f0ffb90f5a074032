from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def retention_cutoff(days: int) -> datetime:
    """Return the instant before which documents fall out of the retention window"""
    return utc_now() - timedelta(days=days)
