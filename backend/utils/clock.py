from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC: timestamps are stored in timezone-less columns on every backend
    return datetime.now(timezone.utc).replace(tzinfo=None)
