"""
Time helpers - naive UTC timestamps as stored in every backend
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo (DateTime columns are naive)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
