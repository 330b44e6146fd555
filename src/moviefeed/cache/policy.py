from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, tzinfo

from moviefeed.schemas import normalize_datetime

logger = logging.getLogger(__name__)

DEFAULT_MAX_CACHE_AGE_DAYS = 7


class FeedCachePolicy:
    """Decides whether a cache timestamp is still fresh.

    The maximum age is counted in calendar days in ``timezone``: adding a day
    keeps the wall-clock time, so a span crossing a DST change is not a whole
    multiple of 86400 seconds.
    """

    def __init__(
        self,
        *,
        max_age_days: int = DEFAULT_MAX_CACHE_AGE_DAYS,
        timezone: tzinfo = UTC,
    ) -> None:
        if max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")

        self.max_age_days = max_age_days
        self.timezone = timezone

    def validate(self, timestamp: datetime, against: datetime) -> bool:
        # Same-tzinfo comparisons ignore offsets, so compare in UTC.
        try:
            expires_at = self.expiry_for(timestamp).astimezone(UTC)
            now = normalize_datetime(against, self.timezone).astimezone(UTC)
        except OverflowError:
            logger.warning("cache_policy expiry overflow timestamp=%s", timestamp.isoformat())
            return False

        return now < expires_at

    def expiry_for(self, timestamp: datetime) -> datetime:
        local = normalize_datetime(timestamp, self.timezone)
        return local + timedelta(days=self.max_age_days)
