from __future__ import annotations

import logging
import time

from inquaire.core.cache import replay_cache
from inquaire.core.config import get_settings

logger = logging.getLogger("inquaire.webhooks")


def replay_key(platform: str, event_id: str) -> str:
    return f"webhook_event:{platform}:{event_id}"


def is_duplicate(event_id: str, platform: str) -> bool:
    """Remember ``event_id`` for the replay window; True when it was already seen."""

    stored = replay_cache.add(replay_key(platform, event_id), True, get_settings().webhook_replay_ttl_seconds)
    if not stored:
        logger.warning("webhook.duplicate_event", extra={"platform": platform, "event_id": event_id})
    return not stored


def forget(event_id: str, platform: str) -> None:
    replay_cache.delete(replay_key(platform, event_id))


def is_timestamp_valid(timestamp_ms: int | float, max_age_seconds: int | None = None, *, now_ms: float | None = None) -> bool:
    max_age = get_settings().webhook_max_event_age_seconds if max_age_seconds is None else max_age_seconds
    current = time.time() * 1000 if now_ms is None else now_ms
    valid = abs(current - float(timestamp_ms)) < max_age * 1000
    if not valid:
        logger.warning("webhook.stale_event", extra={"status": "stale"})
    return valid
