from __future__ import annotations

import logging
from typing import Any

from inquaire.context import get_correlation_id, get_user_id
from inquaire.core.events import event_bus

logger = logging.getLogger("inquaire.events")

published_events: list[dict[str, Any]] = []


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    existing_meta = envelope.get("meta")
    meta: dict[str, Any] = existing_meta.copy() if isinstance(existing_meta, dict) else {}
    actor = get_user_id()
    if actor is not None and "actor_user_id" not in meta:
        meta["actor_user_id"] = actor
    if meta:
        envelope["meta"] = meta

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        logger.info("domain_event", extra={"event_type": event_type})
        event_bus.publish(event_type, envelope)
