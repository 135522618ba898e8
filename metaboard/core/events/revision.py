from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from metaboard.core import config, events
from metaboard.core.models.card import Card
from metaboard.core.models.dashboard import Dashboard
from metaboard.core.models.hydrate import hydrate
from metaboard.core.models.revision import push_revision

log = logging.getLogger("metaboard.events.revision")

# Topics that produce a revision of the affected object.
REVISIONS_TOPICS = frozenset(
    {
        "card-create",
        "card-update",
        "dashboard-create",
        "dashboard-update",
        "dashboard-add-cards",
        "dashboard-remove-cards",
        "dashboard-reposition-cards",
    }
)

_MODELS = {
    "card": Card,
    "dashboard": Dashboard,
}

# deferred fields that belong in a revision; dashboard card changes are
# only visible through ordered_cards
_REVISION_FIELDS = {
    Dashboard: ("ordered_cards",),
}

_SUBSCRIPTION: Optional[events.Subscription] = None


def process_revision_event(revision_event: Optional[Dict[str, Any]]) -> None:
    """Push a revision for one event. Failures are logged, never raised."""
    topic = revision_event.get("topic") if isinstance(revision_event, dict) else None
    try:
        if not revision_event:
            return
        obj = revision_event.get("item") or {}
        model = _MODELS.get(events.topic_to_model(topic))
        if model is None:
            return
        model_id = events.object_to_model_id(topic, obj)
        current = model.fetch_one(model_id)
        fields = _REVISION_FIELDS.get(model)
        if current is not None and fields:
            current = hydrate(current, *fields)
        push_revision(
            model=model,
            id=model_id,
            object=current,
            user_id=events.object_to_user_id(obj),
            is_creation=topic == f"{model.__name__.lower()}-create",
        )
    except Exception as e:
        log.warning("Failed to process revision event. %s", topic, exc_info=e)


def events_init() -> None:
    global _SUBSCRIPTION
    if config.is_test():
        return
    if _SUBSCRIPTION is not None:
        return
    log.info("Starting revision events listener")
    _SUBSCRIPTION = events.start_event_listener(REVISIONS_TOPICS, process_revision_event)


def events_shutdown() -> None:
    global _SUBSCRIPTION
    _SUBSCRIPTION = None
    events.stop_event_listeners()
