"""Revision history: the event bus, the revision listener, and /api/revision."""

from __future__ import annotations

import logging

import pytest

from metaboard.core import events
from metaboard.core.events import revision as revision_events
from metaboard.core.events.revision import REVISIONS_TOPICS, events_init, process_revision_event
from metaboard.core.models import Card, Dashboard
from metaboard.core.models.revision import MAX_REVISIONS, push_revision, revisions


@pytest.fixture()
def listeners():
    yield
    events.stop_event_listeners()


# ------------------------------------------------------------
# Bus
# ------------------------------------------------------------
def test_publish_reaches_subscribed_topics_only(listeners):
    seen = []
    events.start_event_listener({"card-create"}, seen.append)

    assert events.publish_event("card-create", {"id": 1}) == {"id": 1}
    events.publish_event("dashboard-create", {"id": 2})
    events.drain()

    assert seen == [{"topic": "card-create", "item": {"id": 1}}]


def test_failing_handler_keeps_listener_alive(listeners):
    seen = []

    def handler(event):
        if event["item"]["id"] == 1:
            raise RuntimeError("boom")
        seen.append(event["item"]["id"])

    events.start_event_listener({"card-update"}, handler)
    events.publish_event("card-update", {"id": 1})
    events.publish_event("card-update", {"id": 2})
    events.drain()

    assert seen == [2]


def test_stop_event_listeners_joins_threads():
    sub = events.start_event_listener({"x"}, lambda e: None)
    events.stop_event_listeners()
    assert not sub.thread.is_alive()
    # nobody listening any more
    events.publish_event("x", {"id": 1})
    assert sub.queue.empty()
    assert not events.signals.signal("x").receivers


def test_topics_are_blinker_signals(listeners):
    seen = []

    def on_update(sender, **kw):
        seen.append((sender, kw["item"]))

    signal = events.signals.signal("card-update")
    signal.connect(on_update)
    try:
        events.publish_event("card-update", {"id": 3})
    finally:
        signal.disconnect(on_update)

    assert seen == [("card-update", {"id": 3})]


def test_payload_helpers():
    assert events.topic_to_model("dashboard-add-cards") == "dashboard"
    assert events.topic_to_model("card-create") == "card"
    assert events.object_to_model_id("card-create", {"id": 7}) == 7
    assert events.object_to_user_id({"actor_id": 1, "creator_id": 2}) == 1
    assert events.object_to_user_id({"user_id": 3, "creator_id": 2}) == 3
    assert events.object_to_user_id({"creator_id": 2}) == 2
    assert events.object_to_user_id({}) is None


def test_events_init_is_a_noop_in_tests():
    events_init()
    assert revision_events._SUBSCRIPTION is None


# ------------------------------------------------------------
# Revision processing
# ------------------------------------------------------------
def test_create_event_records_creation(users, make_card):
    card_id = make_card(users["rasta"]["id"], name="first")
    process_revision_event({"topic": "card-create", "item": {"id": card_id, "actor_id": users["rasta"]["id"]}})

    [rev] = revisions(Card, card_id)
    assert rev["is_creation"] is True
    assert rev["user_id"] == users["rasta"]["id"]
    assert rev["model"] == "card"
    assert rev["object"]["name"] == "first"
    assert "dashboard_count" not in rev["object"]
    assert isinstance(rev["object"]["created_at"], str)


def test_dashboard_events_record_revisions(users, make_dashboard):
    dash_id = make_dashboard(users["rasta"]["id"])
    for topic in ("dashboard-update", "dashboard-add-cards", "dashboard-reposition-cards"):
        process_revision_event({"topic": topic, "item": {"id": dash_id, "actor_id": users["rasta"]["id"]}})

    revs = revisions(Dashboard, dash_id)
    assert len(revs) == 3
    assert not any(r["is_creation"] for r in revs)
    assert revs[0]["object"]["ordered_cards"] == []


def test_dashboard_revisions_record_cards(users, make_card, make_dashboard):
    rasta = users["rasta"]["id"]
    card_id = make_card(rasta)
    dash_id = make_dashboard(rasta, card_ids=[card_id])

    process_revision_event({"topic": "dashboard-add-cards", "item": {"id": dash_id, "actor_id": rasta}})

    [rev] = revisions(Dashboard, dash_id)
    [dashcard] = rev["object"]["ordered_cards"]
    assert dashcard["card_id"] == card_id
    assert dashcard["sizeX"] is not None
    assert isinstance(dashcard["created_at"], str)


def test_unknown_model_and_missing_objects_are_skipped(users):
    process_revision_event({"topic": "pulse-create", "item": {"id": 1}})
    process_revision_event({"topic": "card-update", "item": {"id": 424242}})
    process_revision_event(None)
    assert revisions(Card, 424242) == []


def test_processing_failures_are_logged_not_raised(users, monkeypatch, caplog):
    def boom(**kw):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(revision_events, "push_revision", boom)
    with caplog.at_level(logging.WARNING, logger="metaboard.events.revision"):
        process_revision_event({"topic": "card-update", "item": {"id": 1}})

    assert "Failed to process revision event" in caplog.text


def test_revision_history_is_capped(users, make_card):
    card_id = make_card(users["rasta"]["id"])
    card = Card.fetch_one(card_id)
    for i in range(MAX_REVISIONS + 5):
        push_revision(model=Card, id=card_id, object=dict(card, name=f"v{i}"), user_id=users["rasta"]["id"])

    revs = revisions(Card, card_id)
    assert len(revs) == MAX_REVISIONS
    assert revs[0]["object"]["name"] == f"v{MAX_REVISIONS + 4}"
    assert revs[-1]["object"]["name"] == "v5"


# ------------------------------------------------------------
# End to end
# ------------------------------------------------------------
def test_api_mutations_produce_revisions(user_client, users, listeners):
    events.start_event_listener(REVISIONS_TOPICS, process_revision_event)
    c = user_client("rasta")

    card = c.post(
        "/api/card",
        json={"name": "tracked", "display": "table", "dataset_query": {}, "visualization_settings": {}},
    ).json()
    events.drain()
    c.put(f"/api/card/{card['id']}", json={"name": "tracked again"})
    events.drain()

    r = c.get("/api/revision", params={"entity": "card", "id": card["id"]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert [rev["object"]["name"] for rev in body] == ["tracked again", "tracked"]
    assert [rev["is_creation"] for rev in body] == [False, True]
    assert body[0]["user"]["common_name"] == "Rasta Toucan"


def test_revision_endpoint_checks_entity_and_permissions(user_client, users, make_card):
    private = make_card(users["crowberto"]["id"], public_perms=0)
    c = user_client("rasta")
    assert c.get("/api/revision", params={"entity": "pulse", "id": 1}).status_code == 400
    assert c.get("/api/revision", params={"entity": "card", "id": private}).status_code == 403
    assert c.get("/api/revision", params={"entity": "card", "id": 424242}).status_code == 404


def test_dashboard_card_changes_show_up_in_history(user_client, users, make_card, listeners):
    events.start_event_listener(REVISIONS_TOPICS, process_revision_event)
    c = user_client("rasta")
    card_id = make_card(users["rasta"]["id"])
    dash = c.post("/api/dash", json={"name": "tracked"}).json()
    events.drain()

    c.post(f"/api/dash/{dash['id']}/cards", json={"cardId": card_id})
    events.drain()
    c.post(
        f"/api/dash/{dash['id']}/reposition",
        json={"cards": [{"card_id": card_id, "sizeX": 4, "sizeY": 3, "row": 1, "col": 2}]},
    )
    events.drain()

    body = c.get("/api/revision", params={"entity": "dashboard", "id": dash["id"]}).json()
    assert len(body) == 3
    newest, added, created = body
    assert created["object"]["ordered_cards"] == []
    assert [dc["card_id"] for dc in added["object"]["ordered_cards"]] == [card_id]
    assert (newest["object"]["ordered_cards"][0]["sizeX"], newest["object"]["ordered_cards"][0]["col"]) == (4, 2)
