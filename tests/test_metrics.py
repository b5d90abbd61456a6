from datetime import datetime, timezone

import pytest

from config import Settings
from database import CONVERSATIONS, USAGE_EVENTS, USERS
from metrics import build_admin_metrics, summarize_events


def test_summarize_counts_features_and_skips_missing():
    events = [
        {"userId": "a", "feature": "disease", "page": "/diagnose"},
        {"userId": "b", "feature": "market", "page": None},
        {"userId": "a", "feature": "disease"},
        {"userId": "c", "feature": None, "page": "/home"},
    ]
    summary = summarize_events(events)
    assert summary["total"] == 4
    assert summary["uniqueUsers"] == 3
    assert summary["byFeature"] == {"disease": 2, "market": 1}
    assert list(summary["byFeature"]) == ["disease", "market"]
    assert summary["byPage"] == {"/diagnose": 1, "/home": 1}
    assert None not in summary["byFeature"]


def test_build_admin_metrics(store):
    now = datetime.now(timezone.utc)
    store.set(USERS, "alice", {"uid": "alice"})
    store.set(USERS, "bob", {"uid": "bob"})
    for uid in ("alice", "alice", "bob"):
        store.add(CONVERSATIONS, {"userId": uid, "userMessage": "q", "aiResponse": "a", "createdAt": now})
    store.add(USAGE_EVENTS, {"userId": "alice", "feature": "chat", "page": None, "createdAt": now})

    metrics = build_admin_metrics(store)
    assert metrics["users"] == {"total": 2}
    assert metrics["conversations"] == {"total": 3, "uniqueUsers": 2}
    assert metrics["usageEvents"]["byFeature"] == {"chat": 1}
    assert metrics["usageEvents"]["byPage"] == {}


# Endpoints
def test_track_requires_feature_or_page(client, auth, store):
    resp = client.post("/api/track", json={"feature": "  "}, headers=auth())
    assert resp.status_code == 400
    assert store.count(USAGE_EVENTS) == 0


def test_tracked_events_show_up_in_admin_metrics(client, auth):
    for feature in ("disease", "market", "disease"):
        assert client.post("/api/track", json={"feature": feature}, headers=auth()).json() == {"ok": True}
    client.post("/api/track", json={"page": "/market"}, headers=auth("bob-token"))

    resp = client.get("/api/admin/metrics", headers=auth("admin-token"))
    assert resp.status_code == 200
    usage = resp.json()["usageEvents"]
    assert usage["total"] == 4
    assert usage["uniqueUsers"] == 2
    assert usage["byFeature"] == {"disease": 2, "market": 1}
    assert usage["byPage"] == {"/market": 1}


def test_admin_metrics_rejects_non_admin(client, auth):
    resp = client.get("/api/admin/metrics", headers=auth("alice-token"))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Admin access required"}


def test_admin_metrics_needs_configured_admin(app, client, auth):
    app.state.settings = Settings()
    assert client.get("/api/admin/metrics", headers=auth("admin-token")).status_code == 500


@pytest.mark.parametrize("creds", [None, ("operator", "wrong"), ("someone", "s3cret")])
def test_basic_metrics_rejects_bad_credentials(client, creds):
    resp = client.get("/api/admin/metrics-basic", auth=creds)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == 'Basic realm="Admin Panel"'


def test_basic_metrics_with_operator_credentials(client):
    resp = client.get("/api/admin/metrics-basic", auth=("operator", "s3cret"))
    assert resp.status_code == 200
    assert set(resp.json()) == {"users", "conversations", "usageEvents"}


def test_basic_metrics_unconfigured(app, client):
    app.state.settings = Settings(admin_email="admin@krishisahay.in")
    assert client.get("/api/admin/metrics-basic", auth=("operator", "s3cret")).status_code == 500
