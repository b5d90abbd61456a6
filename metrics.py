from collections import Counter
from typing import Any, Dict, Iterable

from database import CONVERSATIONS, USAGE_EVENTS, USERS, DocumentStore


def _ranked(counter: Counter) -> Dict[str, int]:
    # most frequent first; names break ties so the output is stable
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def summarize_events(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    total = 0
    users = set()
    features: Counter = Counter()
    pages: Counter = Counter()
    for event in events:
        total += 1
        if event.get("userId"):
            users.add(event["userId"])
        if event.get("feature"):
            features[event["feature"]] += 1
        if event.get("page"):
            pages[event["page"]] += 1
    return {
        "total": total,
        "uniqueUsers": len(users),
        "byFeature": _ranked(features),
        "byPage": _ranked(pages),
    }


def build_admin_metrics(store: DocumentStore) -> Dict[str, Any]:
    """Aggregate users, conversations and usage events.

    Scans every collection on each call; fine for the small volumes this
    dashboard sees, not for large ones.
    """
    conversations = store.find_all(CONVERSATIONS)
    conversation_users = {c["userId"] for c in conversations if c.get("userId")}
    return {
        "users": {"total": store.count(USERS)},
        "conversations": {
            "total": len(conversations),
            "uniqueUsers": len(conversation_users),
        },
        "usageEvents": summarize_events(store.find_all(USAGE_EVENTS)),
    }
