"""Utility functions for the object store operator."""

import datetime

# Kubernetes status messages and events are truncated to this length
MAX_MESSAGE_LENGTH = 200


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def short_message(error: BaseException | str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    """Render an error as a single status-friendly line."""
    text = " ".join(str(error).split())
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def merge_labels(*label_sets: dict[str, str] | None) -> dict[str, str]:
    """Merge label dicts left to right, later sets win."""
    merged: dict[str, str] = {}
    for labels in label_sets:
        if labels:
            merged.update(labels)
    return merged
