"""Shared match-status definitions and helpers.

This module is the single source of truth for the match lifecycle
vocabulary used by the models, the workflow and the web handlers.
"""

from __future__ import annotations

from typing import Iterable

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_DENIED = "denied"
STATUS_CANCELLED = "cancelled"
STATUS_DISPUTED = "disputed"

ALL_MATCH_STATUSES: tuple[str, ...] = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_DENIED,
    STATUS_CANCELLED,
    STATUS_DISPUTED,
)

# Transitions reachable through the normal (non-admin) workflow operations.
NORMAL_TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATUS_PENDING: (STATUS_CONFIRMED, STATUS_DENIED, STATUS_CANCELLED),
    STATUS_CONFIRMED: (),
    STATUS_DENIED: (),
    STATUS_CANCELLED: (),
    STATUS_DISPUTED: (),
}

MATCH_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Waiting on the opponent.
    "open": (STATUS_PENDING,),
    # Matches that count towards ratings and stats.
    "rated": (STATUS_CONFIRMED,),
    # No further normal transition possible.
    "terminal": (STATUS_CONFIRMED, STATUS_DENIED, STATUS_CANCELLED, STATUS_DISPUTED),
    "all": ALL_MATCH_STATUSES,
}


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return MATCH_STATUS_GROUPS[group_name]


def can_transition(current: str, target: str) -> bool:
    """Whether a normal workflow operation may move a match from current to target."""
    return target in NORMAL_TRANSITIONS.get(current, ())


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        status = raw.strip().lower()
        if not status or status in seen or status not in ALL_MATCH_STATUSES:
            continue
        seen.add(status)
        normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))
