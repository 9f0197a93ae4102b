"""Launch sport configuration and an idempotent seeding helper."""

from __future__ import annotations

from sqlalchemy.orm import Session

from rallyelo.db.models import Sport

DEFAULT_SPORTS = (
    {
        "id": "table_tennis",
        "name": "table_tennis",
        "display_name": "Table Tennis",
        "default_elo": 1000,
        "k_factor": 32,
        "min_score": 0,
        "max_score": 999,
        "sort_order": 1,
    },
    {
        "id": "table_football",
        "name": "table_football",
        "display_name": "Table Football",
        "default_elo": 1000,
        "k_factor": 32,
        "min_score": 0,
        "max_score": 999,
        "sort_order": 2,
    },
)


def seed_sports(session: Session, sports=DEFAULT_SPORTS) -> list[str]:
    """
    Insert any sport that is not there yet.

    Existing rows are left alone so admin changes to K-factors or score
    bounds survive a re-seed. Returns the ids that were inserted.
    """
    created = []
    for config in sports:
        if session.get(Sport, config["id"]) is not None:
            continue
        session.add(Sport(is_active=True, **config))
        created.append(config["id"])
    session.flush()
    return created
