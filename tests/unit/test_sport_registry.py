"""Unit tests for the cached sport registry."""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from rallyelo.config import settings
from rallyelo.db.models import Sport
from rallyelo.errors import SportNotFoundError
from rallyelo.sports.registry import SportRegistry
from rallyelo.sports.seed import seed_sports


def test_get_active_sport_loads_once(registry):
    sport = registry.get_active_sport("table_tennis")
    registry.get_active_sport("table_football")
    registry.get_k_factor("table_tennis")

    assert sport.display_name == "Table Tennis"
    assert sport.k_factor == 32
    assert registry.reload_count == 1


def test_unknown_sport_raises(registry):
    with pytest.raises(SportNotFoundError) as exc_info:
        registry.get_active_sport("chess")
    assert exc_info.value.status_code == 404


def test_inactive_sport_raises(registry, db_session):
    sport = db_session.get(Sport, "table_football")
    sport.is_active = False
    db_session.commit()

    with pytest.raises(SportNotFoundError):
        registry.get_active_sport("table_football")
    assert registry.get_sport("table_football").is_active is False
    with pytest.raises(SportNotFoundError):
        registry.get_sport("chess")


def test_list_active_is_ordered(registry, db_session):
    db_session.add(Sport(id="darts", name="darts", display_name="Darts", sort_order=0))
    db_session.add(Sport(id="pool", name="pool", display_name="Pool", sort_order=3, is_active=False))
    db_session.commit()

    assert [s.id for s in registry.list_active()] == ["darts", "table_tennis", "table_football"]


def test_cache_serves_stale_data_until_ttl(registry, db_session, clock):
    assert registry.get_k_factor("table_tennis") == 32

    db_session.get(Sport, "table_tennis").k_factor = 24
    db_session.commit()

    clock.advance(299)
    assert registry.get_k_factor("table_tennis") == 32

    clock.advance(2)
    assert registry.get_k_factor("table_tennis") == 24
    assert registry.reload_count == 2


def test_invalidate_forces_reload(registry, db_session):
    assert registry.get_k_factor("table_tennis") == 32

    db_session.get(Sport, "table_tennis").k_factor = 40
    db_session.commit()
    registry.invalidate()

    assert registry.get_k_factor("table_tennis") == 40
    assert registry.reload_count == 2


def test_k_factor_falls_back_to_default_for_unknown_sport(registry):
    assert registry.get_k_factor("chess") == settings.default_k_factor
    assert registry.get_default_elo("chess") == settings.default_elo


def test_k_factor_falls_back_when_database_fails():
    def broken_session():
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    registry = SportRegistry(broken_session, ttl_seconds=60)

    assert registry.get_k_factor("table_tennis") == settings.default_k_factor
    with pytest.raises(OperationalError):
        registry.get_active_sport("table_tennis")


def test_empty_table_is_never_treated_as_fresh(session_factory, clock):
    registry = SportRegistry(session_factory, ttl_seconds=300, clock=clock)
    assert registry.list_active() == []

    session = session_factory()
    seed_sports(session)
    session.commit()
    session.close()

    # Reloads without waiting for the TTL because the last load was empty
    assert len(registry.list_active()) == 2


def test_concurrent_refresh_reloads_once(registry):
    barrier = threading.Barrier(8)
    errors = []

    def worker():
        try:
            barrier.wait()
            registry.get_active_sport("table_tennis")
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.reload_count == 1


def test_to_dict_omits_activity_flag(registry):
    data = registry.get_active_sport("table_tennis").to_dict()
    assert data["id"] == "table_tennis"
    assert data["min_score"] == 0
    assert data["max_score"] == 999
    assert "is_active" not in data
