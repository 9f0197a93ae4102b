"""
Sport configuration registry.

Sports change rarely (an admin action), but are read on every submit,
confirm and leaderboard request. The registry keeps the whole sports
table in memory and reloads it lazily once the TTL has passed.

Concurrency:
- The cache is one immutable snapshot (map + ordered list + expiry),
  swapped in a single assignment, so readers never see a half-built cache.
- Readers that find the snapshot stale take the refresh lock and check
  again after acquiring it, so concurrent refreshers trigger one reload.
- Requests arriving during a reload keep reading the previous snapshot
  until the new one is swapped in.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rallyelo.config import settings
from rallyelo.db.models import Sport
from rallyelo.errors import SportNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SportConfig:
    """Detached, read-only copy of a sports row."""

    id: str
    name: str
    display_name: str
    icon_url: Optional[str]
    default_elo: int
    k_factor: int
    min_score: int
    max_score: int
    is_active: bool
    sort_order: int

    @classmethod
    def from_model(cls, sport: Sport) -> "SportConfig":
        return cls(
            id=sport.id,
            name=sport.name,
            display_name=sport.display_name,
            icon_url=sport.icon_url,
            default_elo=sport.default_elo,
            k_factor=sport.k_factor,
            min_score=sport.min_score,
            max_score=sport.max_score,
            is_active=sport.is_active,
            sort_order=sport.sort_order,
        )

    def score_in_range(self, score: int) -> bool:
        return self.min_score <= score <= self.max_score

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "icon_url": self.icon_url,
            "default_elo": self.default_elo,
            "k_factor": self.k_factor,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "sort_order": self.sort_order,
        }


class _Snapshot(NamedTuple):
    by_id: dict[str, SportConfig]
    ordered: tuple[SportConfig, ...]
    expires_at: float


_EMPTY = _Snapshot(by_id={}, ordered=(), expires_at=0.0)


class SportRegistry:
    """
    Cached view of the sports table.

    Usage:
        registry = SportRegistry(SessionLocal)
        sport = registry.get_active_sport("table_tennis")
        k = registry.get_k_factor("table_tennis")
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._ttl = settings.sport_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot = _EMPTY
        self.reload_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_sport(self, sport_id: str) -> SportConfig:
        """Return the sport whether or not it is active. Admin paths use this."""
        sport = self._ensure_fresh().by_id.get(sport_id)
        if sport is None:
            raise SportNotFoundError(f"sport not found: {sport_id}", field="sport")
        return sport

    def get_active_sport(self, sport_id: str) -> SportConfig:
        """Return the sport, or raise SportNotFoundError if it is missing or inactive."""
        sport = self.get_sport(sport_id)
        if not sport.is_active:
            raise SportNotFoundError(f"sport not found: {sport_id}", field="sport")
        return sport

    def get_k_factor(self, sport_id: str) -> int:
        """
        K-factor for a sport.

        Falls back to settings.default_k_factor when the lookup fails for
        any reason (unknown/inactive sport, database unavailable).
        """
        try:
            return self.get_active_sport(sport_id).k_factor
        except (SportNotFoundError, SQLAlchemyError) as exc:
            logger.warning(
                "K-factor lookup failed for sport=%s (%s), using default %d",
                sport_id, exc, settings.default_k_factor,
            )
            return settings.default_k_factor

    def get_default_elo(self, sport_id: str) -> int:
        """Starting rating for a sport, falling back to settings.default_elo."""
        try:
            return self.get_active_sport(sport_id).default_elo
        except (SportNotFoundError, SQLAlchemyError) as exc:
            logger.warning(
                "Default ELO lookup failed for sport=%s (%s), using default %d",
                sport_id, exc, settings.default_elo,
            )
            return settings.default_elo

    def list_active(self) -> list[SportConfig]:
        """Active sports ordered by (sort_order, name)."""
        snapshot = self._ensure_fresh()
        return [s for s in snapshot.ordered if s.is_active]

    def invalidate(self) -> None:
        """Force the next access to reload from the database."""
        with self._lock:
            current = self._snapshot
            self._snapshot = _Snapshot(current.by_id, current.ordered, expires_at=0.0)
        logger.info("Sport cache invalidated")

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    def _is_fresh(self, snapshot: _Snapshot) -> bool:
        return bool(snapshot.by_id) and self._clock() < snapshot.expires_at

    def _ensure_fresh(self) -> _Snapshot:
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            return snapshot

        with self._lock:
            # Another thread may have reloaded while we waited for the lock
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                return snapshot
            snapshot = self._load()
            self._snapshot = snapshot
            return snapshot

    def _load(self) -> _Snapshot:
        session = self._session_factory()
        try:
            rows = (
                session.query(Sport)
                .order_by(Sport.sort_order, Sport.name)
                .all()
            )
            ordered = tuple(SportConfig.from_model(row) for row in rows)
        finally:
            session.close()

        self.reload_count += 1
        logger.debug("Loaded %d sports into cache", len(ordered))
        return _Snapshot(
            by_id={s.id: s for s in ordered},
            ordered=ordered,
            expires_at=self._clock() + self._ttl,
        )


@lru_cache
def get_sport_registry() -> SportRegistry:
    """Process-wide registry bound to the application's session factory."""
    from rallyelo.db.session import SessionLocal

    return SportRegistry(SessionLocal)
