"""Sport configuration lookup with an in-memory cache."""

from rallyelo.sports.registry import SportConfig, SportRegistry, get_sport_registry

__all__ = ["SportConfig", "SportRegistry", "get_sport_registry"]
