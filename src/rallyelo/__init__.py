"""
RallyElo - Match Reporting and ELO Ratings for Campus Sports

Players report casual matches (table tennis, table football, ...), the
opponent confirms or denies the result, and confirmed results move
per-sport ELO ratings.

Main components:
- elo: rating calculation
- sports: cached sport configuration
- repositories: row-level persistence helpers
- services: match workflow, leaderboards, admin moderation
- web: FastAPI JSON API
"""

__version__ = "1.0.0"
