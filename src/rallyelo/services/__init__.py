"""
Application services.

- match_workflow: the match state machine and rating updates
- leaderboard: rankings and per-player statistics
- admin: bans, manual rating overrides, audit trail
"""

from rallyelo.services.match_workflow import MatchWorkflow, RevertResult
from rallyelo.services.leaderboard import (
    LeaderboardEntry,
    PlayerStats,
    get_leaderboard,
    get_player_stats,
)

__all__ = [
    "MatchWorkflow",
    "RevertResult",
    "LeaderboardEntry",
    "PlayerStats",
    "get_leaderboard",
    "get_player_stats",
]
