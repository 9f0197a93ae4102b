"""
Leaderboard and per-player statistics.

Ranking: descending current rating; ties go to the player with more
wins, then to the lower user id, so the order is stable between requests.
Banned users are left off the leaderboard.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from rallyelo.db.models import User
from rallyelo.repositories import matches as match_store
from rallyelo.repositories import ratings as rating_store
from rallyelo.repositories import users as user_store
from rallyelo.sports.registry import SportRegistry


def _user_summary(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "login": user.login,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "campus": user.campus,
    }


@dataclass
class LeaderboardEntry:
    rank: int
    user: User
    elo: int
    highest_elo: int
    matches_played: int
    wins: int
    losses: int
    win_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "user": _user_summary(self.user),
            "elo": self.elo,
            "highest_elo": self.highest_elo,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": self.win_rate,
        }


@dataclass
class PlayerStats:
    user: User
    sport_id: str
    current_elo: int
    highest_elo: int
    total_matches: int
    wins: int
    losses: int
    win_rate: float
    current_win_streak: int = 0
    longest_win_streak: int = 0
    most_played_rival_id: Optional[int] = None
    rival_match_count: int = 0
    recent_form: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": _user_summary(self.user),
            "sport": self.sport_id,
            "current_elo": self.current_elo,
            "highest_elo": self.highest_elo,
            "total_matches": self.total_matches,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": self.win_rate,
            "current_win_streak": self.current_win_streak,
            "longest_win_streak": self.longest_win_streak,
            "most_played_rival_id": self.most_played_rival_id,
            "rival_match_count": self.rival_match_count,
            "recent_form": self.recent_form,
        }


def get_leaderboard(session: Session, sports: SportRegistry, sport_id: str) -> list[LeaderboardEntry]:
    """Ranked entries for every non-banned player with a rating in the sport."""
    sport = sports.get_active_sport(sport_id)
    rows = rating_store.list_sport_ratings(session, sport.id)
    rows.sort(key=lambda r: (-r.current_elo, -r.wins, r.user_id))

    return [
        LeaderboardEntry(
            rank=position,
            user=row.user,
            elo=row.current_elo,
            highest_elo=row.highest_elo,
            matches_played=row.matches_played,
            wins=row.wins,
            losses=row.losses,
            win_rate=row.win_rate,
        )
        for position, row in enumerate(rows, start=1)
    ]


def _streaks(results: list[bool]) -> tuple[int, int]:
    """(current, longest) run of wins in a chronological list of results."""
    longest = run = 0
    for won in results:
        run = run + 1 if won else 0
        longest = max(longest, run)
    return run, longest


def get_player_stats(
    session: Session,
    sports: SportRegistry,
    user_id: int,
    sport_id: str,
) -> PlayerStats:
    """Rating, counters, streaks and most frequent opponent for one player."""
    sport = sports.get_active_sport(sport_id)
    user = user_store.get_user(session, user_id)
    rating = rating_store.get_rating(session, user.id, sport.id, sport.default_elo)

    history = match_store.list_confirmed_for_user(session, user.id, sport.id)
    results = [m.winner_id == user.id for m in history]
    current_streak, longest_streak = _streaks(results)

    rival_counts: dict[int, int] = {}
    for m in history:
        rival = m.opponent_of(user.id)
        rival_counts[rival] = rival_counts.get(rival, 0) + 1
    rival_id: Optional[int] = None
    rival_count = 0
    if rival_counts:
        rival_id, rival_count = max(rival_counts.items(), key=lambda kv: (kv[1], -kv[0]))

    return PlayerStats(
        user=user,
        sport_id=sport.id,
        current_elo=rating.current_elo,
        highest_elo=rating.highest_elo,
        total_matches=rating.matches_played,
        wins=rating.wins,
        losses=rating.losses,
        win_rate=rating.win_rate,
        current_win_streak=current_streak,
        longest_win_streak=longest_streak,
        most_played_rival_id=rival_id,
        rival_match_count=rival_count,
        recent_form=["W" if won else "L" for won in results[-5:]],
    )
