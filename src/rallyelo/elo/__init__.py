"""
ELO rating system module.

Implements the standard two-player ELO update used when a match is
confirmed:
- Logistic expected score with a 400 point spread
- Per-sport K-factor
- Integer ratings, deltas truncated toward zero
"""

from rallyelo.elo.calculator import EloCalculator, EloUpdate, compute, expected_score
from rallyelo.elo.constants import DEFAULT_ELO, DEFAULT_K_FACTOR, SPREAD

__all__ = [
    "EloCalculator",
    "EloUpdate",
    "compute",
    "expected_score",
    "DEFAULT_ELO",
    "DEFAULT_K_FACTOR",
    "SPREAD",
]
