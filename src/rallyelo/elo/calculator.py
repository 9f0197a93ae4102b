"""
ELO rating calculator for head-to-head matches.

The ELO formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / S))
  New rating: R'_A = R_A + K * (actual - expected)

Where:
  R_A, R_B = Current ratings of players A and B
  K = How much ratings change (per-sport volatility factor)
  S = Spread factor, fixed at 400

Ratings are integers. Each player's delta is K * (actual - expected)
truncated toward zero (int()), computed separately for each player from
their own expected score. The two deltas are therefore not forced to sum
to zero: floating point error on either side can leave them one point
apart. Deltas are kept as computed so historical values stay reproducible.
"""

from dataclasses import dataclass

from rallyelo.elo.constants import DEFAULT_K_FACTOR, SPREAD


@dataclass(frozen=True)
class EloUpdate:
    """
    Result of an ELO calculation.

    Holds the six values stored on a confirmed match. Also unpacks as
    ``(new_a, new_b, delta_a, delta_b)``.
    """
    # Ratings before the match
    before_a: int
    before_b: int

    # Ratings after the match
    new_a: int
    new_b: int

    # Signed changes (new - before)
    delta_a: int
    delta_b: int

    def __iter__(self):
        return iter((self.new_a, self.new_b, self.delta_a, self.delta_b))

    @property
    def was_upset(self) -> bool:
        """Whether the lower-rated player won."""
        if self.delta_a > 0:
            return self.before_a < self.before_b
        return self.before_b < self.before_a

    def __repr__(self) -> str:
        return (
            f"<EloUpdate(A: {self.before_a} -> {self.new_a} ({self.delta_a:+d}), "
            f"B: {self.before_b} -> {self.new_b} ({self.delta_b:+d}))>"
        )


def expected_score(rating: int, opponent_rating: int) -> float:
    """
    Probability that a player rated ``rating`` beats ``opponent_rating``.

    Formula: E = 1 / (1 + 10^((opponent - rating) / 400))
    """
    try:
        return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / SPREAD))
    except OverflowError:
        # Gap too large to represent; the underdog has no chance
        return 0.0


def compute(rating_a: int, rating_b: int, a_won: bool, k_factor: int) -> EloUpdate:
    """
    Calculate new ratings after a match between A and B.

    There is no draw case: exactly one of the players won.

    Args:
        rating_a: Player A's rating before the match
        rating_b: Player B's rating before the match
        a_won: True if player A won, False if player B won
        k_factor: Sport K-factor, must be positive

    Returns:
        EloUpdate with before/after/delta for both players

    Raises:
        ValueError: If k_factor is not positive

    Example:
        # Equal ratings, K=32: winner +16, loser -16
        new_a, new_b, delta_a, delta_b = compute(1000, 1000, True, 32)
    """
    if k_factor <= 0:
        raise ValueError(f"k_factor must be positive, got {k_factor}")

    rating_a = int(rating_a)
    rating_b = int(rating_b)

    # Each side is computed from its own perspective so that swapping the
    # arguments produces exactly mirrored results
    expected_a = expected_score(rating_a, rating_b)
    expected_b = expected_score(rating_b, rating_a)

    actual_a = 1.0 if a_won else 0.0
    actual_b = 1.0 - actual_a

    # int() truncates toward zero
    delta_a = int(k_factor * (actual_a - expected_a))
    delta_b = int(k_factor * (actual_b - expected_b))

    return EloUpdate(
        before_a=rating_a,
        before_b=rating_b,
        new_a=rating_a + delta_a,
        new_b=rating_b + delta_b,
        delta_a=delta_a,
        delta_b=delta_b,
    )


class EloCalculator:
    """
    ELO calculator bound to one K-factor.

    Usage:
        calculator = EloCalculator(k_factor=sport.k_factor)

        result = calculator.calculate(1000, 1000, a_won=True)
        print(f"A: {result.before_a} -> {result.new_a}")
        print(f"Win prob: {calculator.win_probability(1200, 1000):.1%}")
    """

    def __init__(self, k_factor: int = DEFAULT_K_FACTOR):
        if k_factor <= 0:
            raise ValueError(f"k_factor must be positive, got {k_factor}")
        self.k_factor = k_factor

    def calculate(self, rating_a: int, rating_b: int, a_won: bool) -> EloUpdate:
        """Calculate new ratings after a match. See compute()."""
        return compute(rating_a, rating_b, a_won, self.k_factor)

    def win_probability(self, rating_a: int, rating_b: int) -> float:
        """Probability of player A beating player B."""
        return expected_score(rating_a, rating_b)

    def max_gain(self, rating_a: int, rating_b: int) -> int:
        """Points player A would win by beating player B."""
        return compute(rating_a, rating_b, True, self.k_factor).delta_a
