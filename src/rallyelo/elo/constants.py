"""
ELO rating system constants.

K factor: Controls rating volatility (how much ratings change per match)
  - Higher K = bigger rating swings
  - Configured per sport (sports.k_factor); DEFAULT_K_FACTOR is the
    fallback when a sport's configuration cannot be loaded

S factor: Controls the spread (how rating differences translate to win
probability). Fixed at the classic 400: a 400 point gap means the
stronger player is expected to win 10 times out of 11.
"""

# Classic chess spread
SPREAD = 400

# Fallback K-factor when the sport lookup fails
DEFAULT_K_FACTOR = 32

# Starting rating for a player with no rating row in a sport
DEFAULT_ELO = 1000

# Bounds for manual admin overrides
MIN_ADJUSTED_ELO = 0
MAX_ADJUSTED_ELO = 5000
