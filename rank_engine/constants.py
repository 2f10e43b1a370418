# rank_engine/constants.py

import os

# Upper bound of every exercise/muscle/group/overall score.
MAX_RANK_POINTS = 5000

# Curve shape used when an exercise has no alpha configured.
DEFAULT_ALPHA = 0.1

# Epley: 1RM = w * (1 + r / EPLEY_REPS_DIVISOR)
EPLEY_REPS_DIVISOR = 30.0

# A muscle score is the mean of this many weighted exercise contributions.
TOP_MUSCLE_CONTRIBUTIONS = 3

# Reference catalogs (exercises, muscles, tiers) change rarely; 24h default.
REFERENCE_CACHE_TTL_SECONDS = int(os.getenv("REFERENCE_CACHE_TTL_SECONDS", str(24 * 60 * 60)))

# Free accounts pay one unit per manual recalculation.
RANK_CALCULATOR_COST = 1
