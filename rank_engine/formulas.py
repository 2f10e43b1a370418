# Strength formulas used to normalize a performance into rank points.
#
# 1RM uses the common Epley estimate: 1RM = w * (1 + r / 30)
# For r=1 the lifted weight already is the 1RM.
# The rank curve maps a user's ratio against an elite ratio onto
# [0, max_points]:  max_points * ln(1 + alpha * u/e) / ln(1 + alpha)

import math

from .constants import EPLEY_REPS_DIVISOR, MAX_RANK_POINTS


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def one_rep_max(weight: float | None, reps: int | None) -> float | None:
    """
    Estimates a one-rep max with the Epley formula.
    Returns None (unavailable) instead of raising when the inputs can't produce an estimate.
    """
    if weight is None or reps is None:
        return None
    if weight < 0 or reps <= 0:
        return None
    if reps == 1:
        return float(weight)
    return weight * (1 + reps / EPLEY_REPS_DIVISOR)


def strength_to_weight_ratio(one_rm: float | None, bodyweight: float | None) -> float | None:
    if one_rm is None or bodyweight is None or bodyweight <= 0:
        return None
    return one_rm / bodyweight


def curve_score(alpha: float, elite_ratio: float, user_ratio: float, max_points: int = MAX_RANK_POINTS) -> int:
    """
    Converts a performance ratio into rank points.

    The curve is monotonically increasing in user_ratio / elite_ratio and saturates
    at max_points. Alpha sets how concave it is; a non-positive alpha falls back to
    the linear limit of the curve.

    Returns 0 when either ratio is non-positive.
    """
    if user_ratio is None or user_ratio <= 0:
        return 0
    if elite_ratio is None or elite_ratio <= 0:
        return 0

    relative = user_ratio / elite_ratio
    if alpha is None or alpha <= 0:
        fraction = relative
    else:
        fraction = math.log(1 + alpha * relative) / math.log(1 + alpha)

    score = round_half_up(max_points * fraction)
    return max(0, min(score, max_points))
