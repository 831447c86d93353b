import math

BASE_POINTS = 100
MAX_SPEED_BONUS = 50
FULL_BONUS_WINDOW_MS = 5000
BONUS_CUTOFF_MS = 10000


def clamp_response_time(response_time_ms) -> int:
    """Client-reported latency, never below zero; non-finite input counts as 0."""
    if not math.isfinite(response_time_ms):
        return 0
    return max(0, int(response_time_ms))


def score(is_correct: bool, response_time_ms) -> int:
    """Points for one answer.

    Incorrect answers score 0. Correct answers get 100 points plus a speed
    bonus: a flat 50 under 5s, then floor(50 * (1 - (t - 5000) / 5000))
    until 10s, nothing after.
    """
    if not is_correct:
        return 0
    elapsed = clamp_response_time(response_time_ms)
    points = BASE_POINTS
    if elapsed < FULL_BONUS_WINDOW_MS:
        points += MAX_SPEED_BONUS
    elif elapsed < BONUS_CUTOFF_MS:
        window = BONUS_CUTOFF_MS - FULL_BONUS_WINDOW_MS
        # exact floor of 50 * (10000 - t) / 5000
        points += MAX_SPEED_BONUS * (BONUS_CUTOFF_MS - elapsed) // window
    return points
