import pytest

from livequiz.services.scoring import clamp_response_time, score


@pytest.mark.parametrize("elapsed", [0, 1, 2500, 4999, 5000, 7500, 9999, 10000, 60000])
def test_incorrect_answers_score_zero(elapsed):
    assert score(False, elapsed) == 0


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (0, 150),
        (3000, 150),
        (4999, 150),
        (6000, 140),
        (7500, 125),
        (9000, 110),
        (9999, 100),
        (10000, 100),
        (45000, 100),
    ],
)
def test_correct_answer_points(elapsed, expected):
    assert score(True, elapsed) == expected


def test_bonus_decay_starts_at_full_bonus():
    # floor(50 * (1 - 0 / 5000)) keeps the whole bonus at exactly 5s
    assert score(True, 5000) == 150
    assert score(True, 5001) == 149


@pytest.mark.parametrize("elapsed", [-1, -4999, -10**9])
def test_negative_latency_is_clamped(elapsed):
    assert score(True, elapsed) == score(True, 0)


def test_fractional_latency_truncated():
    assert clamp_response_time(7500.9) == 7500
    assert clamp_response_time(-0.5) == 0


def test_bonus_never_increases_with_latency():
    points = [score(True, t) for t in range(0, 12000, 250)]
    assert points == sorted(points, reverse=True)


@pytest.mark.parametrize("elapsed", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_latency_clamps_to_zero(elapsed):
    assert clamp_response_time(elapsed) == 0
