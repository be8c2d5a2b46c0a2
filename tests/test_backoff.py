from tubequeue.utils import backoff_delay


def test_first_attempt_fires_immediately():
    assert backoff_delay(0) == 0


def test_reference_sequence():
    assert [backoff_delay(a) for a in range(8)] == [0, 5, 15, 45, 135, 300, 300, 300]


def test_matches_closed_form_and_is_bounded():
    delays = [backoff_delay(a) for a in range(0, 40)]
    for a in range(1, 40):
        assert delays[a] == min(300, 5 * 3 ** (a - 1))
    assert delays == sorted(delays)
    assert max(delays) == 300


def test_huge_attempt_counts_stay_at_cap():
    assert backoff_delay(10_000) == 300


def test_custom_constants():
    assert [backoff_delay(a, base=30, growth=2, cap=480) for a in range(1, 7)] == [30, 60, 120, 240, 480, 480]
