import json

import pytest

from minimqtt.linecrossing import LineCrossingCounter


class _Mask:
    """A hand-built foreground mask whose lit columns span the full height."""

    def __init__(self, width=40, height=10):
        self.width = width
        self.height = height
        self.columns = set()

    def light(self, *columns):
        self.columns = set(columns)

    def is_foreground(self, x, y):
        return 0 <= y < self.height and x in self.columns


def _counter(mask):
    counter = LineCrossingCounter(mask)
    counter.line_at(0.5)
    return counter


def _run(counter, mask, frames):
    for columns in frames:
        mask.light(*columns)
        counter.update()


# Line at column 20 with bands of 4: band -3 = 8..11, -2 = 12..15, -1 = 16..19,
# band 1 = 24..27, 2 = 28..31, 3 = 32..35.
_WARMUP = [(), (), ()]
_LEFT_TO_RIGHT = _WARMUP + [(9,), (13,), (17,), (25, 29)]
_RIGHT_TO_LEFT = _WARMUP + [(33,), (29,), (25,), (17, 13)]


def test_left_to_right_crossing_is_counted():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, _LEFT_TO_RIGHT)
    assert counter.crossed_right_to_left() is False
    assert counter.crossed_left_to_right() is True
    assert counter.left_to_right_count == 1
    assert counter.right_to_left_count == 0


def test_right_to_left_crossing_is_counted():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, _RIGHT_TO_LEFT)
    assert counter.crossed_left_to_right() is False
    assert counter.crossed_right_to_left() is True
    assert counter.right_to_left_count == 1
    assert counter.left_to_right_count == 0


def test_clean_step_by_step_crossing_needs_simultaneous_bands():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, _WARMUP + [(9,), (13,), (17,), (25,), (29,)])
    assert counter.crossed_left_to_right() is False
    assert counter.left_to_right_count == 0


def test_no_motion_is_recorded_during_first_lag_frames():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, [(9,), (9,), (9,)])
    assert counter.as_dict()["ages"] == [3] * 6
    mask.light(9)
    counter.update()
    assert counter.as_dict()["ages"][0] == 0


def test_to_json_is_valid_and_reflects_counts():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, _LEFT_TO_RIGHT)
    counter.crossed_left_to_right()
    data = json.loads(counter.to_json())
    assert data["ltr"] == counter.left_to_right_count
    assert data["rtl"] == counter.right_to_left_count
    assert len(data["ages"]) == 6
    assert counter.debug() == "motion = " + counter.to_json()


def test_forget_resets_history_and_counters():
    mask = _Mask()
    counter = _counter(mask)
    _run(counter, mask, _LEFT_TO_RIGHT)
    counter.crossed_left_to_right()
    counter.forget()
    data = counter.as_dict()
    assert data["ltr"] == 0
    assert data["rtl"] == 0
    assert data["ages"] == [len(_LEFT_TO_RIGHT)] * 6
    assert counter.crossed_left_to_right() is False


def test_debounce_blocks_repeated_crossings():
    mask = _Mask()
    counter = _counter(mask)
    assert counter.set("debounce", 1000) is True
    _run(counter, mask, _LEFT_TO_RIGHT)
    assert counter.crossed_left_to_right() is True
    assert counter.crossed_left_to_right() is False
    assert counter.left_to_right_count == 1


def test_line_at_zero_is_rejected():
    mask = _Mask()
    counter = LineCrossingCounter(mask)
    with pytest.raises(ValueError, match="x-coordinate must be >= 8"):
        counter.update()


def test_mismatched_limits_are_rejected():
    mask = _Mask()
    counter = _counter(mask)
    counter.above(0.5)
    counter.below(0.5)
    with pytest.raises(ValueError, match="above/below limits mismatch"):
        counter.update()


def test_line_x_absolute_and_relative():
    counter = LineCrossingCounter(_Mask())
    counter.line_at(16)
    assert counter.line_x(40) == 16 // 8
    counter.line_at(0.5)
    assert counter.line_x(40) == 40 // 2


@pytest.mark.parametrize("wideness", [1, 2, 4, 7])
def test_band_width_is_eight_pixels_per_cell(wideness):
    counter = LineCrossingCounter(_Mask())
    counter.set_wideness(wideness)
    assert counter.band_width() == wideness * 8


def test_default_config():
    counter = LineCrossingCounter(_Mask())
    assert counter.current_config() == (
        "lineAt=0.00, above=0.00, below=1.00, lag=3, wideness=4, debounce=0"
    )


def test_set_known_and_unknown_parameters():
    counter = LineCrossingCounter(_Mask())
    assert counter.set("lag", 5) is True
    assert counter.set("wideness", 2) is True
    assert counter.set("lineAt", 0.25) is True
    assert counter.set("nonsense", 1) is False
    config = counter.current_config()
    assert "lag=5" in config
    assert "wideness=2" in config
    assert "lineAt=0.25" in config
    assert counter.band_width() == 2 * 8