"""Count objects crossing a vertical line in a motion foreground mask."""

from __future__ import annotations

import json
import time
from typing import Optional, Protocol

_T_LIMIT = 65000
_BANDS = (-3, -2, -1, 1, 2, 3)


class ForegroundMask(Protocol):
    """Anything exposing a foreground mask of a given size."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def is_foreground(self, x: int, y: int) -> bool: ...


def _resolve(value: float, extent: int) -> float:
    """Mask coordinate from a pixel coordinate (>= 1) or a fraction of the extent."""
    return value / 8 if value >= 1 else value * extent


class LineCrossingCounter:
    """Detects objects that cross a vertical line, in either direction.

    Three bands on each side of the line are watched; the frame at which
    each band last saw motion is recorded and the order of those events
    decides the crossing direction.
    """

    def __init__(self, detector: ForegroundMask) -> None:
        self.detector = detector
        self._x = 0.0
        self._miny = 0.0
        self._maxy = 0.999
        self._t = 0
        self._lag = 3
        self._wideness = 4
        self._ltr_count = 0
        self._rtl_count = 0
        self._motion = [0] * 7
        self._debounce = 0.0
        self._last_touch: Optional[float] = None

    @property
    def left_to_right_count(self) -> int:
        """Objects that crossed from left to right so far."""
        return self._ltr_count

    @property
    def right_to_left_count(self) -> int:
        """Objects that crossed from right to left so far."""
        return self._rtl_count

    def line_at(self, x: float) -> None:
        """Place the line: a pixel coordinate if >= 1, else a fraction of the width."""
        self._x = x

    def above(self, y: float) -> None:
        """Limit the analysis to the region above this coordinate."""
        self._miny = y

    def below(self, y: float) -> None:
        """Limit the analysis to the region below this coordinate."""
        self._maxy = y

    def set_lag(self, lag: int) -> None:
        """Number of frames an object may take to move from one band to the next."""
        self._lag = int(lag)

    def set_wideness(self, wideness: int) -> None:
        """Width of each band, in mask cells."""
        self._wideness = int(wideness)

    def debounce_seconds(self, seconds: float) -> None:
        """Minimum time between two reported crossings."""
        self._debounce = float(seconds)

    def band_width(self) -> int:
        """Width of each band in pixels."""
        return self._wideness * 8

    def line_x(self, width: int = 1) -> int:
        """Mask column of the line for a mask of the given width."""
        return int(_resolve(self._x, width))

    def forget(self) -> None:
        """Reset motion history and counters."""
        self._motion = [0] * 7
        self._ltr_count = 0
        self._rtl_count = 0

    def set(self, param: str, value: float) -> bool:
        """Set a parameter by name; return False if the name is unknown."""
        setters = {
            "lineAt": self.line_at,
            "above": self.above,
            "below": self.below,
            "lag": self.set_lag,
            "wideness": self.set_wideness,
            "debounce": self.debounce_seconds,
        }
        setter = setters.get(param)
        if setter is None:
            return False
        setter(value)
        return True

    def update(self) -> None:
        """Scan the bands around the line in the detector's current mask."""
        width = int(self.detector.width)
        height = int(self.detector.height)
        x = self.line_x(width)
        top = int(height - _resolve(self._miny, height))
        bottom = int(height - _resolve(self._maxy, height))

        if x < 1:
            raise ValueError("x-coordinate must be >= 8")
        if bottom >= top:
            raise ValueError("above/below limits mismatch")

        self._t += 1
        if self._t > _T_LIMIT:
            self._t = 1

        for band in _BANDS:
            slot = band + 3
            if self._motion[slot] >= self._t - self._lag:
                continue
            for j in range(self._wideness):
                column = band * self._wideness + j + x
                if column < 0 or column > width:
                    continue
                if any(
                    self.detector.is_foreground(column, y) for y in range(bottom, top)
                ):
                    self._motion[slot] = self._t
                if self._motion[slot]:
                    break

    def _gt(self, a: int, b: int) -> int:
        """10 if band a moved strictly after band b within the lag, 1 if together, else 0."""
        ma = self._motion[a + 3]
        mb = self._motion[b + 3]
        if ma == 0 or mb == 0 or ma < self._t - 2 * self._lag:
            return 0
        if ma > mb and ma - mb <= self._lag:
            return 10
        return int(ma >= mb and ma - mb <= self._lag)

    def _debounced(self) -> bool:
        return (
            self._last_touch is None
            or time.monotonic() - self._last_touch >= self._debounce
        )

    def _touch(self) -> None:
        self._last_touch = time.monotonic()

    @staticmethod
    def _is_crossing(score: int) -> bool:
        return score > 20 and score % 10 > 0

    def crossed_left_to_right(self) -> bool:
        """Whether an object just crossed from left to right; counts it if so."""
        if not self._debounced():
            return False
        score = self._gt(-2, -3) + self._gt(-1, -2) + self._gt(1, -1) + self._gt(2, 1)
        if self._is_crossing(score):
            self._ltr_count += 1
            self._touch()
            return True
        return False

    def crossed_right_to_left(self) -> bool:
        """Whether an object just crossed from right to left; counts it if so."""
        if not self._debounced():
            return False
        score = self._gt(-2, -1) + self._gt(-1, 1) + self._gt(1, 2) + self._gt(2, 3)
        if self._is_crossing(score):
            self._rtl_count += 1
            self._touch()
            return True
        return False

    def to_json(self) -> str:
        """Counters and the age, in frames, of the last motion in each band."""
        ages = ", ".join(str(self._t - self._motion[band + 3]) for band in _BANDS)
        return (
            f'{{"ltr":{self._ltr_count}, "rtl":{self._rtl_count},'
            f'"ages":[{ages}]}}'
        )

    def debug(self) -> str:
        return f"motion = {self.to_json()}"

    def current_config(self) -> str:
        return (
            f"lineAt={self._x:.2f}, above={self._miny:.2f}, below={self._maxy:.2f}, "
            f"lag={self._lag}, wideness={self._wideness}, "
            f"debounce={int(self._debounce)}"
        )

    def as_dict(self) -> dict:
        """The JSON summary as a dictionary."""
        return json.loads(self.to_json())