"""Regions of interest over a downscaled (1/8) motion mask."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


def _resolve(value: float, extent: int) -> float:
    """Absolute coordinate when >= 1, otherwise a fraction of the extent."""
    return value if value >= 1 else value * extent


class RegionOfInterest(ABC):
    """A region of the frame that counts foreground pixels and triggers on a threshold."""

    def __init__(self, threshold: float = 0) -> None:
        self.threshold = threshold
        self.area = 0
        self.foreground = 0
        self._next: Optional[RegionOfInterest] = None

    @property
    def next(self) -> Optional["RegionOfInterest"]:
        """The next region in the chain, if any."""
        return self._next

    def threshold_count(self) -> int:
        """Number of foreground pixels needed to trigger."""
        t = self.threshold
        return int(t) if t >= 1 else int(t * self.area)

    def triggered(self) -> bool:
        """Whether enough foreground pixels were counted."""
        return self.foreground >= self.threshold_count()

    def forget(self) -> None:
        """Reset the area and foreground counters."""
        self.area = 0
        self.foreground = 0

    def increment_area(self) -> None:
        self.area += 1

    def increment_foreground(self) -> None:
        self.foreground += 1

    def trigger_status(self) -> str:
        """Human-readable summary of the trigger state."""
        return (
            f"Triggered {self.foreground}/{self.area} pixels "
            f"(threshold is {self.threshold_count()})"
        )

    def chain(self, other: "RegionOfInterest") -> None:
        """Append a region at the end of this chain."""
        if self._next is None:
            self._next = other
        else:
            self._next.chain(other)

    def __iter__(self):
        region: Optional[RegionOfInterest] = self
        while region is not None:
            yield region
            region = region._next

    @abstractmethod
    def set_boundaries(self, width: int, height: int) -> None:
        """Resolve the region against a mask of the given size."""

    @abstractmethod
    def bounding_box(self) -> tuple[int, int, int, int]:
        """Return (x1, y1, x2, y2) enclosing the region."""

    @abstractmethod
    def includes(self, x: int, y: int) -> bool:
        """Whether the mask cell (x, y) lies inside the region."""

    @abstractmethod
    def draw_to_canvas(self) -> str:
        """JavaScript that draws the region on a 2D canvas context named ctx."""


class Rect(RegionOfInterest):
    """Axis-aligned rectangular region."""

    def __init__(
        self, x: float, y: float, width: float, height: float, threshold: float = 0
    ) -> None:
        super().__init__(threshold)
        self._x = x / 8
        self._y = y / 8
        self._w = width / 8
        self._h = height / 8
        self._box = (0, 0, 0, 0)

    def set_boundaries(self, width: int, height: int) -> None:
        x1 = int(_resolve(self._x, width))
        y1 = int(_resolve(self._y, height))
        x2 = int(_resolve(self._w, width) + x1)
        y2 = int(_resolve(self._h, height) + y1)
        self._box = (x1, y1, x2, y2)

    def bounding_box(self) -> tuple[int, int, int, int]:
        return self._box

    def includes(self, x: int, y: int) -> bool:
        x1, y1, x2, y2 = self._box
        return x1 <= x <= x2 and y1 <= y <= y2

    def draw_to_canvas(self) -> str:
        x1, y1, x2, y2 = self._box
        return (
            f"ctx.strokeRect({x1 * 8}, {y1 * 8}, "
            f"{(x2 - x1) * 8}, {(y2 - y1) * 8})"
        )


class Circle(RegionOfInterest):
    """Circular region."""

    def __init__(self, x: float, y: float, radius: float, threshold: float = 0) -> None:
        super().__init__(threshold)
        self._x = x / 8
        self._y = y / 8
        self._radius = radius / 8
        self._radius2 = self._radius**2
        self._origin = (0, 0)

    def set_boundaries(self, width: int, height: int) -> None:
        self._origin = (int(_resolve(self._x, width)), int(_resolve(self._y, height)))

    def bounding_box(self) -> tuple[int, int, int, int]:
        ox, oy = self._origin
        r = int(self._radius)
        return (ox - r if ox > r else 0, oy - r if oy > r else 0, ox + r, oy + r)

    def includes(self, x: int, y: int) -> bool:
        ox, oy = self._origin
        dx = x - ox
        dy = y - oy
        return dx * dx + dy * dy <= self._radius2

    def draw_to_canvas(self) -> str:
        ox, oy = self._origin
        return (
            f"ctx.arc({ox * 8}, {oy * 8}, {self._radius * 8:.2f}, "
            "0, 2 * Math.PI, false); ctx.stroke();"
        )