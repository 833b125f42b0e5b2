"""Result types produced by the OCR pipeline."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np

Point = Tuple[float, float]


@dataclass(frozen=True)
class QuadBox:
    """Rotated rectangle given by four corners in image pixel coordinates.

    Corners are ordered clockwise starting at the top-left of the edge
    closest to horizontal, so ``points[0] -> points[1]`` runs along the
    text direction.
    """
    points: Tuple[Point, Point, Point, Point]

    @classmethod
    def from_array(cls, points) -> "QuadBox":
        arr = np.asarray(points, dtype=np.float64).reshape(4, 2)
        return cls(tuple((float(x), float(y)) for x, y in arr))

    @classmethod
    def from_rect(cls, x: float, y: float, width: float, height: float) -> "QuadBox":
        """Axis-aligned box (zero rotation)."""
        return cls((
            (float(x), float(y)),
            (float(x + width), float(y)),
            (float(x + width), float(y + height)),
            (float(x), float(y + height)),
        ))

    def as_array(self) -> np.ndarray:
        return np.array(self.points, dtype=np.float32)

    @property
    def width(self) -> float:
        p = self.as_array()
        return float((np.linalg.norm(p[0] - p[1]) + np.linalg.norm(p[3] - p[2])) / 2)

    @property
    def height(self) -> float:
        p = self.as_array()
        return float((np.linalg.norm(p[0] - p[3]) + np.linalg.norm(p[1] - p[2])) / 2)

    @property
    def center(self) -> Point:
        p = np.array(self.points, dtype=np.float64)
        cx, cy = p.mean(axis=0)
        return float(cx), float(cy)

    @property
    def angle(self) -> float:
        """Orientation of the first edge in degrees (clockwise-positive, y down)."""
        (x0, y0), (x1, y1) = self.points[0], self.points[1]
        return math.degrees(math.atan2(y1 - y0, x1 - x0))

    def scale(self, sx: float, sy: float) -> "QuadBox":
        return QuadBox(tuple((x * sx, y * sy) for x, y in self.points))

    def to_list(self) -> List[List[float]]:
        return [[x, y] for x, y in self.points]


@dataclass(frozen=True)
class TextRegion:
    """A recognized text region."""
    box: QuadBox
    text: str
    score: float

    @property
    def center_x(self) -> float:
        return self.box.center[0]

    @property
    def center_y(self) -> float:
        return self.box.center[1]

    @property
    def height(self) -> float:
        return self.box.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "box": self.box.to_list(),
            "text": self.text,
            "score": self.score,
        }


@dataclass(frozen=True)
class Line:
    """Regions sharing a text row, in left-to-right order."""
    regions: Tuple[TextRegion, ...]

    @property
    def text(self) -> str:
        return " ".join(region.text for region in self.regions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "regions": [region.to_dict() for region in self.regions],
        }


@dataclass(frozen=True)
class OcrResult:
    """Transcript plus line and region metadata for one image."""
    text: str
    lines: Tuple[Line, ...]
    regions: Tuple[TextRegion, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "lines": [line.to_dict() for line in self.lines],
            "regions": [region.to_dict() for region in self.regions],
        }

    def __str__(self):
        return self.text
