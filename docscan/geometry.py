"""Plain geometry on document corners: distances, areas and quad validity."""

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Point:
	x: float
	y: float


@dataclass(frozen=True)
class CornerPoints:
	"""Four document corners in source-image pixel coordinates."""

	top_left: Point
	top_right: Point
	bottom_left: Point
	bottom_right: Point

	def clockwise(self):
		"""Corners in TL, TR, BR, BL order."""
		return [self.top_left, self.top_right, self.bottom_right, self.bottom_left]

	def as_array(self) -> np.ndarray:
		return np.array([[p.x, p.y] for p in self.clockwise()], dtype="float32")

	@classmethod
	def from_array(cls, pts):
		"""Build from four points already ordered TL, TR, BR, BL."""
		tl, tr, br, bl = [Point(float(x), float(y)) for x, y in pts]
		return cls(top_left=tl, top_right=tr, bottom_left=bl, bottom_right=br)

	def to_dict(self) -> dict:
		return {
			"topLeft": {"x": self.top_left.x, "y": self.top_left.y},
			"topRight": {"x": self.top_right.x, "y": self.top_right.y},
			"bottomLeft": {"x": self.bottom_left.x, "y": self.bottom_left.y},
			"bottomRight": {"x": self.bottom_right.x, "y": self.bottom_right.y},
		}


def distance(a: Point, b: Point) -> float:
	return math.hypot(b.x - a.x, b.y - a.y)


def polygon_area(points) -> float:
	"""Shoelace area of a closed polygon given in traversal order."""
	total = 0.0
	n = len(points)
	for i in range(n):
		j = (i + 1) % n
		total += points[i].x * points[j].y
		total -= points[j].x * points[i].y
	return abs(total) / 2


def quad_area(corners: CornerPoints) -> float:
	return polygon_area(corners.clockwise())


def _ccw(a: Point, b: Point, c: Point) -> bool:
	return (c.y - a.y) * (b.x - a.x) > (b.y - a.y) * (c.x - a.x)


def segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
	"""True when segment p1-p2 properly crosses segment p3-p4."""
	return _ccw(p1, p3, p4) != _ccw(p2, p3, p4) and _ccw(p1, p2, p3) != _ccw(p1, p2, p4)


def is_valid_quad(corners: CornerPoints) -> bool:
	"""A quad is usable when neither pair of opposite edges crosses."""
	c = corners
	if segments_intersect(c.top_left, c.top_right, c.bottom_left, c.bottom_right):
		return False
	if segments_intersect(c.top_left, c.bottom_left, c.top_right, c.bottom_right):
		return False
	return True


def edge_lengths(corners: CornerPoints):
	"""Return (top, bottom, left, right) edge lengths."""
	c = corners
	return (
		distance(c.top_left, c.top_right),
		distance(c.bottom_left, c.bottom_right),
		distance(c.top_left, c.bottom_left),
		distance(c.top_right, c.bottom_right),
	)


def target_size(corners: CornerPoints):
	"""Output (width, height) of a rectified quad."""
	top, bottom, left, right = edge_lengths(corners)
	return int(round(max(top, bottom))), int(round(max(left, right)))


def default_corners(width: float, height: float, padding: float = 20) -> CornerPoints:
	"""Image bounds inset by ``padding`` pixels, used when detection is unreliable."""
	return CornerPoints(
		top_left=Point(padding, padding),
		top_right=Point(width - padding, padding),
		bottom_left=Point(padding, height - padding),
		bottom_right=Point(width - padding, height - padding),
	)


def order_points(pts) -> np.ndarray:
	"""Order four arbitrary points as TL, TR, BR, BL by coordinate sum and difference."""
	pts = np.asarray(pts, dtype="float32").reshape(4, 2)
	rect = np.zeros((4, 2), dtype="float32")
	s = pts.sum(axis=1)
	rect[0] = pts[np.argmin(s)]
	rect[2] = pts[np.argmax(s)]
	diff = np.diff(pts, axis=1)
	rect[1] = pts[np.argmin(diff)]
	rect[3] = pts[np.argmax(diff)]
	return rect
