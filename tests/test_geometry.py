import numpy as np
import pytest

from docscan.geometry import (
	CornerPoints,
	Point,
	default_corners,
	distance,
	edge_lengths,
	is_valid_quad,
	order_points,
	polygon_area,
	quad_area,
	segments_intersect,
	target_size,
)

from conftest import rectangle


class TestMeasurements:
	def test_distance(self):
		assert distance(Point(0, 0), Point(3, 4)) == 5

	def test_shoelace_area_ignores_orientation(self):
		square = [Point(0, 0), Point(10, 0), Point(10, 10), Point(0, 10)]
		assert polygon_area(square) == 100
		assert polygon_area(list(reversed(square))) == 100

	def test_quad_area(self):
		assert quad_area(rectangle(0, 0, 400, 250)) == 100000

	def test_edge_lengths(self):
		assert edge_lengths(rectangle(0, 0, 400, 250)) == (400, 400, 250, 250)

	def test_target_size_uses_longest_edges(self):
		corners = CornerPoints(
			top_left=Point(0, 0),
			top_right=Point(300, 0),
			bottom_left=Point(0, 200),
			bottom_right=Point(320, 210),
		)
		width, height = target_size(corners)
		assert width == round(distance(Point(0, 200), Point(320, 210)))
		assert height == round(distance(Point(300, 0), Point(320, 210)))


class TestQuadValidity:
	def test_rectangle_is_valid(self):
		assert is_valid_quad(rectangle(10, 10, 200, 120))

	def test_bowtie_is_invalid(self):
		bowtie = CornerPoints(
			top_left=Point(0, 0),
			top_right=Point(100, 100),
			bottom_left=Point(0, 100),
			bottom_right=Point(100, 0),
		)
		assert not is_valid_quad(bowtie)

	def test_swapped_sides_are_invalid(self):
		swapped = CornerPoints(
			top_left=Point(0, 0),
			top_right=Point(100, 0),
			bottom_left=Point(100, 100),
			bottom_right=Point(0, 100),
		)
		assert not is_valid_quad(swapped)

	def test_parallel_segments_do_not_intersect(self):
		assert not segments_intersect(Point(0, 0), Point(10, 0), Point(0, 5), Point(10, 5))


class TestDefaults:
	def test_default_corners_are_inset(self):
		corners = default_corners(1200, 800, 20)
		assert corners.top_left == Point(20, 20)
		assert corners.top_right == Point(1180, 20)
		assert corners.bottom_left == Point(20, 780)
		assert corners.bottom_right == Point(1180, 780)

	def test_order_points(self):
		shuffled = [[400, 250], [0, 0], [0, 250], [400, 0]]
		ordered = order_points(shuffled)
		np.testing.assert_array_equal(ordered, np.array([[0, 0], [400, 0], [400, 250], [0, 250]], dtype="float32"))

	def test_array_round_trip(self):
		corners = rectangle(5, 6, 105, 86)
		assert CornerPoints.from_array(corners.as_array()) == corners

	def test_to_dict(self):
		data = rectangle(0, 0, 10, 20).to_dict()
		assert data["bottomRight"] == {"x": 10, "y": 20}
		assert set(data) == {"topLeft", "topRight", "bottomLeft", "bottomRight"}


@pytest.mark.parametrize("padding", [0, 20, 50])
def test_default_corners_form_valid_quad(padding):
	assert is_valid_quad(default_corners(640, 480, padding))
