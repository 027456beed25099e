import numpy as np
import pytest

from docscan.detection import CornerDetector, OpenCVContourDetector, calculate_confidence, needs_manual_adjustment
from docscan.geometry import CornerPoints, Point
from docscan.models import DetectionResult

from conftest import FakeContourDetector, rectangle


class TestCalculateConfidence:
	"""Area and aspect heuristics on a 1000x1000 frame."""

	@pytest.mark.parametrize(
		"corners,expected",
		[
			(rectangle(200, 300, 800, 700), 1.0),
			(rectangle(10, 10, 990, 990), 0.7),
			(rectangle(0, 0, 100, 100), 0.5),
			(rectangle(100, 400, 900, 600), 0.6),
			(rectangle(0, 0, 400, 50), 0.3),
		],
	)
	def test_heuristics(self, corners, expected):
		assert calculate_confidence(corners, 1000, 1000) == pytest.approx(expected)

	def test_sheared_quad_uses_edge_lengths(self):
		corners = CornerPoints(
			top_left=Point(0, 0),
			top_right=Point(100, 400),
			bottom_left=Point(0, 100),
			bottom_right=Point(100, 500),
		)
		# area ratio 0.25 on 200x200; mean edges ~412 wide by 100 high
		assert calculate_confidence(corners, 200, 200) == pytest.approx(0.6)

	def test_stays_in_unit_interval(self):
		value = calculate_confidence(rectangle(0, 0, 1, 1), 1000, 1000)
		assert 0.0 <= value <= 1.0


class TestCornerDetector:
	def test_reports_detected_corners(self):
		corners = rectangle(200, 300, 800, 700)
		result = CornerDetector(FakeContourDetector(corners)).detect(np.zeros((1000, 1000, 3), np.uint8))
		assert result.success
		assert result.corners == corners
		assert result.confidence == pytest.approx(1.0)

	def test_nothing_found(self):
		result = CornerDetector(FakeContourDetector(None)).detect(np.zeros((100, 100, 3), np.uint8))
		assert not result.success
		assert result.confidence == 0.0
		assert result.message == "No document detected in image"

	def test_detector_error_is_reported_not_raised(self):
		detector = FakeContourDetector(error=RuntimeError("boom"))
		result = CornerDetector(detector).detect(np.zeros((100, 100, 3), np.uint8))
		assert not result.success
		assert "boom" in result.message

	def test_missing_collaborator(self):
		result = CornerDetector(None).detect(np.zeros((100, 100, 3), np.uint8))
		assert not result.success
		assert result.confidence == 0.0

	def test_finds_white_card_on_black_background(self):
		image = np.zeros((600, 800, 3), np.uint8)
		image[100:500, 100:700] = 255

		result = CornerDetector(OpenCVContourDetector()).detect(image)

		assert result.success
		c = result.corners
		for point, (x, y) in [
			(c.top_left, (100, 100)),
			(c.top_right, (700, 100)),
			(c.bottom_right, (700, 500)),
			(c.bottom_left, (100, 500)),
		]:
			assert abs(point.x - x) <= 5
			assert abs(point.y - y) <= 5

	def test_blank_image_has_no_document(self):
		result = CornerDetector(OpenCVContourDetector()).detect(np.zeros((300, 400, 3), np.uint8))
		assert not result.success


class TestNeedsManualAdjustment:
	def test_failed_detection(self):
		assert needs_manual_adjustment(DetectionResult(success=False))

	def test_low_confidence(self):
		result = DetectionResult(success=True, corners=rectangle(0, 0, 10, 10), confidence=0.3)
		assert needs_manual_adjustment(result)

	def test_confident_detection(self):
		result = DetectionResult(success=True, corners=rectangle(0, 0, 10, 10), confidence=0.5)
		assert not needs_manual_adjustment(result)
