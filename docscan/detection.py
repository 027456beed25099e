"""Document corner detection."""

import logging
from typing import Optional, Protocol

import cv2
import imutils
import numpy as np

from docscan.geometry import CornerPoints, edge_lengths, order_points, quad_area
from docscan.models import DetectionResult

logger = logging.getLogger(__name__)


class ContourDetector(Protocol):
	"""Finds the outline of the document in a photo."""

	def find_document_contour(self, image): ...

	def corners_of(self, contour) -> Optional[CornerPoints]: ...


class OpenCVContourDetector:
	"""Responsible for locating the largest four-sided contour in an image."""

	def __init__(self, blur_size=5, canny_low=50, canny_high=150, approx_epsilon=0.02, max_contours=10):
		self.blur_size = blur_size
		self.canny_low = canny_low
		self.canny_high = canny_high
		self.approx_epsilon = approx_epsilon
		self.max_contours = max_contours

	def edges(self, image):
		"""Grayscale, blur, Canny, then dilate so broken borders join up."""
		gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
		blurred = cv2.GaussianBlur(gray, (self.blur_size, self.blur_size), 0)
		edged = cv2.Canny(blurred, self.canny_low, self.canny_high)
		kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 3))
		return cv2.dilate(edged, kernel, iterations=1)

	def find_document_contour(self, image):
		edged = self.edges(image)
		cnts = cv2.findContours(edged.copy(), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
		cnts = imutils.grab_contours(cnts)
		cnts = sorted(cnts, key=cv2.contourArea, reverse=True)[: self.max_contours]
		for c in cnts:
			peri = cv2.arcLength(c, True)
			approx = cv2.approxPolyDP(c, self.approx_epsilon * peri, True)
			if len(approx) == 4:
				return approx
		return None

	def corners_of(self, contour):
		if contour is None or len(contour) != 4:
			return None
		return CornerPoints.from_array(order_points(np.asarray(contour).reshape(4, 2)))


def calculate_confidence(corners: CornerPoints, image_width: float, image_height: float) -> float:
	"""Heuristic confidence that ``corners`` outline a real document.

	Quads covering less than 10% of the frame are halved, near full-frame
	quads (over 95%) are scaled by 0.7, and quads whose mean edge-length
	width/height ratio falls outside [0.3, 3] are scaled by 0.6.
	"""
	confidence = 1.0
	image_area = image_width * image_height
	area_ratio = quad_area(corners) / image_area if image_area else 0
	if area_ratio < 0.1:
		confidence *= 0.5
	elif area_ratio > 0.95:
		confidence *= 0.7

	top, bottom, left, right = edge_lengths(corners)
	width = (top + bottom) / 2
	height = (left + right) / 2
	aspect = width / height if height else 0
	if aspect < 0.3 or aspect > 3:
		confidence *= 0.6

	return max(0.0, min(1.0, confidence))


class CornerDetector:
	"""Responsible for turning a photo into document corners with a confidence score."""

	def __init__(self, contour_detector: Optional[ContourDetector]):
		self.contour_detector = contour_detector

	def detect(self, image) -> DetectionResult:
		if self.contour_detector is None:
			return DetectionResult(success=False, confidence=0.0, message="Contour detector not available")
		try:
			contour = self.contour_detector.find_document_contour(image)
			corners = self.contour_detector.corners_of(contour) if contour is not None else None
		except Exception as e:
			logger.warning("Corner detection failed: %s", e, exc_info=True)
			return DetectionResult(success=False, confidence=0.0, message=f"Detection error: {e}")

		if corners is None:
			return DetectionResult(success=False, confidence=0.0, message="No document detected in image")

		h, w = image.shape[:2]
		confidence = calculate_confidence(corners, w, h)
		logger.debug("Detected document corners with confidence %.2f", confidence)
		return DetectionResult(success=True, corners=corners, confidence=confidence)


def needs_manual_adjustment(result: DetectionResult, threshold: float = 0.5) -> bool:
	return not result.success or result.corners is None or result.confidence < threshold
