"""Perspective correction of a detected document and capture quality checks."""

import logging
from typing import Optional

from docscan.config import settings
from docscan.errors import ExtractionError
from docscan.geometry import CornerPoints, is_valid_quad, quad_area, target_size
from docscan.imaging import ImageProcessor
from docscan.models import ExtractionResult, QualityResult

logger = logging.getLogger(__name__)


class PerspectiveExtractor:
	"""Responsible for warping a document quad into an upright rectangle."""

	def __init__(self, processor: Optional[ImageProcessor], jpeg_quality: int = 92):
		self.processor = processor
		self.jpeg_quality = jpeg_quality

	def _warp(self, image, corners: CornerPoints):
		if self.processor is None:
			raise ExtractionError("Image processor not available")
		if not is_valid_quad(corners):
			raise ExtractionError("Corners form a self-intersecting quadrilateral")
		width, height = target_size(corners)
		if width <= 0 or height <= 0:
			raise ExtractionError(f"Degenerate target size {width}x{height}")
		warped = self.processor.warp_perspective(image, corners.as_array(), width, height)
		return warped, width, height

	def extract(self, image, corners: CornerPoints) -> ExtractionResult:
		"""Never raises: any failure comes back as ``success=False``."""
		try:
			warped, width, height = self._warp(image, corners)
			data = self.processor.encode_jpeg(warped, self.jpeg_quality)
		except ExtractionError as e:
			logger.info("Extraction rejected: %s", e.message)
			return ExtractionResult(success=False, message=e.message)
		except Exception as e:
			logger.warning("Perspective extraction failed: %s", e, exc_info=True)
			return ExtractionResult(success=False, message=f"Extraction error: {e}")

		logger.debug("Extracted document %dx%d (%d bytes)", width, height, len(data))
		return ExtractionResult(success=True, image=warped, data=data, width=width, height=height)


def extract_document(image, corners: CornerPoints, processor: Optional[ImageProcessor]) -> ExtractionResult:
	return PerspectiveExtractor(processor, jpeg_quality=settings.JPEG_QUALITY).extract(image, corners)


def validate_quality(
	extracted_width: int,
	extracted_height: int,
	corners: CornerPoints,
	source_width: int,
	source_height: int,
	min_resolution=(400, 250),
	min_area_ratio: float = 0.1,
) -> QualityResult:
	"""Check a capture is usable; issues are user-facing (Spanish)."""
	issues = []
	min_w, min_h = min_resolution
	if extracted_width < min_w or extracted_height < min_h:
		issues.append(f"Resolución muy baja ({extracted_width}x{extracted_height}). Mínimo: {min_w}x{min_h}")

	source_area = source_width * source_height
	area_ratio = quad_area(corners) / source_area if source_area else 0.0
	if area_ratio < min_area_ratio:
		issues.append("El documento ocupa muy poco espacio en la imagen. Acércate más.")

	if not is_valid_quad(corners):
		issues.append("Las esquinas del documento no forman un cuadrilátero válido")

	return QualityResult(
		is_valid=not issues,
		issues=issues,
		resolution=(extracted_width, extracted_height),
		document_area_ratio=area_ratio,
	)


def highlight_document(image, corners: CornerPoints, processor: Optional[ImageProcessor]):
	"""Overlay the detected quad for the confirmation step; returns the image untouched if drawing fails."""
	if processor is None:
		return image
	try:
		return processor.highlight(image, corners.as_array(), (0, 165, 255), 0.3)
	except Exception:
		logger.warning("Could not draw document highlight", exc_info=True)
		return image
