"""End-to-end document scanning: corners, extraction, preprocessing, OCR and validation."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from docscan.config import settings
from docscan.crossval import analyze_text, failed_result
from docscan.detection import CornerDetector, OpenCVContourDetector, needs_manual_adjustment
from docscan.errors import CollaboratorUnavailableError, ScannerError
from docscan.geometry import CornerPoints, default_corners
from docscan.imaging import OpenCVImageProcessor, decode_image
from docscan.loader import CollaboratorLoader
from docscan.models import DetectionResult, ExtractionResult, OCRResult, PersonalData, QualityResult
from docscan.ocr import load_tesseract, run_two_pass
from docscan.perspective import PerspectiveExtractor, validate_quality
from docscan.preprocess import MRZZonePreprocessor, OCRPreprocessor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


@dataclass
class Collaborators:
	"""Loaders for the external collaborators, passed explicitly into every pipeline call."""

	image: CollaboratorLoader
	contours: CollaboratorLoader
	ocr: CollaboratorLoader

	@classmethod
	def default(cls, timeout: Optional[float] = None):
		timeout = timeout or settings.LOAD_TIMEOUT_SECONDS
		return cls(
			image=CollaboratorLoader("OpenCV image processor", OpenCVImageProcessor, timeout),
			contours=CollaboratorLoader("OpenCV contour detector", OpenCVContourDetector, timeout),
			ocr=CollaboratorLoader("Tesseract", load_tesseract, timeout),
		)

	async def load_all(self):
		results = await asyncio.gather(
			self.image.load(), self.contours.load(), self.ocr.load(), return_exceptions=True
		)
		for loader, outcome in zip((self.image, self.contours, self.ocr), results):
			if isinstance(outcome, Exception):
				logger.warning("%s unavailable: %s", loader.name, outcome)
		return self


async def optional_handle(loader: CollaboratorLoader):
	"""Handle of a collaborator the pipeline can run without, or None."""
	try:
		return await loader.load()
	except CollaboratorUnavailableError:
		return None


async def detect_corners(image, collaborators: Collaborators) -> DetectionResult:
	contour_detector = await optional_handle(collaborators.contours)
	return await asyncio.to_thread(CornerDetector(contour_detector).detect, image)


def choose_corners(detection: DetectionResult, width: int, height: int) -> CornerPoints:
	"""Detected corners when trustworthy, else the padded full frame."""
	if needs_manual_adjustment(detection, settings.MANUAL_ADJUST_THRESHOLD):
		return default_corners(width, height, settings.DEFAULT_CORNER_PADDING)
	return detection.corners


async def extract_document(image, corners: CornerPoints, collaborators: Collaborators) -> ExtractionResult:
	processor = await optional_handle(collaborators.image)
	extractor = PerspectiveExtractor(processor, jpeg_quality=settings.JPEG_QUALITY)
	return await asyncio.to_thread(extractor.extract, image, corners)


def check_quality(extraction: ExtractionResult, corners: CornerPoints, source_width: int, source_height: int) -> QualityResult:
	return validate_quality(
		extraction.width,
		extraction.height,
		corners,
		source_width,
		source_height,
		min_resolution=(settings.MIN_RESOLUTION_WIDTH, settings.MIN_RESOLUTION_HEIGHT),
		min_area_ratio=settings.MIN_DOCUMENT_AREA_RATIO,
	)


async def perform_ocr(
	image,
	collaborators: Collaborators,
	document_type: str = "INE/IFE",
	personal_data: Optional[PersonalData] = None,
	on_progress: Optional[ProgressCallback] = None,
	today: Optional[date] = None,
	side: Optional[str] = None,
) -> OCRResult:
	"""Two-pass OCR of a rectified document followed by field validation.

	Never raises; failures come back as ``OCRResult(success=False)``.
	"""

	def progress(message, percent):
		if on_progress is not None:
			on_progress(message, percent)

	start = time.time()
	progress("Cargando motor OCR...", 10)
	try:
		engine_factory = await collaborators.ocr.load()
	except CollaboratorUnavailableError as e:
		logger.error("OCR unavailable: %s", e.message, extra={"error_code": e.error_code})
		return failed_result("El motor OCR no está disponible")

	try:
		processor = await optional_handle(collaborators.image)

		progress("Preprocesando imagen...", 25)
		general_image = OCRPreprocessor(processor).preprocess(image)
		mrz_image = MRZZonePreprocessor(processor, zone_percent=settings.MRZ_ZONE_PERCENT).preprocess(image)

		progress("Ejecutando OCR...", 45)
		passes = await run_two_pass(
			engine_factory,
			general_image,
			mrz_image,
			general_language=settings.GENERAL_LANGUAGE,
			mrz_language=settings.MRZ_LANGUAGE,
		)

		progress("Extrayendo campos...", 75)
		height, width = image.shape[:2]
		result = analyze_text(
			passes.text,
			passes.confidence,
			mrz_text=passes.mrz.text,
			document_type_hint=document_type,
			personal_data=personal_data,
			today=today,
			image_size=(width, height),
			side=side,
		)
	except ScannerError as e:
		logger.warning("OCR failed: %s", e.message, extra={"error_code": e.error_code})
		return failed_result(e.message)
	except Exception as e:
		logger.exception("Unexpected OCR failure")
		return failed_result(str(e))

	progress("Validación completa", 100)
	logger.info("OCR finished", extra={"duration_ms": int((time.time() - start) * 1000)})
	return result


@dataclass
class ScanOutcome:
	detection: DetectionResult
	corners: CornerPoints
	extraction: ExtractionResult
	quality: Optional[QualityResult]
	ocr: OCRResult
	duration: float


async def scan_document(
	data: bytes,
	collaborators: Collaborators,
	document_type: str = "INE/IFE",
	personal_data: Optional[PersonalData] = None,
	today: Optional[date] = None,
) -> Optional[ScanOutcome]:
	"""Run the whole pipeline unattended on encoded image bytes; None if they do not decode."""
	start = time.time()
	image = decode_image(data)
	if image is None:
		return None

	height, width = image.shape[:2]
	detection = await detect_corners(image, collaborators)
	corners = choose_corners(detection, width, height)
	extraction = await extract_document(image, corners, collaborators)
	if not extraction.success:
		return ScanOutcome(
			detection=detection,
			corners=corners,
			extraction=extraction,
			quality=None,
			ocr=failed_result(extraction.message),
			duration=time.time() - start,
		)

	quality = check_quality(extraction, corners, width, height)
	ocr = await perform_ocr(extraction.image, collaborators, document_type, personal_data, today=today)
	return ScanOutcome(
		detection=detection,
		corners=corners,
		extraction=extraction,
		quality=quality,
		ocr=ocr,
		duration=time.time() - start,
	)
