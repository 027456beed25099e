import numpy as np

from docscan.errors import OCRError
from docscan.geometry import default_corners
from docscan.imaging import OpenCVImageProcessor
from docscan.loader import CollaboratorLoader
from docscan.models import DetectionResult, FailureReason
from docscan.pipeline import Collaborators, choose_corners, detect_corners, perform_ocr, scan_document

from conftest import INE_FRONT_TEXT, TODAY, FakeContourDetector, FakeEngine, build_td1, fake_collaborators, rectangle

TEXTS = {"spa": INE_FRONT_TEXT, "eng": "\n".join(build_td1())}


def card_photo_bytes():
	image = np.zeros((600, 800, 3), np.uint8)
	image[100:500, 100:700] = 255
	return OpenCVImageProcessor().encode_jpeg(image, 95)


def unavailable(name):
	def load():
		raise OSError(f"{name} missing")

	return CollaboratorLoader(name, load)


class TestCorners:
	async def test_detected_corners_are_kept(self, white_photo):
		corners = rectangle(100, 100, 1100, 700)
		collaborators = fake_collaborators(TEXTS, corners=corners)
		detection = await detect_corners(white_photo, collaborators)
		assert detection.success
		assert choose_corners(detection, 1200, 800) == corners

	async def test_missing_detector_falls_back_to_full_frame(self, white_photo):
		collaborators = fake_collaborators(TEXTS)
		collaborators.contours = unavailable("contours")
		detection = await detect_corners(white_photo, collaborators)
		assert not detection.success
		assert choose_corners(detection, 1200, 800) == default_corners(1200, 800, 20)

	def test_low_confidence_falls_back(self):
		detection = DetectionResult(success=True, corners=rectangle(0, 0, 10, 10), confidence=0.3)
		assert choose_corners(detection, 640, 480) == default_corners(640, 480, 20)


class TestPerformOCR:
	"""OCR with fake engines over a real OpenCV processor."""

	async def test_valid_document(self, white_photo):
		created = []
		progress = []
		result = await perform_ocr(
			white_photo,
			fake_collaborators(TEXTS, created=created),
			on_progress=lambda message, percent: progress.append(percent),
			today=TODAY,
		)

		assert result.success
		assert result.is_valid
		assert result.text == INE_FRONT_TEXT + "\n" + TEXTS["eng"]
		assert result.confidence == 85.0
		assert result.structure is not None
		assert len(created) == 2
		assert progress == [10, 25, 45, 75, 100]

	async def test_ocr_engine_unavailable(self, white_photo):
		collaborators = fake_collaborators(TEXTS)
		collaborators.ocr = unavailable("Tesseract")
		result = await perform_ocr(white_photo, collaborators)
		assert not result.success
		assert result.failure_reason == FailureReason.ERROR
		assert result.message == "El motor OCR no está disponible"

	async def test_engine_error_becomes_failed_result(self, white_photo):
		collaborators = fake_collaborators(TEXTS)
		collaborators.ocr = CollaboratorLoader.ready("ocr", lambda: FakeEngine({}, error=OCRError("bad image")))
		result = await perform_ocr(white_photo, collaborators)
		assert not result.success
		assert result.message == "bad image"

	async def test_runs_without_image_processor(self, white_photo):
		collaborators = fake_collaborators(TEXTS)
		collaborators.image = unavailable("image")
		result = await perform_ocr(white_photo, collaborators, today=TODAY)
		assert result.success
		assert result.is_valid


class TestScanDocument:
	async def test_end_to_end(self):
		collaborators = fake_collaborators(TEXTS, corners=rectangle(100, 100, 700, 500))
		outcome = await scan_document(card_photo_bytes(), collaborators, today=TODAY)

		assert outcome.detection.confidence == 1.0
		assert outcome.extraction.success
		assert (outcome.extraction.width, outcome.extraction.height) == (600, 400)
		assert outcome.quality.is_valid
		assert outcome.ocr.is_valid

	async def test_undecodable_bytes(self):
		assert await scan_document(b"\x00\x01", fake_collaborators(TEXTS)) is None

	async def test_extraction_failure_is_reported(self):
		collaborators = fake_collaborators(TEXTS)
		collaborators.image = unavailable("image")
		outcome = await scan_document(card_photo_bytes(), collaborators)
		assert not outcome.extraction.success
		assert outcome.quality is None
		assert not outcome.ocr.success

	async def test_load_all_reports_but_tolerates_failures(self):
		collaborators = Collaborators(
			image=CollaboratorLoader.ready("image", OpenCVImageProcessor()),
			contours=CollaboratorLoader.ready("contours", FakeContourDetector()),
			ocr=unavailable("Tesseract"),
		)
		assert await collaborators.load_all() is collaborators
		assert collaborators.image.is_ready()
		assert not collaborators.ocr.is_ready()
