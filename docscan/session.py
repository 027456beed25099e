"""The interactive scanning flow as an explicit state machine.

idle -> detecting -> adjusting <-> highlighting -> extracting -> validating
-> (waiting_for_back -> detecting ... for the front of an INE) -> complete

Any stage with a captured page can go back to ``adjusting`` when the user
re-crops. A page's previous extraction is only replaced after such an
explicit re-crop.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import List, Optional

from docscan.errors import InvalidStageTransition
from docscan.geometry import CornerPoints
from docscan.models import (
	DetectedFields,
	DetectionResult,
	ExtractionResult,
	OCRResult,
	PersonalData,
	QualityResult,
	ScannerStage,
)
from docscan.perspective import highlight_document
from docscan.pipeline import (
	Collaborators,
	check_quality,
	choose_corners,
	detect_corners,
	extract_document,
	optional_handle,
	perform_ocr,
)

logger = logging.getLogger(__name__)

TRANSITIONS = {
	ScannerStage.IDLE: {ScannerStage.DETECTING},
	ScannerStage.DETECTING: {ScannerStage.ADJUSTING},
	ScannerStage.ADJUSTING: {ScannerStage.HIGHLIGHTING},
	ScannerStage.HIGHLIGHTING: {ScannerStage.EXTRACTING},
	ScannerStage.EXTRACTING: {ScannerStage.VALIDATING, ScannerStage.HIGHLIGHTING},
	ScannerStage.VALIDATING: {ScannerStage.WAITING_FOR_BACK, ScannerStage.COMPLETE},
	ScannerStage.WAITING_FOR_BACK: {ScannerStage.DETECTING},
	ScannerStage.COMPLETE: set(),
}


@dataclass
class DocumentPage:
	image: object
	side: Optional[str] = None
	id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
	detection: Optional[DetectionResult] = None
	auto_corners: Optional[CornerPoints] = None
	corners: Optional[CornerPoints] = None
	preview: object = None
	extraction: Optional[ExtractionResult] = None
	quality: Optional[QualityResult] = None
	ocr_result: Optional[OCRResult] = None
	error: Optional[str] = None

	@property
	def size(self):
		height, width = self.image.shape[:2]
		return width, height


@dataclass
class INECapture:
	"""Both sides of an INE card merged into one field set."""

	front: Optional[DocumentPage]
	back: Optional[DocumentPage]

	def combined_fields(self) -> DetectedFields:
		front = self.front.ocr_result.detected_fields if self.front and self.front.ocr_result else DetectedFields()
		back = self.back.ocr_result.detected_fields if self.back and self.back.ocr_result else DetectedFields()
		# The MRZ is on the back; CURP and address are printed on the front
		from_back = {
			"ine_document_number": back.ine_document_number,
			"full_name": back.full_name,
			"first_name": back.first_name,
			"last_name": back.last_name,
			"second_last_name": back.second_last_name,
			"birth_date": back.birth_date,
			"gender": back.gender,
			"validity": back.validity,
		}
		merged = replace(front, **{k: v for k, v in from_back.items() if v})
		return replace(merged, curp=front.curp or back.curp, address=front.address or back.address)

	@property
	def is_valid(self) -> bool:
		pages = [p for p in (self.front, self.back) if p is not None]
		return bool(pages) and all(p.ocr_result is not None and p.ocr_result.is_valid for p in pages)


class ScannerSession:
	"""Drives one document (one or two pages) through capture, adjustment, extraction and validation."""

	def __init__(
		self,
		collaborators: Collaborators,
		document_type: str = "INE/IFE",
		personal_data: Optional[PersonalData] = None,
		today: Optional[date] = None,
	):
		self.collaborators = collaborators
		self.document_type = document_type
		self.personal_data = personal_data
		self.today = today
		self.stage = ScannerStage.IDLE
		self.pages: List[DocumentPage] = []

	@property
	def is_ine(self) -> bool:
		return "pasaporte" not in self.document_type.lower() and "passport" not in self.document_type.lower()

	@property
	def current_page(self) -> Optional[DocumentPage]:
		return self.pages[-1] if self.pages else None

	def _move(self, target: ScannerStage):
		if target not in TRANSITIONS[self.stage]:
			raise InvalidStageTransition(self.stage.value, target.value)
		logger.debug(
			"%s -> %s",
			self.stage.value,
			target.value,
			extra={"stage": target.value, "page_id": self.current_page.id if self.current_page else None},
		)
		self.stage = target

	def _require(self, *stages: ScannerStage):
		if self.stage not in stages:
			raise InvalidStageTransition(self.stage.value, "/".join(s.value for s in stages))

	async def capture(self, image) -> DocumentPage:
		"""Start a page from a photo; detection always lands in ``adjusting``."""
		side = None
		if self.is_ine:
			side = "back" if self.stage == ScannerStage.WAITING_FOR_BACK else "front"
		self._move(ScannerStage.DETECTING)
		page = DocumentPage(image=image, side=side)
		self.pages.append(page)

		page.detection = await detect_corners(image, self.collaborators)
		width, height = page.size
		page.auto_corners = choose_corners(page.detection, width, height)
		page.corners = page.auto_corners
		self._move(ScannerStage.ADJUSTING)
		return page

	def set_corners(self, corners: CornerPoints):
		self._require(ScannerStage.ADJUSTING)
		self.current_page.corners = corners

	def reset_corners(self):
		self._require(ScannerStage.ADJUSTING)
		self.current_page.corners = self.current_page.auto_corners

	async def confirm_corners(self):
		"""Lock in the crop and render the highlighted preview."""
		self._move(ScannerStage.HIGHLIGHTING)
		page = self.current_page
		processor = await optional_handle(self.collaborators.image)
		page.preview = highlight_document(page.image, page.corners, processor)
		return page.preview

	def readjust(self):
		"""User re-crop: back to ``adjusting`` from any stage with a captured page."""
		page = self.current_page
		if page is None or page.corners is None:
			raise InvalidStageTransition(self.stage.value, ScannerStage.ADJUSTING.value)
		logger.debug("re-crop requested", extra={"stage": self.stage.value, "page_id": page.id})
		self.stage = ScannerStage.ADJUSTING

	async def extract(self) -> Optional[OCRResult]:
		"""Rectify and validate the current page. Returns None if extraction failed."""
		self._move(ScannerStage.EXTRACTING)
		page = self.current_page
		extraction = await extract_document(page.image, page.corners, self.collaborators)
		if not extraction.success:
			page.error = extraction.message
			logger.warning("Extraction failed: %s", extraction.message, extra={"page_id": page.id})
			self._move(ScannerStage.HIGHLIGHTING)
			return None

		page.error = None
		page.extraction = extraction
		width, height = page.size
		page.quality = check_quality(extraction, page.corners, width, height)

		self._move(ScannerStage.VALIDATING)
		page.ocr_result = await perform_ocr(
			extraction.image,
			self.collaborators,
			self.document_type,
			self.personal_data,
			today=self.today,
			side=page.side,
		)
		if self.is_ine and page.side == "front" and not self._has_back():
			self._move(ScannerStage.WAITING_FOR_BACK)
		else:
			self._move(ScannerStage.COMPLETE)
		return page.ocr_result

	def _has_back(self) -> bool:
		return any(p.side == "back" for p in self.pages)

	def ine_capture(self) -> Optional[INECapture]:
		if not self.is_ine:
			return None
		front = next((p for p in self.pages if p.side == "front"), None)
		back = next((p for p in self.pages if p.side == "back"), None)
		return INECapture(front=front, back=back)
