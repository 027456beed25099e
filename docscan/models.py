"""Result and value types shared by the scanner stages."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from docscan.geometry import CornerPoints


class DocumentType(str, Enum):
	INE = "INE"
	PASSPORT = "PASSPORT"
	UNKNOWN = "UNKNOWN"


class ScannerStage(str, Enum):
	IDLE = "idle"
	DETECTING = "detecting"
	ADJUSTING = "adjusting"
	HIGHLIGHTING = "highlighting"
	EXTRACTING = "extracting"
	VALIDATING = "validating"
	WAITING_FOR_BACK = "waiting_for_back"
	COMPLETE = "complete"


class FailureReason(str, Enum):
	"""Why an OCR result did not pass; lets callers tell recapture from re-entry."""

	NONE = "none"
	EXPIRED = "expired"
	LOW_CONFIDENCE = "low_confidence"
	DATA_MISMATCH = "data_mismatch"
	MISSING_CRITICAL_FIELDS = "missing_critical_fields"
	INSUFFICIENT_FIELDS = "insufficient_fields"
	ERROR = "error"


@dataclass
class DetectionResult:
	success: bool
	corners: Optional[CornerPoints] = None
	confidence: float = 0.0
	message: Optional[str] = None


@dataclass
class ExtractionResult:
	success: bool
	image: Optional[np.ndarray] = None
	data: Optional[bytes] = None
	width: int = 0
	height: int = 0
	message: Optional[str] = None


@dataclass
class QualityResult:
	is_valid: bool
	issues: List[str] = field(default_factory=list)
	resolution: Tuple[int, int] = (0, 0)
	document_area_ratio: float = 0.0


@dataclass
class CheckDigits:
	document_number: bool = False
	birth_date: bool = False
	expiry_date: bool = False
	personal_number: bool = False
	overall: bool = False


@dataclass
class MRZResult:
	"""Decoded machine-readable zone. Dates are ISO ``YYYY-MM-DD``."""

	success: bool
	document_type: DocumentType = DocumentType.UNKNOWN
	document_number: Optional[str] = None
	full_name: Optional[str] = None
	first_name: Optional[str] = None
	last_name: Optional[str] = None
	second_last_name: Optional[str] = None
	birth_date: Optional[str] = None
	sex: Optional[str] = None
	expiry_date: Optional[str] = None
	nationality: Optional[str] = None
	issuing_country: Optional[str] = None
	personal_number: Optional[str] = None
	raw_lines: List[str] = field(default_factory=list)
	confidence: float = 0.0
	check_digits: CheckDigits = field(default_factory=CheckDigits)
	error: Optional[str] = None

	def to_dict(self) -> dict:
		data = asdict(self)
		data["document_type"] = self.document_type.value
		return data


@dataclass
class ValidationChecks:
	has_mrz: bool = False
	correct_line_count: bool = False
	correct_line_length: bool = False
	valid_characters: bool = False
	correct_aspect_ratio: bool = False
	check_digits_valid: bool = False
	valid_check_digit_count: int = 0
	total_check_digits: int = 0


@dataclass
class DocumentValidationResult:
	is_valid: bool
	document_type: DocumentType
	confidence: float
	checks: ValidationChecks
	message: str
	mrz_lines: Optional[List[str]] = None


@dataclass
class PersonalData:
	"""Identity the holder claims; only compared against, never stored."""

	first_name: Optional[str] = None
	last_name: Optional[str] = None
	second_last_name: Optional[str] = None
	curp: Optional[str] = None
	birth_date: Optional[str] = None
	expiry_date: Optional[str] = None
	ine_document_number: Optional[str] = None
	address: Optional[str] = None


@dataclass(frozen=True)
class FieldComparison:
	"""``matches`` is None when either side is missing: unknown, not a mismatch."""

	field: str
	label: str
	extracted_value: Optional[str]
	expected_value: Optional[str]
	matches: Optional[bool]


@dataclass(frozen=True)
class DetectedFields:
	full_name: Optional[str] = None
	first_name: Optional[str] = None
	last_name: Optional[str] = None
	second_last_name: Optional[str] = None
	curp: Optional[str] = None
	birth_date: Optional[str] = None
	gender: Optional[str] = None
	nationality: Optional[str] = None
	ine_document_number: Optional[str] = None
	address: Optional[str] = None
	section: Optional[str] = None
	validity: Optional[str] = None
	passport_number: Optional[str] = None
	expiry_date: Optional[str] = None
	issue_date: Optional[str] = None

	def to_dict(self) -> dict:
		return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class OCRResult:
	"""Outcome of one OCR attempt. Built once, never updated in place."""

	success: bool
	text: str = ""
	confidence: float = 0.0
	document_type: DocumentType = DocumentType.UNKNOWN
	document_type_confidence: float = 0.0
	detected_fields: DetectedFields = field(default_factory=DetectedFields)
	mrz_data: Optional[MRZResult] = None
	structure: Optional[DocumentValidationResult] = None
	side: Optional[str] = None
	comparisons: Tuple[FieldComparison, ...] = ()
	found_fields: Tuple[str, ...] = ()
	missing_fields: Tuple[str, ...] = ()
	is_valid: bool = False
	is_expired: bool = False
	failure_reason: FailureReason = FailureReason.ERROR
	message: str = ""
