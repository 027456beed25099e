"""Structural document validation: does the text look like a real INE or passport MRZ?

This deliberately ignores field values and only scores layout properties
(line count and length, charset, aspect ratio and check-digit arithmetic),
so it can run off the same OCR text as the field extractor.
"""

import logging
import math
from typing import List, Optional, Tuple

from docscan.models import DocumentType, DocumentValidationResult, ValidationChecks
from docscan.mrz import (
	INE_FIRST_LINE,
	MRZ_CHARSET,
	PASSPORT_FIRST_LINE,
	TD1_LENGTH,
	TD1_TOLERANCE,
	TD3_LENGTH,
	TD3_TOLERANCE,
	MRZParser,
)

logger = logging.getLogger(__name__)

WEIGHTS = {
	"has_mrz": 0.25,
	"line_count": 0.15,
	"line_length": 0.10,
	"characters": 0.15,
	"aspect_ratio": 0.10,
	"check_digits": 0.25,
}

ASPECT_RATIOS = {
	DocumentType.INE: (1.45, 1.75),
	DocumentType.PASSPORT: (1.30, 1.55),
}

_parser = MRZParser()


def _classify(candidates: List[str]) -> Tuple[DocumentType, Optional[List[str]]]:
	lo, hi = TD3_TOLERANCE
	for i in range(len(candidates) - 1):
		pair = candidates[i:i + 2]
		if PASSPORT_FIRST_LINE.match(pair[0]) and all(lo <= len(l) <= hi for l in pair):
			return DocumentType.PASSPORT, [l[:TD3_LENGTH].ljust(TD3_LENGTH, "<") for l in pair]

	lo, hi = TD1_TOLERANCE
	for i in range(len(candidates) - 2):
		triple = candidates[i:i + 3]
		if INE_FIRST_LINE.match(triple[0]) and all(lo <= len(l) <= hi for l in triple):
			return DocumentType.INE, [l[:TD1_LENGTH].ljust(TD1_LENGTH, "<") for l in triple]

	return DocumentType.UNKNOWN, None


def _check_digit_results(document_type: DocumentType, lines: List[str]) -> List[bool]:
	verify = _parser._verify
	if document_type == DocumentType.PASSPORT:
		row2 = lines[1]
		composite = row2[0:10] + row2[13:20] + row2[21:43]
		return [
			verify(row2[0:9], row2[9]),
			verify(row2[13:19], row2[19]),
			verify(row2[21:27], row2[27]),
			verify(composite, row2[43]),
		]
	row1, row2 = lines[0], lines[1]
	composite = row1[5:30] + row2[0:7] + row2[8:15] + row2[18:29]
	return [
		verify(row2[0:6], row2[6]),
		verify(row2[8:14], row2[14]),
		verify(composite, row2[29]),
	]


def _aspect_ratio_ok(document_type: DocumentType, width: float, height: float) -> bool:
	if not width or not height:
		return False
	ratio = width / height
	if document_type in ASPECT_RATIOS:
		lo, hi = ASPECT_RATIOS[document_type]
		return lo <= ratio <= hi
	return any(lo <= ratio <= hi for lo, hi in ASPECT_RATIOS.values())


def validate_document(text: str, width: float, height: float) -> DocumentValidationResult:
	"""Score how structurally valid an extracted document is.

	Args:
		text: OCR text of the rectified document
		width: Width of the rectified image in pixels
		height: Height of the rectified image in pixels
	"""
	checks = ValidationChecks()
	candidates = _parser.find_candidates(text)

	if not candidates:
		checks.correct_aspect_ratio = _aspect_ratio_ok(DocumentType.UNKNOWN, width, height)
		return DocumentValidationResult(
			is_valid=False,
			document_type=DocumentType.UNKNOWN,
			confidence=0.0,
			checks=checks,
			message="No se detectó zona MRZ en el documento",
		)

	document_type, mrz_lines = _classify(candidates)
	checks.correct_aspect_ratio = _aspect_ratio_ok(document_type, width, height)

	if mrz_lines is None:
		return DocumentValidationResult(
			is_valid=False,
			document_type=DocumentType.UNKNOWN,
			confidence=0.1,
			checks=checks,
			message="Formato MRZ no reconocido",
		)

	expected_length = TD3_LENGTH if document_type == DocumentType.PASSPORT else TD1_LENGTH
	checks.has_mrz = True
	checks.correct_line_count = len(mrz_lines) == (2 if document_type == DocumentType.PASSPORT else 3)
	checks.correct_line_length = all(len(l) == expected_length for l in mrz_lines)
	checks.valid_characters = all(MRZ_CHARSET.match(l) for l in mrz_lines)

	results = _check_digit_results(document_type, mrz_lines)
	checks.total_check_digits = len(results)
	checks.valid_check_digit_count = sum(results)
	checks.check_digits_valid = checks.valid_check_digit_count >= math.ceil(checks.total_check_digits * 0.5)

	confidence = 0.0
	confidence += WEIGHTS["has_mrz"]
	if checks.correct_line_count:
		confidence += WEIGHTS["line_count"]
	if checks.correct_line_length:
		confidence += WEIGHTS["line_length"]
	if checks.valid_characters:
		confidence += WEIGHTS["characters"]
	if checks.correct_aspect_ratio:
		confidence += WEIGHTS["aspect_ratio"]
	if checks.check_digits_valid:
		confidence += WEIGHTS["check_digits"]
	confidence = min(confidence, 1.0)

	is_valid = checks.has_mrz and checks.correct_line_count and checks.check_digits_valid
	label = "Pasaporte" if document_type == DocumentType.PASSPORT else "INE"
	if is_valid:
		message = f"{label} válido ({checks.valid_check_digit_count}/{checks.total_check_digits} dígitos verificadores)"
	else:
		message = f"{label} con dígitos verificadores inválidos ({checks.valid_check_digit_count}/{checks.total_check_digits})"

	logger.debug("Structural validation: type=%s confidence=%.2f valid=%s", document_type.value, confidence, is_valid)
	return DocumentValidationResult(
		is_valid=is_valid,
		document_type=document_type,
		confidence=confidence,
		checks=checks,
		message=message,
		mrz_lines=mrz_lines,
	)


def has_mrz(text: str) -> bool:
	return _classify(_parser.find_candidates(text))[1] is not None


def detect_document_type(text: str) -> DocumentType:
	return _classify(_parser.find_candidates(text))[0]
