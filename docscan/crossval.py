"""Cross-validation of extracted fields and aggregation into an ``OCRResult``."""

import logging
import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional

from docscan import mrz as mrz_decoder
from docscan.fields import extract_label_fields
from docscan.models import (
	DetectedFields,
	DocumentType,
	FailureReason,
	FieldComparison,
	MRZResult,
	OCRResult,
	PersonalData,
)
from docscan.validator import validate_document

logger = logging.getLogger(__name__)

INE_FRONT_EXPECTED_FIELDS = [
	"NOMBRE",
	"CURP",
	"DOMICILIO",
	"SEXO",
	"FECHA DE NACIMIENTO",
	"VIGENCIA",
]

CRITICAL_FIELDS = {
	DocumentType.PASSPORT: ["NÚMERO DE PASAPORTE", "NOMBRE", "FECHA DE NACIMIENTO"],
	DocumentType.INE: ["CURP", "NOMBRE"],
}

MIN_OCR_CONFIDENCE = 40


def normalize_for_comparison(value: str) -> str:
	"""Lowercase, strip accents, keep only ``[a-z0-9]``."""
	value = unicodedata.normalize("NFD", value.lower())
	value = "".join(ch for ch in value if not unicodedata.combining(ch))
	return re.sub(r"[^a-z0-9]", "", value)


def fuzzy_match(a: Optional[str], b: Optional[str]) -> Optional[bool]:
	"""True on equality or containment after normalization; None when either side is missing."""
	if not a or not b:
		return None
	norm_a = normalize_for_comparison(a)
	norm_b = normalize_for_comparison(b)
	if not norm_a or not norm_b:
		return None
	return norm_a == norm_b or norm_a in norm_b or norm_b in norm_a


def build_comparisons(fields: DetectedFields, personal: Optional[PersonalData]) -> List[FieldComparison]:
	if personal is None:
		return []
	pairs = [
		("curp", "CURP", fields.curp, personal.curp),
		("firstName", "Nombre", fields.first_name, personal.first_name),
		("lastName", "Apellido Paterno", fields.last_name, personal.last_name),
		("secondLastName", "Apellido Materno", fields.second_last_name, personal.second_last_name),
		("birthDate", "Fecha de Nacimiento", fields.birth_date, personal.birth_date),
		("ineDocumentNumber", "Número de Documento INE", fields.ine_document_number, personal.ine_document_number),
		("expiryDate", "Fecha de Vencimiento", fields.validity, personal.expiry_date),
	]
	return [
		FieldComparison(
			field=name,
			label=label,
			extracted_value=extracted,
			expected_value=expected,
			matches=fuzzy_match(extracted, expected),
		)
		for name, label, extracted, expected in pairs
		if extracted or expected
	]


def _parse_iso(value: Optional[str]) -> Optional[date]:
	if not value:
		return None
	try:
		return date.fromisoformat(value)
	except ValueError:
		logger.debug("Ignoring unparseable expiry %r", value)
		return None


def expired_on(candidates, today: date) -> Optional[str]:
	"""Earliest ISO date among ``candidates`` that is strictly before ``today``."""
	past = sorted(d for d in (_parse_iso(c) for c in candidates) if d is not None and d < today)
	return past[0].isoformat() if past else None


def merge_mrz(fields: DetectedFields, mrz: Optional[MRZResult]) -> DetectedFields:
	"""Overlay decoded MRZ values on label heuristics; MRZ wins wherever it has a value."""
	if mrz is None or not mrz.success:
		return fields
	updates = {
		"full_name": mrz.full_name,
		"first_name": mrz.first_name,
		"last_name": mrz.last_name,
		"second_last_name": mrz.second_last_name,
		"birth_date": mrz.birth_date,
		"gender": mrz.sex,
		"nationality": mrz.nationality,
		"validity": mrz.expiry_date,
	}
	if mrz.document_type == DocumentType.PASSPORT:
		updates["passport_number"] = mrz.document_number
		updates["expiry_date"] = mrz.expiry_date
	else:
		updates["ine_document_number"] = mrz.document_number
	return replace(fields, **{k: v for k, v in updates.items() if v})


def found_and_missing(fields: DetectedFields, is_passport: bool):
	if is_passport:
		checks = [
			("NOMBRE", fields.full_name),
			("NÚMERO DE PASAPORTE", fields.passport_number),
			("FECHA DE NACIMIENTO", fields.birth_date),
			("SEXO", fields.gender),
			("NACIONALIDAD", fields.nationality),
			("FECHA DE EXPIRACIÓN", fields.expiry_date),
			("FECHA DE EXPEDICIÓN", fields.issue_date),
		]
	else:
		checks = [
			("NOMBRE", fields.full_name),
			("CURP", fields.curp),
			("DOMICILIO", fields.address),
			("SEXO", fields.gender),
			("NÚMERO DE DOCUMENTO", fields.ine_document_number),
			("FECHA DE NACIMIENTO", fields.birth_date),
			("VIGENCIA", fields.validity),
		]
	found = [label for label, value in checks if value]
	missing = [label for label, value in checks if not value]
	# CURP is optional on passports: counted when present, never missing
	if is_passport and fields.curp:
		found.append("CURP")
	return found, missing


def detect_document_type(text: str, document_type_hint: str = "INE/IFE"):
	"""Return (is_passport, detected DocumentType) from the caller's hint and the OCR text."""
	upper = text.upper()
	is_passport = (
		"pasaporte" in document_type_hint.lower()
		or "passport" in document_type_hint.lower()
		or "PASAPORTE" in upper
		or "PASSPORT" in upper
	)
	if is_passport:
		return True, DocumentType.PASSPORT
	ine_markers = ("INSTITUTO NACIONAL ELECTORAL", "CREDENCIAL", "ELECTOR", "IDMEX")
	if any(marker in upper for marker in ine_markers):
		return False, DocumentType.INE
	if mrz_decoder.detect_mrz_type(text) == DocumentType.PASSPORT:
		return True, DocumentType.PASSPORT
	return False, DocumentType.UNKNOWN


def _decode_mrz(text: str, mrz_text: Optional[str], is_passport: bool) -> MRZResult:
	parse = mrz_decoder.parse_passport_mrz if is_passport else mrz_decoder.parse_ine_mrz
	result = parse(mrz_text) if mrz_text else MRZResult(success=False)
	if not result.success:
		logger.debug("MRZ-pass parse failed, retrying on combined text")
		result = parse(text)
	return result


def analyze_text(
	text: str,
	confidence: float,
	mrz_text: Optional[str] = None,
	document_type_hint: str = "INE/IFE",
	personal_data: Optional[PersonalData] = None,
	today: Optional[date] = None,
	image_size=None,
	side: Optional[str] = None,
) -> OCRResult:
	"""Turn OCR text into a validated ``OCRResult``.

	Args:
		text: Combined OCR text (general pass + MRZ pass)
		confidence: OCR confidence on a 0-100 scale
		mrz_text: Text of the MRZ-only pass, tried first for decoding
		document_type_hint: What the caller asked for, e.g. "INE/IFE" or "Pasaporte"
		personal_data: Identity to compare against, if any
		today: Reference date for expiry; defaults to the current date
		image_size: (width, height) of the rectified image for structural checks
		side: "front" or "back" for two-sided INE captures
	"""
	today = today or date.today()
	is_passport, document_type = detect_document_type(text, document_type_hint)

	labels = extract_label_fields(text, is_passport, today)
	mrz = _decode_mrz(text, mrz_text, is_passport)
	fields = merge_mrz(labels, mrz)
	document_type_confidence = mrz.confidence if mrz.success else 0.5
	if mrz.success and document_type == DocumentType.UNKNOWN:
		document_type = mrz.document_type

	comparisons = build_comparisons(fields, personal_data)
	expired = expired_on([fields.validity, fields.expiry_date], today)
	found, missing = found_and_missing(fields, is_passport)

	critical = CRITICAL_FIELDS[DocumentType.PASSPORT if is_passport else DocumentType.INE]
	critical_found = [f for f in critical if f in found]
	has_critical = len(critical_found) >= len(critical) * 0.5

	defined = [c for c in comparisons if c.matches is not None]
	matching = [c for c in defined if c.matches]
	has_data_match = not defined or len(matching) >= len(defined) * 0.5

	is_valid = confidence > MIN_OCR_CONFIDENCE and has_critical and has_data_match and expired is None

	if expired is not None:
		reason = FailureReason.EXPIRED
		message = f"El documento está vencido (expiró el {expired}). Por favor, proporcione un documento vigente."
	elif is_valid:
		reason = FailureReason.NONE
		if defined:
			message = f"Documento validado. {len(matching)}/{len(defined)} campos coinciden con los datos ingresados."
		else:
			message = f"Documento validado correctamente. Se encontraron {len(found)} campos."
	elif not confidence > MIN_OCR_CONFIDENCE:
		reason = FailureReason.LOW_CONFIDENCE
		message = (
			f"La imagen no es suficientemente clara (confianza: {confidence:.0f}%). "
			"Por favor, tome una foto con mejor iluminación."
		)
	elif not has_data_match:
		reason = FailureReason.DATA_MISMATCH
		message = (
			"Los datos del documento no coinciden con la información ingresada. "
			"Verifique que el documento corresponde a la persona correcta."
		)
	elif not has_critical:
		reason = FailureReason.MISSING_CRITICAL_FIELDS
		message = f"No se encontraron campos críticos: {', '.join(f for f in critical if f not in found)}"
	else:
		reason = FailureReason.INSUFFICIENT_FIELDS
		message = "No se pudieron identificar suficientes campos del documento."

	structure = validate_document(text, *image_size) if image_size else None

	logger.info(
		"Document analysed: valid=%s reason=%s fields=%d/%d",
		is_valid,
		reason.value,
		len(found),
		len(found) + len(missing),
		extra={"document_type": document_type.value},
	)
	return OCRResult(
		success=True,
		text=text,
		confidence=confidence,
		document_type=document_type,
		document_type_confidence=document_type_confidence,
		detected_fields=fields,
		mrz_data=mrz if mrz.success else None,
		structure=structure,
		side=side,
		comparisons=tuple(comparisons),
		found_fields=tuple(found),
		missing_fields=tuple(missing),
		is_valid=is_valid,
		is_expired=expired is not None,
		failure_reason=reason,
		message=message,
	)


def failed_result(message: str) -> OCRResult:
	return OCRResult(
		success=False,
		missing_fields=tuple(INE_FRONT_EXPECTED_FIELDS),
		failure_reason=FailureReason.ERROR,
		message=message or "Error al procesar el documento",
	)


@dataclass(frozen=True)
class DocumentComparison:
	"""One document-vs-declared-identity comparison and where the document value came from."""

	field: str
	label: str
	document_value: Optional[str]
	personal_value: Optional[str]
	matches: Optional[bool]
	source: str  # "MRZ", "OCR" or "NONE"
	confidence: float


def compare_with_personal_data(result: OCRResult, personal: PersonalData) -> List[DocumentComparison]:
	mrz = result.mrz_data if result.mrz_data and result.mrz_data.success else None
	fields = result.detected_fields
	ocr_confidence = result.confidence / 100
	mrz_confidence = mrz.confidence if mrz else ocr_confidence

	def source(mrz_value, value):
		if mrz is not None and mrz_value:
			return "MRZ"
		return "OCR" if value else "NONE"

	comparisons = []

	doc_name = fields.full_name or (mrz.full_name if mrz else None)
	expected_name = " ".join(p for p in (personal.first_name, personal.last_name) if p) or None
	comparisons.append(DocumentComparison(
		field="fullName",
		label="Nombre Completo",
		document_value=doc_name,
		personal_value=expected_name,
		matches=fuzzy_match(doc_name, expected_name),
		source=source(mrz.full_name if mrz else None, doc_name),
		confidence=mrz_confidence,
	))

	if personal.curp or fields.curp:
		comparisons.append(DocumentComparison(
			field="curp",
			label="CURP",
			document_value=fields.curp,
			personal_value=personal.curp,
			matches=fuzzy_match(fields.curp, personal.curp),
			source="OCR" if fields.curp else "NONE",
			confidence=ocr_confidence,
		))

	doc_birth = (mrz.birth_date if mrz else None) or fields.birth_date
	if personal.birth_date or doc_birth:
		comparisons.append(DocumentComparison(
			field="birthDate",
			label="Fecha de Nacimiento",
			document_value=doc_birth,
			personal_value=personal.birth_date,
			matches=doc_birth == personal.birth_date if doc_birth and personal.birth_date else None,
			source=source(mrz.birth_date if mrz else None, doc_birth),
			confidence=mrz_confidence,
		))

	is_passport = result.document_type == DocumentType.PASSPORT
	doc_number = fields.passport_number if is_passport else fields.ine_document_number
	expected_number = None if is_passport else personal.ine_document_number
	if doc_number or expected_number:
		comparisons.append(DocumentComparison(
			field="passportNumber" if is_passport else "ineDocumentNumber",
			label="Número de Pasaporte" if is_passport else "Número de Documento INE",
			document_value=doc_number,
			personal_value=expected_number,
			matches=fuzzy_match(doc_number, expected_number),
			source=source(mrz.document_number if mrz else None, doc_number),
			confidence=mrz_confidence,
		))

	doc_expiry = (mrz.expiry_date if mrz else None) or fields.expiry_date or fields.validity
	if doc_expiry:
		comparisons.append(DocumentComparison(
			field="expiryDate",
			label="Fecha de Vencimiento",
			document_value=doc_expiry,
			personal_value=personal.expiry_date,
			matches=doc_expiry == personal.expiry_date if personal.expiry_date else None,
			source=source(mrz.expiry_date if mrz else None, doc_expiry),
			confidence=mrz_confidence,
		))

	return comparisons


def authenticity_score(result: OCRResult) -> float:
	"""0-1 likelihood the document is genuine, driven by MRZ check digits."""
	mrz = result.mrz_data
	if mrz is None or not mrz.success:
		return 0.3
	checks = vars(mrz.check_digits).values()
	score = mrz.confidence + sum(checks) / len(checks) * 0.2
	if result.document_type_confidence > 0.8:
		score += 0.1
	return min(1.0, score)


AI_FIELD_MAP = {
	"full_name": "full_name",
	"first_name": "first_name",
	"last_name": "last_name",
	"curp": "curp",
	"date_of_birth": "birth_date",
	"gender": "gender",
	"nationality": "nationality",
	"document_number": "passport_number",
	"passport_number": "passport_number",
	"expiry_date": "expiry_date",
	"ine_document_number": "ine_document_number",
	"idmex_number": "ine_document_number",
	"address": "address",
}


def normalize_ai_fields(fields: dict) -> DetectedFields:
	"""Map a vision-service field map ({name: {"value": ..., "confidence": ...}}) onto DetectedFields.

	Later keys in ``AI_FIELD_MAP`` win, so ``passport_number`` beats
	``document_number`` and ``idmex_number`` beats ``ine_document_number``.
	"""
	values = {}
	for source_key, target in AI_FIELD_MAP.items():
		entry = fields.get(source_key)
		value = entry.get("value") if isinstance(entry, dict) else entry
		if value:
			values[target] = value
	return DetectedFields(**values)
