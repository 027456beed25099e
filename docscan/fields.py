"""Label-based field extraction from the printed side of INE cards and passports.

These heuristics read what the general OCR pass sees next to labels such as
``NOMBRE`` or ``FECHA DE NACIMIENTO``. They are noisy; wherever the MRZ decodes,
its values replace what is found here.
"""

import logging
import re
from datetime import date
from typing import List, Optional

from docscan.models import DetectedFields

logger = logging.getLogger(__name__)

LETTER = "A-Za-zÁÉÍÓÚÜÑáéíóúüñ"

MONTHS = {
	"ENE": 1, "FEB": 2, "MAR": 3, "ABR": 4, "MAY": 5, "JUN": 6,
	"JUL": 7, "AGO": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DIC": 12,
}

CURP_PATTERN = re.compile(r"[A-Z]{4}[O0-9]{6}[HM][A-Z]{5}[A-Z0-9][O0-9]")

_NOISE_SYMBOLS = re.compile(r"[¿?¡!£€$@#%&*()\[\]{}|\\/<>+=_~`'\"«»„“”‘’;:,.·•°^]")
_NOISE_WORDS = [
	re.compile(r"^[IlL1]+$", re.IGNORECASE),
	re.compile(r"^[oO0]+$"),
	re.compile(r"^[aeiou]+$", re.IGNORECASE),
	re.compile(r"^(am|ma|ue|em|et|rz|tt|ocio|if|íf)$", re.IGNORECASE),
]
_INE_NAME_STOP = re.compile(r"^(DOMICILIO|CLAVE|CURP|FECHA|SECCI|VIGENCIA|AÑO|SEXO\s*[HMF]?$)", re.IGNORECASE)
_SEX_ONLY = re.compile(r"^SEXO\s*[HMF]?$", re.IGNORECASE)
_PASSPORT_NAME_LABEL = re.compile(r"\b(APELLIDOS?|SURNAMES?|NOMBRES?|GIVEN|NAMES?)\b", re.IGNORECASE)
_ADDRESS_STOP = re.compile(
	r"^(CLAVE|CURP|FECHA|SECCI|VIGENCIA|AÑO|ESTADO|MUNICIPIO|LOCALIDAD|EMISI|SEXO)", re.IGNORECASE
)

PASSPORT_NUMBER_PATTERNS = [
	re.compile(r"(?:PASSPORT\s*NO\.?|PASAPORTE\s*NO\.?|NO\.?\s*DE\s*PASAPORTE)[:\s]*([A-Z0-9]{6,12})"),
	re.compile(r"(?:^|\s)(G[O0-9]{8})(?:\s|$)", re.MULTILINE),
	re.compile(r"(?:^|\s)([A-Z]{1,2}[O0-9]{6,9})(?:\s|$)", re.MULTILINE),
	re.compile(r"<([A-Z0-9]{9})<", re.MULTILINE),
]


def _lines(text: str) -> List[str]:
	return [l.strip() for l in text.split("\n") if l.strip()]


def _iso(year: int, month: int, day: int) -> Optional[str]:
	try:
		return date(year, month, day).isoformat()
	except ValueError:
		return None


def _proper_case(word: str) -> str:
	return "-".join(part[:1].upper() + part[1:].lower() for part in word.split("-"))


def cleanup_name(raw_name: str) -> str:
	"""Strip watermark and hologram noise from an OCR'd name and proper-case it."""
	if not raw_name:
		return ""

	cleaned = _NOISE_SYMBOLS.sub(" ", raw_name)
	cleaned = re.sub(r"\d", " ", cleaned)
	cleaned = re.sub(r"[´¨]", "", cleaned)
	cleaned = re.sub(r"[—–−]", "-", cleaned)
	cleaned = re.sub(r"\s+-\s+", " ", cleaned)
	cleaned = re.sub(r"\s+", " ", cleaned).strip().strip("-")

	words = []
	for word in cleaned.split():
		if len(word) < 2:
			continue
		letters = len(re.findall(f"[{LETTER}]", word))
		if letters < len(word) * 0.5:
			continue
		if any(p.match(word) for p in _NOISE_WORDS):
			continue
		word = _proper_case(word)
		if re.match(f"^[{LETTER}]", word):
			words.append(word)
	return " ".join(words)


def _split_ine_name(cleaned: str) -> dict:
	# INE prints PATERNO, MATERNO, then the given name(s)
	parts = [p for p in cleaned.split() if len(p) > 1]
	if len(parts) >= 3:
		return {
			"full_name": cleaned,
			"last_name": parts[0],
			"second_last_name": parts[1],
			"first_name": " ".join(parts[2:]),
		}
	if len(parts) == 2:
		return {"full_name": cleaned, "last_name": parts[0], "first_name": parts[1]}
	return {"full_name": cleaned, "first_name": parts[0] if parts else None}


def _passport_label_name(lines: List[str]) -> dict:
	surname = ""
	given = ""
	for i, line in enumerate(lines):
		upper = line.upper()
		following = lines[i + 1] if i + 1 < len(lines) else ""

		if "APELLIDO" in upper or "SURNAME" in upper:
			same = re.search(r"(?:apellidos?|surname)[/\s:]+(.+)", line, re.IGNORECASE)
			# bilingual labels ("APELLIDOS / SURNAME") put the value on the next line
			if same and _PASSPORT_NAME_LABEL.search(same.group(1)):
				same = None
			if same and len(same.group(1)) > 2 and "/" not in same.group(1):
				surname = same.group(1).strip()
			elif following and "/" not in following and "NOMBRE" not in following.upper() and len(following) > 1:
				surname = following

		if ("NOMBRES" in upper or "GIVEN" in upper) and "APELLIDO" not in upper and "SURNAME" not in upper:
			same = re.search(r"(?:nombres?|given\s*names?)[/\s:]+(.+)", line, re.IGNORECASE)
			if same and _PASSPORT_NAME_LABEL.search(same.group(1)):
				same = None
			if same and len(same.group(1)) > 1 and "/" not in same.group(1):
				given = same.group(1).strip()
			elif following and "/" not in following and "NACIONAL" not in following.upper() and len(following) > 1:
				given = following

	if not surname and not given:
		return {}
	surname = cleanup_name(surname)
	given = cleanup_name(given)
	surname_parts = [p for p in surname.split() if len(p) > 1]
	return {
		"full_name": " ".join(p for p in (given, surname) if p) or None,
		"first_name": given or None,
		"last_name": surname_parts[0] if surname_parts else None,
		"second_last_name": surname_parts[1] if len(surname_parts) > 1 else None,
	}


def extract_name(text: str, is_passport: bool = False) -> dict:
	"""Name parts keyed like ``DetectedFields`` (full_name, first_name, last_name, second_last_name)."""
	lines = _lines(text)

	if is_passport:
		for line in lines:
			match = re.search(r"P<MEX([A-Z<]+)<<([A-Z]+)", line)
			if match:
				surnames = [p for p in match.group(1).split("<") if p]
				given = match.group(2)
				return {
					"full_name": f"{given} {' '.join(surnames)}".strip(),
					"first_name": given,
					"last_name": surnames[0] if surnames else None,
					"second_last_name": surnames[1] if len(surnames) > 1 else None,
				}
		labelled = _passport_label_name(lines)
		if labelled:
			return labelled

	for i, raw in enumerate(lines):
		line = raw.upper()
		if "NOMBRE" not in line or "FECHA" in line or "GIVEN" in line:
			continue

		name_part = re.sub(r".*NOMBRE\s*", "", line).strip()
		if _SEX_ONLY.match(name_part) or len(name_part) < 3:
			name_part = ""

		if len(name_part) < 3 and i + 1 < len(lines):
			name_lines = []
			for following in lines[i + 1:i + 4]:
				if _INE_NAME_STOP.match(following):
					break
				if len(following) > 2:
					name_lines.append(following)
			name_part = " ".join(name_lines)

		name_part = re.sub(r"\s*SEXO\s*[HMF]?\s*$", "", name_part, flags=re.IGNORECASE).strip()
		cleaned = cleanup_name(name_part)
		logger.debug("INE name candidate %r -> %r", name_part, cleaned)
		if len(cleaned) > 2:
			return _split_ine_name(cleaned)

	return {}


def _find_date(search: str) -> Optional[str]:
	match = re.search(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})", search)
	if match:
		d, m, y = match.groups()
		return _iso(int(y), int(m), int(d))

	match = re.search(r"(\d{2})\s+(\d{2})\s+(\d{4})", search)
	if match:
		d, m, y = match.groups()
		return _iso(int(y), int(m), int(d))

	match = re.search(
		r"(\d{1,2})\s+(ENE|FEB|MAR|ABR|MAY|JUN|JUL|AGO|SEP|OCT|NOV|DIC)\w*\s+(\d{4})", search, re.IGNORECASE
	)
	if match:
		d, m, y = match.groups()
		return _iso(int(y), MONTHS[m.upper()[:3]], int(d))
	return None


def extract_date(text: str, label: str) -> Optional[str]:
	"""First date on the labelled line or the line after it, as ISO."""
	lines = text.split("\n")
	for i, line in enumerate(lines):
		if label.upper() not in line.upper():
			continue
		following = lines[i + 1] if i + 1 < len(lines) else ""
		found = _find_date(f"{line} {following}")
		if found:
			return found
	return None


def extract_passport_dates(text: str, current_year: Optional[int] = None) -> dict:
	"""Classify ``DD MM YYYY`` dates on a passport as birth, expiry or issue by their surroundings."""
	current_year = current_year or date.today().year
	lines = text.split("\n")
	found = []
	for i, line in enumerate(lines):
		context = " ".join([
			lines[i - 1] if i > 0 else "",
			line,
			lines[i + 1] if i + 1 < len(lines) else "",
		]).upper()
		for match in re.finditer(r"(\d{2})\s+(\d{2})\s+(\d{4})", line):
			d, m, y = match.groups()
			iso = _iso(int(y), int(m), int(d))
			if iso:
				found.append((iso, int(y), context))

	result = {}
	for iso, year, context in found:
		if ("NACIMIENTO" in context or "BIRTH" in context) and 1940 <= year <= 2010 and "birth_date" not in result:
			result["birth_date"] = iso
			continue
		if ("CADUCIDAD" in context or "EXPIRY" in context) and year >= current_year - 1 and "expiry_date" not in result:
			result["expiry_date"] = iso
			continue
		if ("EXPEDICI" in context or "ISSUE" in context) and current_year - 15 <= year <= current_year and "issue_date" not in result:
			result["issue_date"] = iso
			continue

	if "expiry_date" not in result:
		future = [f for f in found if f[1] > current_year]
		if future:
			result["expiry_date"] = max(future, key=lambda f: f[1])[0]

	if "issue_date" not in result:
		past = [
			f for f in found
			if current_year - 15 < f[1] <= current_year
			and f[0] not in (result.get("birth_date"), result.get("expiry_date"))
		]
		if past:
			result["issue_date"] = past[0][0]

	return result


def extract_curp(text: str) -> Optional[str]:
	"""First CURP-shaped token with ``O`` read back as ``0`` in its digit slots."""
	match = CURP_PATTERN.search(text.upper())
	if not match:
		return None
	chars = list(match.group(0))
	for i in list(range(4, 10)) + [17]:
		if chars[i] == "O":
			chars[i] = "0"
	return "".join(chars)


def extract_validity(text: str) -> Optional[str]:
	"""INE ``VIGENCIA 2022 - 2032`` becomes the last day of the end year."""
	match = re.search(r"VIGENCIA[:\s]*(\d{4})\s*[-–—]\s*(\d{4})", text.upper())
	if match:
		return f"{match.group(2)}-12-31"
	return extract_date(text, "VIGENCIA")


def extract_gender(text: str, is_passport: bool = False) -> Optional[str]:
	"""Sex as M/F. INE prints H (hombre) or M (mujer)."""
	upper = text.upper()
	if is_passport:
		match = re.search(r"(?:SEXO?|GENDER)[/:\s]*([MF])\b", upper)
		if match:
			return match.group(1)
		match = re.search(r"<([MF])<", text)
		return match.group(1) if match else None

	match = re.search(r"SEXO[:\s]*([HM])\b", upper)
	if match:
		return "M" if match.group(1) == "H" else "F"
	return None


def extract_passport_number(text: str) -> Optional[str]:
	upper = text.upper()
	for pattern in PASSPORT_NUMBER_PATTERNS:
		match = pattern.search(upper)
		if match:
			number = match.group(1).replace("O", "0")
			if 6 <= len(number) <= 12:
				return number
	return None


def extract_nationality(text: str) -> Optional[str]:
	for pattern in (r"(?:NATIONALITY|NACIONALIDAD)[/:\s]*([A-Z]{2,20})", r"NAC\.?[:\s]*([A-Z]{2,15})"):
		match = re.search(pattern, text.upper())
		if match:
			return match.group(1).strip()
	if "MEXICANA" in text.upper():
		return "MEXICANA"
	return None


def extract_address(text: str) -> Optional[str]:
	"""Up to three lines following ``DOMICILIO``, joined with commas."""
	lines = _lines(text)
	for i, line in enumerate(lines):
		if "DOMICILIO" not in line.upper():
			continue
		parts = []
		rest = re.sub(r".*DOMICILIO[:\s]*", "", line, flags=re.IGNORECASE).strip()
		candidates = ([rest] if rest else []) + lines[i + 1:]
		for candidate in candidates:
			if _ADDRESS_STOP.match(candidate) or len(parts) == 3:
				break
			if len(candidate) > 3 and not candidate.isdigit():
				parts.append(candidate)
		address = ", ".join(parts)
		if len(address) > 10:
			return address
	return None


def extract_section(text: str) -> Optional[str]:
	match = re.search(r"SECCI[OÓ]N[:\s]*(\d{4})", text.upper())
	return match.group(1) if match else None


def extract_label_fields(text: str, is_passport: bool = False, today: Optional[date] = None) -> DetectedFields:
	"""Everything the printed labels give, before any MRZ values are applied."""
	today = today or date.today()
	values = extract_name(text, is_passport)
	values["curp"] = extract_curp(text)
	values["gender"] = extract_gender(text, is_passport)

	if is_passport:
		dates = extract_passport_dates(text, today.year)
		values.update(
			birth_date=dates.get("birth_date"),
			expiry_date=dates.get("expiry_date"),
			validity=dates.get("expiry_date"),
			issue_date=dates.get("issue_date"),
			passport_number=extract_passport_number(text),
			nationality=extract_nationality(text),
		)
	else:
		values.update(
			birth_date=extract_date(text, "FECHA DE NACIMIENTO") or extract_date(text, "NACIMIENTO"),
			validity=extract_validity(text),
			address=extract_address(text),
			section=extract_section(text),
		)
	return DetectedFields(**values)
