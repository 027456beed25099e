"""ICAO 9303 machine-readable zone decoding for INE (TD1) and passport (TD3) documents."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from docscan.models import CheckDigits, DocumentType, MRZResult

logger = logging.getLogger(__name__)

MRZ_CHARSET = re.compile(r"^[A-Z0-9<]+$")
INE_FIRST_LINE = re.compile(r"^I[D]?MEX")
PASSPORT_FIRST_LINE = re.compile(r"^P[<A-Z]")
INE_DOCUMENT_NUMBER = re.compile(r"^I[D]?MEX(\d+)")

TD1_LENGTH = 30
TD3_LENGTH = 44
TD1_TOLERANCE = (26, 34)
TD3_TOLERANCE = (40, 48)
CANDIDATE_LENGTH = (20, 50)


@dataclass
class MRZCorrections:
	"""Substitution tables applied to OCR output before decoding.

	The defaults cover the misreads seen on photographed Mexican documents;
	pass a modified instance to ``MRZParser`` to tune them.
	"""

	symbols: Dict[str, str] = field(default_factory=lambda: {
		**{ch: "<" for ch in ".-–—_'\"`,;:!\\/"},
		"$": "S",
		"|": "I",
	})
	digits: Dict[str, str] = field(default_factory=lambda: {
		"O": "0", "D": "0", "Q": "0",
		"I": "1", "L": "1", "|": "1",
		"Z": "2",
		"A": "4",
		"S": "5",
		"G": "6",
		"T": "7",
		"B": "8",
	})
	letters: Dict[str, str] = field(default_factory=lambda: {
		"0": "O",
		"1": "I",
		"2": "Z",
		"4": "A",
		"5": "S",
		"6": "G",
		"7": "T",
		"8": "B",
	})
	merged_fillers: Tuple[str, ...] = (r"LS(?=[A-Z])", r"L5(?=[A-Z])", r"K<", r"LC", r"LZ")
	td1_sex: Dict[str, str] = field(default_factory=lambda: {"4": "H", "0": "<", "O": "<"})
	td3_sex: Dict[str, str] = field(default_factory=lambda: {"0": "<", "O": "<"})


class MRZParser:
	"""Parse MRZ text from INE (TD1) and passport (TD3) documents."""

	_weights = [7, 3, 1]

	def __init__(self, corrections: Optional[MRZCorrections] = None):
		self.corrections = corrections or MRZCorrections()
		self._filler_patterns = [re.compile(p) for p in self.corrections.merged_fillers]

	def _char_value(self, ch: str) -> int:
		if ch.isdigit():
			return int(ch)
		if "A" <= ch <= "Z":
			return ord(ch) - ord("A") + 10
		return 0  # '<' or any other filler

	def _check_digit(self, field: str) -> int:
		total = 0
		for i, ch in enumerate(field):
			total += self._char_value(ch) * self._weights[i % 3]
		return total % 10

	def _verify(self, field: str, digit: str) -> bool:
		if len(digit) != 1 or not digit.isdigit():
			return False
		return self._check_digit(field) == int(digit)

	# OCR clean-up

	def clean_line(self, line: str) -> str:
		"""Uppercase, drop whitespace, map punctuation to fillers and discard anything else."""
		out = []
		for ch in "".join(line.upper().split()):
			ch = self.corrections.symbols.get(ch, ch)
			if "A" <= ch <= "Z" or ch.isdigit() and ch.isascii() or ch == "<":
				out.append(ch)
		return "".join(out)

	def find_candidates(self, text: str) -> List[str]:
		lines = []
		for raw in text.splitlines():
			if len("".join(raw.split())) < CANDIDATE_LENGTH[0]:
				continue
			line = self.clean_line(raw)
			if not MRZ_CHARSET.match(line) or "<" not in line:
				continue
			if CANDIDATE_LENGTH[0] <= len(line) <= CANDIDATE_LENGTH[1]:
				lines.append(line)
		return lines

	def _fix_positions(self, line: str, positions, table: Dict[str, str]) -> str:
		chars = list(line)
		for i in positions:
			if i < len(chars):
				chars[i] = table.get(chars[i], chars[i])
		return "".join(chars)

	def _fix_name_line(self, line: str) -> str:
		for pattern in self._filler_patterns:
			line = pattern.sub("<<", line)
		return "".join(self.corrections.letters.get(ch, ch) for ch in line)

	def _normalize(self, line: str, length: int) -> str:
		return line[:length].ljust(length, "<")

	# Field helpers

	def parse_date(self, field: str, expiry: bool = False) -> Optional[str]:
		"""YYMMDD to ISO. Birth years above 50 are 19YY; expiry years are always 20YY."""
		if len(field) != 6 or not field.isdigit():
			return None
		yy, mm, dd = int(field[0:2]), int(field[2:4]), int(field[4:6])
		year = 2000 + yy if expiry or yy <= 50 else 1900 + yy
		try:
			return date(year, mm, dd).isoformat()
		except ValueError:
			return None

	def _split_names(self, names_raw: str):
		"""Return (surnames, given_names) word lists from a filler-separated name field."""
		names_raw = names_raw.strip("<")
		if "<<" in names_raw:
			surname_part, given_part = names_raw.split("<<", 1)
			surnames = [w for w in surname_part.split("<") if w]
			given = [w for w in given_part.split("<") if w]
		else:
			words = [w for w in names_raw.split("<") if w]
			surnames, given = words[:1], words[1:]
		return surnames, given

	def _name_fields(self, names_raw: str) -> dict:
		surnames, given = self._split_names(names_raw)
		first_name = " ".join(given) or None
		last_name = surnames[0] if surnames else None
		second_last_name = " ".join(surnames[1:]) or None
		full_name = " ".join(given + surnames) or None
		return {
			"full_name": full_name,
			"first_name": first_name,
			"last_name": last_name,
			"second_last_name": second_last_name,
		}

	def _strip(self, value: str) -> Optional[str]:
		value = value.replace("<", "")
		return value or None

	# TD1 (INE)

	def _find_td1(self, candidates: List[str]) -> Optional[List[str]]:
		lo, hi = TD1_TOLERANCE
		windows = [candidates[i:i + 3] for i in range(len(candidates) - 2)]
		for window in windows:
			if INE_FIRST_LINE.match(window[0]) and all(lo <= len(l) <= hi for l in window):
				return window
		for window in windows:
			if "MEX" in window[0] and all(lo <= len(l) <= hi for l in window):
				return window
		return None

	def parse_td1(self, text: str) -> MRZResult:
		candidates = self.find_candidates(text)
		lines = self._find_td1(candidates)
		if lines is None:
			return MRZResult(
				success=False,
				raw_lines=candidates,
				error=f"No TD1 (INE) MRZ found among {len(candidates)} candidate line(s)",
			)

		row1, row2, row3 = [self._normalize(l, TD1_LENGTH) for l in lines]
		row2 = self._fix_positions(row2, list(range(0, 7)) + list(range(8, 15)) + [29], self.corrections.digits)
		row2 = self._fix_positions(row2, [7], self.corrections.td1_sex)
		row3 = self._fix_name_line(row3)

		match = INE_DOCUMENT_NUMBER.match(row1)
		document_number = match.group(1) if match else None
		birth_date = self.parse_date(row2[0:6])
		expiry_date = self.parse_date(row2[8:14], expiry=True)
		sex = {"H": "M", "M": "F", "F": "F"}.get(row2[7])
		names = self._name_fields(row3)

		composite = row1[5:30] + row2[0:7] + row2[8:15] + row2[18:29]
		checks = CheckDigits(
			document_number=self._verify(row1[5:14], row1[14]),
			birth_date=self._verify(row2[0:6], row2[6]),
			expiry_date=self._verify(row2[8:14], row2[14]),
			# INE cards carry no separate personal-number check digit
			personal_number=True,
			overall=self._verify(composite, row2[29]),
		)
		signals = [
			document_number is not None,
			birth_date is not None,
			expiry_date is not None,
			names["full_name"] is not None,
			checks.birth_date,
			checks.expiry_date,
		]
		return MRZResult(
			success=True,
			document_type=DocumentType.INE,
			document_number=document_number,
			birth_date=birth_date,
			sex=sex,
			expiry_date=expiry_date,
			nationality=self._strip(row2[15:18]),
			issuing_country=self._strip(row1[2:5]),
			raw_lines=[row1, row2, row3],
			confidence=sum(signals) / len(signals),
			check_digits=checks,
			**names,
		)

	# TD3 (passport)

	def _find_td3(self, candidates: List[str]) -> Optional[List[str]]:
		lo, hi = TD3_TOLERANCE
		for i in range(len(candidates) - 1):
			row1, row2 = candidates[i], candidates[i + 1]
			if not PASSPORT_FIRST_LINE.match(row1):
				continue
			if lo <= len(row1) <= hi and lo <= len(row2) <= hi:
				return [row1, row2]
		return None

	def parse_td3(self, text: str) -> MRZResult:
		candidates = self.find_candidates(text)
		lines = self._find_td3(candidates)
		if lines is None:
			return MRZResult(
				success=False,
				raw_lines=candidates,
				error=f"No TD3 (passport) MRZ found among {len(candidates)} candidate line(s)",
			)

		row1, row2 = [self._normalize(l, TD3_LENGTH) for l in lines]
		row1 = row1[:5] + self._fix_name_line(row1[5:])
		digit_positions = [9] + list(range(13, 20)) + list(range(21, 28)) + [42, 43]
		row2 = self._fix_positions(row2, digit_positions, self.corrections.digits)
		row2 = self._fix_positions(row2, [20], self.corrections.td3_sex)

		if not re.match(r"^[A-Z]{2}[A-Z<]$", row2[10:13]):
			return MRZResult(
				success=False,
				raw_lines=[row1, row2],
				error=f"Unexpected nationality code '{row2[10:13]}' in TD3 line 2",
			)

		document_number = self._strip(row2[0:9])
		personal_number = self._strip(row2[28:42])
		birth_date = self.parse_date(row2[13:19])
		expiry_date = self.parse_date(row2[21:27], expiry=True)
		names = self._name_fields(row1[5:])

		if personal_number is None:
			personal_valid = row2[42] == "<" or self._verify(row2[28:42], row2[42])
		else:
			personal_valid = self._verify(row2[28:42], row2[42])
		composite = row2[0:10] + row2[13:20] + row2[21:43]
		checks = CheckDigits(
			document_number=self._verify(row2[0:9], row2[9]),
			birth_date=self._verify(row2[13:19], row2[19]),
			expiry_date=self._verify(row2[21:27], row2[27]),
			personal_number=personal_valid,
			overall=self._verify(composite, row2[43]),
		)
		signals = [
			document_number is not None and checks.document_number,
			birth_date is not None,
			expiry_date is not None,
			names["full_name"] is not None,
			checks.birth_date,
			checks.expiry_date,
		]
		return MRZResult(
			success=True,
			document_type=DocumentType.PASSPORT,
			document_number=document_number,
			birth_date=birth_date,
			sex=row2[20] if row2[20] in ("M", "F") else None,
			expiry_date=expiry_date,
			nationality=self._strip(row2[10:13]),
			issuing_country=self._strip(row1[2:5]),
			personal_number=personal_number,
			raw_lines=[row1, row2],
			confidence=sum(signals) / len(signals),
			check_digits=checks,
			**names,
		)

	def detect_type(self, text: str) -> DocumentType:
		upper = text.upper()
		if "IDMEX" in "".join(upper.split()):
			return DocumentType.INE
		for raw in upper.splitlines():
			line = self.clean_line(raw)
			if len(line) >= 30 and re.match(r"^P[<A-Z][A-Z]{3}", line):
				return DocumentType.PASSPORT
		return DocumentType.UNKNOWN

	def parse(self, text: str) -> MRZResult:
		"""Decode whichever layout the text holds, trying both when the type is unclear."""
		mrz_type = self.detect_type(text)
		if mrz_type == DocumentType.INE:
			return self.parse_td1(text)
		if mrz_type == DocumentType.PASSPORT:
			return self.parse_td3(text)

		for parser_fn in (self.parse_td1, self.parse_td3):
			result = parser_fn(text)
			if result.success:
				return result
		logger.debug("No MRZ layout recognised in %d characters of text", len(text))
		return MRZResult(success=False, error="Could not identify an INE or passport MRZ")


_default_parser = MRZParser()


def calculate_check_digit(data: str) -> int:
	"""ICAO 9303 check digit of ``data`` (weights 7, 3, 1)."""
	return _default_parser._check_digit(data)


def validate_check_digit(data: str, check_digit: str) -> bool:
	return _default_parser._verify(data, check_digit)


def clean_mrz_ocr_errors(line: str) -> str:
	return _default_parser.clean_line(line)


def find_mrz_candidates(text: str) -> List[str]:
	return _default_parser.find_candidates(text)


def parse_mrz_date(yymmdd: str) -> Optional[str]:
	return _default_parser.parse_date(yymmdd)


def parse_expiry_date(yymmdd: str) -> Optional[str]:
	return _default_parser.parse_date(yymmdd, expiry=True)


def parse_ine_mrz(text: str) -> MRZResult:
	return _default_parser.parse_td1(text)


def parse_passport_mrz(text: str) -> MRZResult:
	return _default_parser.parse_td3(text)


def detect_mrz_type(text: str) -> DocumentType:
	return _default_parser.detect_type(text)


def parse_any_mrz(text: str) -> MRZResult:
	return _default_parser.parse(text)
