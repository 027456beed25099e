"""OCR engine contract, the Tesseract implementation and the two-pass run."""

import asyncio
import logging
from dataclasses import dataclass
from statistics import mean
from typing import Callable, Optional, Protocol

import pytesseract

from docscan.config import settings
from docscan.errors import OCREngineUnavailableError, OCRError

logger = logging.getLogger(__name__)

MRZ_WHITELIST = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ<"

_DICTIONARY_FLAGS = (
	"load_system_dawg",
	"load_freq_dawg",
	"load_unambig_dawg",
	"load_punc_dawg",
	"load_number_dawg",
	"load_fixed_length_dawgs",
	"load_bigram_dawg",
	"wordrec_enable_assoc",
)


@dataclass(frozen=True)
class OCROptions:
	page_segmentation: Optional[int] = None
	whitelist: Optional[str] = None
	use_dictionary: bool = True

	def to_config(self) -> str:
		"""Render as a tesseract command-line config string."""
		parts = []
		if self.page_segmentation is not None:
			parts.append(f"--psm {self.page_segmentation}")
		if not self.use_dictionary:
			parts.extend(f"-c {flag}=F" for flag in _DICTIONARY_FLAGS)
		if self.whitelist:
			parts.append(f"-c tessedit_char_whitelist={self.whitelist}")
		return " ".join(parts)


GENERAL_OPTIONS = OCROptions()
MRZ_OPTIONS = OCROptions(page_segmentation=6, whitelist=MRZ_WHITELIST, use_dictionary=False)


@dataclass(frozen=True)
class OCRText:
	text: str
	confidence: float


@dataclass(frozen=True)
class TwoPassText:
	text: str
	confidence: float
	general: OCRText
	mrz: OCRText


class OCREngine(Protocol):
	def recognize(self, image, language: str, options: OCROptions) -> OCRText: ...


class TesseractEngine:
	"""OCREngine backed by the tesseract binary through pytesseract."""

	def recognize(self, image, language, options):
		config = options.to_config()
		try:
			data = pytesseract.image_to_data(
				image, lang=language, config=config, output_type=pytesseract.Output.DICT
			)
			text = pytesseract.image_to_string(image, lang=language, config=config)
		except pytesseract.TesseractNotFoundError as e:
			raise OCREngineUnavailableError(details={"reason": str(e)}) from e
		except (pytesseract.TesseractError, RuntimeError) as e:
			raise OCRError(f"Tesseract failed ({language}): {e}") from e

		confidences = [float(c) for c in data.get("conf", []) if float(c) >= 0]
		return OCRText(text=text, confidence=mean(confidences) if confidences else 0.0)


def load_tesseract():
	"""Verify the tesseract binary is reachable and return an engine factory."""
	if settings.TESSERACT_CMD:
		pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD
	version = pytesseract.get_tesseract_version()
	logger.info("Using tesseract %s", version)
	return TesseractEngine


async def recognize(engine_factory: Callable[[], OCREngine], image, language: str, options: OCROptions) -> OCRText:
	"""Run one pass on a fresh engine instance in a worker thread."""
	engine = engine_factory()
	return await asyncio.to_thread(engine.recognize, image, language, options)


async def run_two_pass(
	engine_factory: Callable[[], OCREngine],
	general_image,
	mrz_image,
	general_language: str = "spa",
	mrz_language: str = "eng",
) -> TwoPassText:
	"""General and MRZ passes, concurrently; text is general + newline + MRZ, confidence the max."""
	general, mrz = await asyncio.gather(
		recognize(engine_factory, general_image, general_language, GENERAL_OPTIONS),
		recognize(engine_factory, mrz_image, mrz_language, MRZ_OPTIONS),
	)
	logger.debug(
		"OCR confidences: general=%.1f mrz=%.1f", general.confidence, mrz.confidence
	)
	return TwoPassText(
		text=f"{general.text}\n{mrz.text}",
		confidence=max(general.confidence, mrz.confidence),
		general=general,
		mrz=mrz,
	)
