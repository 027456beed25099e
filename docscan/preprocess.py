import logging
from typing import Optional

from docscan.imaging import BufferArena, ImageProcessor

logger = logging.getLogger(__name__)


class OCRPreprocessor:
	"""Responsible for preparing a whole rectified document for general OCR."""

	def __init__(self, processor: Optional[ImageProcessor], min_width=1000, min_height=600, max_scale=2.0):
		self.processor = processor
		self.min_width = min_width
		self.min_height = min_height
		self.max_scale = max_scale

	def scale_factor(self, width, height):
		return min(max(self.min_width / width, self.min_height / height), self.max_scale)

	def upscale(self, image, arena):
		"""Upscale small captures toward min_width x min_height, at most max_scale."""
		h, w = self.processor.shape(image)
		scale = self.scale_factor(w, h)
		if scale <= 1:
			return image
		return arena.track(self.processor.resize(image, round(w * scale), round(h * scale)))

	def binarize(self, gray, arena):
		"""Adaptive Gaussian threshold then a 2x2 opening to drop speckle."""
		thresh = arena.track(self.processor.adaptive_threshold(gray, 21, 8))
		return arena.track(self.processor.morphology(thresh, "open", 2))

	def preprocess(self, image):
		"""Full preprocessing pipeline; returns the input unchanged if it cannot run."""
		if self.processor is None:
			return image
		try:
			with BufferArena(self.processor) as arena:
				scaled = self.upscale(image, arena)
				gray = arena.track(self.processor.to_grayscale(scaled))
				cleaned = self.binarize(gray, arena)
				return arena.detach(cleaned)
		except Exception:
			logger.warning("General OCR preprocessing failed, using original image", exc_info=True)
			return image


class MRZZonePreprocessor:
	"""Responsible for isolating and binarizing the MRZ band at the bottom of a document."""

	def __init__(self, processor: Optional[ImageProcessor], zone_percent=30, target_height=150, min_scale=2.0):
		self.processor = processor
		self.zone_percent = zone_percent
		self.target_height = target_height
		self.min_scale = min_scale

	def crop_zone(self, image, arena):
		"""Keep the bottom zone_percent of the rows."""
		h, _ = self.processor.shape(image)
		start = int(h * (1 - self.zone_percent / 100))
		return arena.track(self.processor.crop_rows(image, start, h))

	def upscale(self, zone, arena):
		h, w = self.processor.shape(zone)
		scale = max(self.target_height / h, self.min_scale)
		return arena.track(self.processor.resize(zone, round(w * scale), round(h * scale)))

	def binarize(self, gray, arena):
		"""Otsu threshold, forced to dark text on a light background, then a 2x2 closing."""
		binary = arena.track(self.processor.otsu_threshold(gray))
		if self.processor.mean(binary) < 127:
			binary = arena.track(self.processor.invert(binary))
		return arena.track(self.processor.morphology(binary, "close", 2))

	def preprocess(self, image):
		if self.processor is None:
			return image
		try:
			with BufferArena(self.processor) as arena:
				zone = self.crop_zone(image, arena)
				scaled = self.upscale(zone, arena)
				gray = arena.track(self.processor.to_grayscale(scaled))
				cleaned = self.binarize(gray, arena)
				return arena.detach(cleaned)
		except Exception:
			logger.warning("MRZ zone preprocessing failed, using original image", exc_info=True)
			return image


def preprocess_for_ocr(image, processor: Optional[ImageProcessor]):
	return OCRPreprocessor(processor).preprocess(image)


def preprocess_mrz_zone(image, processor: Optional[ImageProcessor], zone_percent=30):
	return MRZZonePreprocessor(processor, zone_percent=zone_percent).preprocess(image)
