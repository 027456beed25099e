import numpy as np
import pytest

from docscan.imaging import OpenCVImageProcessor
from docscan.preprocess import MRZZonePreprocessor, OCRPreprocessor, preprocess_for_ocr, preprocess_mrz_zone


class Buffer:
	def __init__(self, width, height, label):
		self.width = width
		self.height = height
		self.label = label


class CountingProcessor:
	"""Fake ImageProcessor that records every buffer it allocates and releases."""

	def __init__(self, mean=200.0, fail_on=None):
		self.allocated = []
		self.released = []
		self._mean = mean
		self.fail_on = fail_on

	def _new(self, source, label, width=None, height=None):
		if label == self.fail_on:
			raise RuntimeError(f"{label} failed")
		buffer = Buffer(width or source.width, height or source.height, label)
		self.allocated.append(buffer)
		return buffer

	def shape(self, image):
		return image.height, image.width

	def to_grayscale(self, image):
		return self._new(image, "gray")

	def resize(self, image, width, height):
		return self._new(image, "resize", width, height)

	def crop_rows(self, image, start, end):
		return self._new(image, "crop", image.width, end - start)

	def adaptive_threshold(self, image, block_size, c):
		assert (block_size, c) == (21, 8)
		return self._new(image, "adaptive")

	def otsu_threshold(self, image):
		return self._new(image, "otsu")

	def invert(self, image):
		return self._new(image, "invert")

	def mean(self, image):
		return self._mean

	def morphology(self, image, operation, kernel_size):
		assert kernel_size == 2
		return self._new(image, operation)

	def release(self, image):
		self.released.append(image)


class TestOCRPreprocessor:
	"""Whole-document preparation for the general pass."""

	def test_small_image_is_upscaled_and_intermediates_released(self):
		processor = CountingProcessor()
		source = Buffer(500, 300, "source")

		result = OCRPreprocessor(processor).preprocess(source)

		assert [b.label for b in processor.allocated] == ["resize", "gray", "adaptive", "open"]
		assert (result.width, result.height) == (1000, 600)
		assert len(processor.released) == 3
		assert result not in processor.released
		assert source not in processor.released

	def test_large_image_is_not_resized(self):
		processor = CountingProcessor()
		result = OCRPreprocessor(processor).preprocess(Buffer(1200, 800, "source"))
		assert len(processor.allocated) == 3
		assert len(processor.released) == 2
		assert (result.width, result.height) == (1200, 800)

	@pytest.mark.parametrize(
		"size,expected",
		[((500, 300), 2.0), ((200, 100), 2.0), ((800, 600), 1.25), ((2000, 1200), 0.5)],
	)
	def test_scale_factor(self, size, expected):
		assert OCRPreprocessor(None).scale_factor(*size) == pytest.approx(expected)

	def test_failure_returns_original_and_releases(self):
		processor = CountingProcessor(fail_on="adaptive")
		source = Buffer(500, 300, "source")

		assert OCRPreprocessor(processor).preprocess(source) is source
		assert len(processor.allocated) == 2
		assert processor.released == list(reversed(processor.allocated))

	def test_without_processor(self):
		image = object()
		assert preprocess_for_ocr(image, None) is image


class TestMRZZonePreprocessor:
	def test_dark_zone_is_inverted(self):
		processor = CountingProcessor(mean=40.0)
		result = MRZZonePreprocessor(processor, zone_percent=50).preprocess(Buffer(1000, 600, "source"))

		assert [b.label for b in processor.allocated] == ["crop", "resize", "gray", "otsu", "invert", "close"]
		assert len(processor.released) == 5
		assert (result.width, result.height) == (2000, 600)

	def test_light_zone_is_not_inverted(self):
		processor = CountingProcessor(mean=200.0)
		MRZZonePreprocessor(processor).preprocess(Buffer(1000, 600, "source"))
		assert "invert" not in [b.label for b in processor.allocated]
		assert len(processor.released) == 4

	def test_short_zone_scaled_to_target_height(self):
		processor = CountingProcessor()
		result = MRZZonePreprocessor(processor, zone_percent=10).preprocess(Buffer(400, 500, "source"))
		assert result.height == 150

	def test_failure_returns_original(self):
		processor = CountingProcessor(fail_on="otsu")
		source = Buffer(1000, 600, "source")
		assert MRZZonePreprocessor(processor).preprocess(source) is source
		assert len(processor.released) == len(processor.allocated)


class TestWithOpenCV:
	def test_general_output_is_binary(self):
		image = np.full((300, 500, 3), 255, np.uint8)
		image[100:120, 50:450] = 0
		result = preprocess_for_ocr(image, OpenCVImageProcessor())
		assert result.shape == (600, 1000)
		assert set(np.unique(result)) <= {0, 255}

	def test_mrz_zone_has_light_background(self):
		image = np.zeros((600, 1000, 3), np.uint8)
		image[500:520, 100:900] = 255
		result = preprocess_mrz_zone(image, OpenCVImageProcessor(), zone_percent=50)
		assert result.shape == (600, 2000)
		assert result.mean() > 127
