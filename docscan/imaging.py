"""Image-processing collaborator contract and its OpenCV implementation."""

import logging
from typing import List, Protocol, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ImageProcessor(Protocol):
	"""Operations the pipeline needs from an image library."""

	def shape(self, image) -> Tuple[int, int]: ...

	def to_grayscale(self, image): ...

	def resize(self, image, width: int, height: int): ...

	def crop_rows(self, image, start: int, end: int): ...

	def adaptive_threshold(self, image, block_size: int, c: int): ...

	def otsu_threshold(self, image): ...

	def invert(self, image): ...

	def mean(self, image) -> float: ...

	def morphology(self, image, operation: str, kernel_size: int): ...

	def warp_perspective(self, image, source_points, width: int, height: int): ...

	def encode_jpeg(self, image, quality: int) -> bytes: ...

	def highlight(self, image, points, color, alpha: float): ...

	def release(self, image) -> None: ...


class BufferArena:
	"""Tracks intermediate buffers and releases each exactly once on exit.

	Usage:
		with BufferArena(processor) as arena:
			gray = arena.track(processor.to_grayscale(image))
			...
			return arena.detach(result)
	"""

	def __init__(self, processor: ImageProcessor):
		self.processor = processor
		self._buffers: List = []

	def track(self, buffer):
		if buffer is not None and not any(buffer is b for b in self._buffers):
			self._buffers.append(buffer)
		return buffer

	def detach(self, buffer):
		"""Hand ``buffer`` to the caller; it will not be released with the arena."""
		self._buffers = [b for b in self._buffers if b is not buffer]
		return buffer

	def release_all(self):
		buffers, self._buffers = self._buffers, []
		for buffer in reversed(buffers):
			try:
				self.processor.release(buffer)
			except Exception:
				logger.exception("Failed to release image buffer")

	def __len__(self):
		return len(self._buffers)

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc, tb):
		self.release_all()
		return False


class OpenCVImageProcessor:
	"""ImageProcessor backed by OpenCV and numpy arrays (BGR colour order)."""

	_morph_ops = {
		"open": cv2.MORPH_OPEN,
		"close": cv2.MORPH_CLOSE,
	}

	def shape(self, image):
		h, w = image.shape[:2]
		return h, w

	def to_grayscale(self, image):
		"""Convert image to grayscale."""
		if image.ndim == 2:
			return image.copy()
		if image.shape[2] == 4:
			return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
		return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

	def resize(self, image, width, height):
		"""Resize image using cubic interpolation."""
		return cv2.resize(image, (int(width), int(height)), interpolation=cv2.INTER_CUBIC)

	def crop_rows(self, image, start, end):
		return image[int(start):int(end)].copy()

	def adaptive_threshold(self, image, block_size, c):
		return cv2.adaptiveThreshold(
			image, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, block_size, c
		)

	def otsu_threshold(self, image):
		return cv2.threshold(image, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)[1]

	def invert(self, image):
		return cv2.bitwise_not(image)

	def mean(self, image):
		return float(cv2.mean(image)[0])

	def morphology(self, image, operation, kernel_size):
		kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
		return cv2.morphologyEx(image, self._morph_ops[operation], kernel)

	def warp_perspective(self, image, source_points, width, height):
		src = np.asarray(source_points, dtype="float32")
		dst = np.array(
			[[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]],
			dtype="float32",
		)
		matrix = cv2.getPerspectiveTransform(src, dst)
		return cv2.warpPerspective(image, matrix, (int(width), int(height)), flags=cv2.INTER_LINEAR)

	def encode_jpeg(self, image, quality):
		ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
		if not ok:
			raise ValueError("JPEG encoding failed")
		return buf.tobytes()

	def highlight(self, image, points, color=(0, 165, 255), alpha=0.3):
		"""Translucent fill plus border over the document quad."""
		pts = np.asarray(points, dtype=np.int32).reshape((-1, 1, 2))
		overlay = image.copy()
		cv2.fillPoly(overlay, [pts], color)
		blended = cv2.addWeighted(overlay, alpha, image, 1 - alpha, 0)
		cv2.polylines(blended, [pts], True, color, 3)
		return blended

	def release(self, image):
		# numpy-backed Mats are freed once the last reference is dropped
		return None


def decode_image(data: bytes):
	"""Decode encoded image bytes (JPEG, PNG, ...) to a BGR array, or None."""
	file_bytes = np.frombuffer(data, np.uint8)
	image = cv2.imdecode(file_bytes, cv2.IMREAD_COLOR)
	if image is None:
		logger.error("Could not decode image from %d bytes", len(data))
	return image
