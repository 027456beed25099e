"""Exception hierarchy for the document scanner.

Components catch these at their boundary and turn them into ``success=False``
results, so callers of the pipeline only ever see them through ``to_dict``
payloads and log records.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
	"""Error categories for classification and monitoring."""

	COLLABORATOR = "collaborator"
	PROCESSING = "processing"
	VALIDATION = "validation"
	STATE = "state"


class ScannerError(Exception):
	"""Base exception for all scanner errors.

	Attributes:
		message: Human-readable error message
		error_code: Application-specific error code
		category: Error category for classification
		details: Additional context (dict)
		retryable: Whether the operation can be retried
	"""

	def __init__(
		self,
		message: str,
		error_code: str,
		category: ErrorCategory,
		details: Optional[dict[str, Any]] = None,
		retryable: bool = False,
	):
		super().__init__(message)
		self.message = message
		self.error_code = error_code
		self.category = category
		self.details = details or {}
		self.retryable = retryable

	def to_dict(self) -> dict[str, Any]:
		return {
			"code": self.error_code,
			"message": self.message,
			"category": self.category.value,
			"retryable": self.retryable,
			"details": self.details,
		}


class CollaboratorUnavailableError(ScannerError):
	"""An external collaborator (image library, OCR engine) is not loaded."""

	def __init__(self, name: str, **kwargs):
		super().__init__(
			message=f"{name} is not available",
			error_code="COLLABORATOR_UNAVAILABLE",
			category=ErrorCategory.COLLABORATOR,
			details={"collaborator": name, **kwargs.pop("details", {})},
			retryable=True,
			**kwargs,
		)


class OCREngineUnavailableError(CollaboratorUnavailableError):
	"""The OCR engine could not be loaded; OCR calls fail fast."""

	def __init__(self, **kwargs):
		super().__init__("OCR engine", **kwargs)


class OCRError(ScannerError):
	"""A recognition pass failed."""

	def __init__(self, message: str, **kwargs):
		super().__init__(
			message=message,
			error_code="OCR_FAILED",
			category=ErrorCategory.PROCESSING,
			retryable=True,
			**kwargs,
		)


class ExtractionError(ScannerError):
	"""Perspective extraction could not produce an image."""

	def __init__(self, message: str, **kwargs):
		super().__init__(
			message=message,
			error_code="EXTRACTION_FAILED",
			category=ErrorCategory.PROCESSING,
			**kwargs,
		)


class InvalidStageTransition(ScannerError):
	"""A session was asked to move between stages that are not connected."""

	def __init__(self, current: str, requested: str):
		super().__init__(
			message=f"Cannot move from '{current}' to '{requested}'",
			error_code="INVALID_TRANSITION",
			category=ErrorCategory.STATE,
			details={"current": current, "requested": requested},
		)
		self.current = current
		self.requested = requested
