"""
Scanner settings read once from the environment (prefix ``DOCSCAN_``) or a ``.env`` file.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class ScannerSettings(BaseSettings):
	"""OCR, capture and logging configuration."""

	LOG_LEVEL: str = "INFO"
	LOG_JSON: bool = False

	TESSERACT_CMD: Optional[str] = None
	GENERAL_LANGUAGE: str = "spa"
	MRZ_LANGUAGE: str = "eng"
	MRZ_ZONE_PERCENT: int = 35

	MANUAL_ADJUST_THRESHOLD: float = 0.5
	DEFAULT_CORNER_PADDING: int = 20
	MIN_RESOLUTION_WIDTH: int = 400
	MIN_RESOLUTION_HEIGHT: int = 250
	MIN_DOCUMENT_AREA_RATIO: float = 0.1
	JPEG_QUALITY: int = 92

	LOAD_TIMEOUT_SECONDS: float = 30.0

	model_config = {
		"case_sensitive": True,
		"env_prefix": "DOCSCAN_",
		"env_file": ".env",
		"extra": "ignore",
	}


settings = ScannerSettings()
