"""Logging setup for the scanner and its Streamlit front-end."""

import json
import logging
from datetime import datetime, timezone


class StructuredFormatter(logging.Formatter):
	"""JSON formatter that carries scanner context passed through ``extra``.

	Example:
		>>> logger.info("Corners detected", extra={"page_id": "p1", "stage": "detecting"})
	"""

	context_keys = (
		"page_id",
		"stage",
		"document_type",
		"duration_ms",
		"error_code",
	)

	def format(self, record: logging.LogRecord) -> str:
		log_data = {
			"timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname,
			"logger": record.name,
			"message": record.getMessage(),
			"module": record.module,
			"function": record.funcName,
			"line": record.lineno,
		}

		for key in self.context_keys:
			if hasattr(record, key):
				log_data[key] = getattr(record, key)

		if record.exc_info:
			log_data["exception"] = {
				"type": record.exc_info[0].__name__ if record.exc_info[0] else None,
				"message": str(record.exc_info[1]) if record.exc_info[1] else None,
				"traceback": self.formatException(record.exc_info),
			}

		return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
	"""Configure root logging.

	Args:
		level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
		json_format: Use the JSON formatter (True) or plain text (False)
	"""
	root_logger = logging.getLogger()
	root_logger.handlers.clear()

	handler = logging.StreamHandler()
	if json_format:
		formatter = StructuredFormatter()
	else:
		formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

	handler.setFormatter(formatter)
	root_logger.addHandler(handler)
	root_logger.setLevel(getattr(logging, level.upper()))

	# Suppress noisy libraries
	logging.getLogger("PIL").setLevel(logging.WARNING)
	logging.getLogger("matplotlib").setLevel(logging.WARNING)
	logging.getLogger("asyncio").setLevel(logging.WARNING)
