"""Idempotent, de-duplicated loading of heavy collaborators (image library, OCR engine)."""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from docscan.errors import CollaboratorUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotLoaded:
	pass


@dataclass(frozen=True)
class Loading:
	task: "asyncio.Future"


@dataclass(frozen=True)
class Ready:
	handle: Any


@dataclass(frozen=True)
class Failed:
	error: BaseException


class CollaboratorLoader:
	"""Loads a collaborator once and shares the in-flight load between concurrent callers.

	``load_fn`` may be a plain callable (run in a worker thread) or a coroutine
	function. A failed load leaves the loader in ``Failed`` and the next call to
	``load`` tries again.
	"""

	def __init__(self, name: str, load_fn: Callable, timeout: Optional[float] = None):
		self.name = name
		self.load_fn = load_fn
		self.timeout = timeout
		self.state = NotLoaded()

	@classmethod
	def ready(cls, name: str, handle):
		"""A loader that is already Ready, for injecting pre-built collaborators."""
		loader = cls(name, lambda: handle)
		loader.state = Ready(handle)
		return loader

	def is_ready(self) -> bool:
		return isinstance(self.state, Ready)

	@property
	def handle(self):
		return self.state.handle if isinstance(self.state, Ready) else None

	async def load(self):
		state = self.state
		if isinstance(state, Ready):
			return state.handle
		if isinstance(state, Loading):
			return await asyncio.shield(state.task)

		task = asyncio.ensure_future(self._run())
		self.state = Loading(task)
		return await asyncio.shield(task)

	async def _invoke(self):
		if inspect.iscoroutinefunction(self.load_fn):
			return await self.load_fn()
		return await asyncio.to_thread(self.load_fn)

	async def _run(self):
		start = time.time()
		try:
			if self.timeout:
				handle = await asyncio.wait_for(self._invoke(), timeout=self.timeout)
			else:
				handle = await self._invoke()
		except Exception as e:
			self.state = Failed(e)
			logger.error("Failed to load %s: %s", self.name, e)
			raise CollaboratorUnavailableError(self.name, details={"reason": str(e)}) from e

		self.state = Ready(handle)
		logger.info("%s loaded", self.name, extra={"duration_ms": int((time.time() - start) * 1000)})
		return handle
