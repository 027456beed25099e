import asyncio

import pytest

from docscan.errors import CollaboratorUnavailableError
from docscan.loader import CollaboratorLoader, Failed, NotLoaded, Ready


class TestCollaboratorLoader:
	"""Loading is shared between callers and retried after failure."""

	async def test_concurrent_loads_share_one_call(self):
		calls = []

		async def load():
			calls.append(1)
			await asyncio.sleep(0.01)
			return "engine"

		loader = CollaboratorLoader("ocr", load)
		assert isinstance(loader.state, NotLoaded)

		handles = await asyncio.gather(loader.load(), loader.load(), loader.load())

		assert handles == ["engine", "engine", "engine"]
		assert len(calls) == 1
		assert loader.is_ready()
		assert loader.handle == "engine"

	async def test_ready_loader_does_not_reload(self):
		calls = []

		def load():
			calls.append(1)
			return object()

		loader = CollaboratorLoader("image", load)
		first = await loader.load()
		second = await loader.load()
		assert first is second
		assert len(calls) == 1

	async def test_failure_then_retry(self):
		attempts = []

		def load():
			attempts.append(1)
			if len(attempts) == 1:
				raise OSError("tesseract not installed")
			return "engine"

		loader = CollaboratorLoader("ocr", load)

		with pytest.raises(CollaboratorUnavailableError) as exc_info:
			await loader.load()
		assert isinstance(loader.state, Failed)
		assert loader.handle is None
		assert exc_info.value.details["collaborator"] == "ocr"
		assert "tesseract not installed" in exc_info.value.details["reason"]

		assert await loader.load() == "engine"
		assert isinstance(loader.state, Ready)
		assert len(attempts) == 2

	async def test_timeout(self):
		async def slow():
			await asyncio.sleep(5)

		loader = CollaboratorLoader("ocr", slow, timeout=0.01)
		with pytest.raises(CollaboratorUnavailableError):
			await loader.load()
		assert isinstance(loader.state, Failed)

	async def test_prebuilt_handle(self):
		handle = object()
		loader = CollaboratorLoader.ready("image", handle)
		assert loader.is_ready()
		assert await loader.load() is handle
