import asyncio
from typing import List, Optional, Tuple

import pytest

from brevskriver_local.models import ModelStatus
from brevskriver_local.orchestrator import LetterDraftingOrchestrator
from brevskriver_local.utils.data_manager import LocalDataManager
from brevskriver_local.utils.hardware import AccelerationInfo

SAMPLE_REPLY = """Assistant: Her er dit brev
Emne: Anmodning om forlængelse af frist

Kære SKAT,

Jeg skriver for at bede om en forlængelse af fristen for min årsopgørelse.

Med venlig hilsen
[Dit navn]"""


class FakeModelService:
    """In-memory stand-in for the local model runtime that records calls."""

    def __init__(self, reply: str = SAMPLE_REPLY, ready: bool = True):
        self.reply = reply
        self.error: Optional[BaseException] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[Tuple[str, str]] = []
        self.init_calls: List[str] = []
        self.set_ready(ready)

    @property
    def status(self) -> ModelStatus:
        return self._status

    def set_ready(self, ready: bool, message: str = "") -> None:
        self._status = ModelStatus(ready=ready, progress=1.0 if ready else 0.0, message=message)

    async def init(self, model_identifier: str) -> None:
        self.init_calls.append(model_identifier)

    async def complete(self, system_instructions: str, user_instructions: str) -> str:
        self.calls.append((system_instructions, user_instructions))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def data_manager(tmp_path):
    """Provide an isolated LocalDataManager instance backed by a temporary directory."""
    LocalDataManager._initialized_databases.clear()
    return LocalDataManager(data_dir=str(tmp_path))


@pytest.fixture
def model_service():
    return FakeModelService()


@pytest.fixture
def make_orchestrator(data_manager, model_service):
    """Build orchestrators over the shared data manager with short timers."""

    def factory(accelerated: bool = True, **overrides):
        options = {
            "model_id": "test-model",
            "autosave_delay": 0.01,
            "status_poll_interval": 0.01,
            "capability_probe": lambda: AccelerationInfo(accelerated, "test" if accelerated else "none"),
        }
        options.update(overrides)
        return LetterDraftingOrchestrator(model_service, data_manager, **options)

    return factory
