"""
Brevskriver Letter Drafting Orchestrator
Owns the current draft and drives validation, generation, normalisation and persistence
"""

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .config.prompts import PromptManager
from .config.scenarios import get_scenario, is_known_scenario
from .errors import (
    CapabilityUnavailable,
    ExportError,
    FieldValidationError,
    GenerationInProgress,
    LetterDraftingError,
    ModelInvocationFailure,
    ModelNotReady,
)
from .models import (
    CUSTOM_SCENARIO,
    Draft,
    HistoryItem,
    ModelStatus,
    Profile,
    ScenarioPreset,
    parse_language,
    parse_tone,
)
from .utils.data_manager import LocalDataManager
from .utils.exporters import EXPORTERS, copy_to_clipboard
from .utils.hardware import AccelerationInfo, detect_acceleration
from .utils.logger import get_logger, log_error, log_generation_complete, log_generation_start
from .utils.normalizer import NormalizerLabels, has_letter_body, normalize_letter, render_template_letter
from .utils.scheduler import DebouncedTask, PeriodicTask, StatusListener, StatusObservable
from .utils.stores import DEFAULT_HISTORY_LIMIT, DraftStore, HistoryStore, ProfileStore
from .utils.validators import first_invalid_field, validate_letter_fields


class ModelService(Protocol):
    @property
    def status(self) -> ModelStatus: ...

    def init(self, model_identifier: str) -> Awaitable[None]: ...

    def complete(self, system_instructions: str, user_instructions: str) -> Awaitable[str]: ...


class DraftingState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_MODEL = "awaiting_model"
    NORMALIZING = "normalizing"
    READY = "ready"
    ERROR = "error"


@dataclass
class GenerationOutcome:
    """Result of a generation request, with one user-facing message."""

    ok: bool
    state: DraftingState
    output: str = ""
    field_errors: Dict[str, str] = field(default_factory=dict)
    focus_field: Optional[str] = None
    error: Optional[LetterDraftingError] = None
    message: str = ""


DRAFT_FIELDS = ("input_language", "tone", "scenario", "subject", "recipient", "body", "output")
PROFILE_FIELDS = ("name", "phone", "email", "address")


class LetterDraftingOrchestrator:
    """
    Stateful coordinator for one drafting session.

    All methods run on the event loop's thread. Field edits are accepted
    while a model call is pending, but only one model call may be in flight.
    """

    def __init__(
        self,
        model_service: ModelService,
        data_manager: LocalDataManager,
        *,
        model_id: str,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        autosave_delay: float = 0.5,
        status_poll_interval: float = 0.3,
        require_acceleration: bool = True,
        capability_probe: Callable[[], AccelerationInfo] = detect_acceleration,
        prompt_manager: Optional[PromptManager] = None,
        labels: Optional[NormalizerLabels] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            model_service: Local model service (init/status/complete)
            data_manager: Shared data manager backing the stores
            model_id: Model identifier passed to ``model_service.init``
            history_limit: Maximum number of letters kept in history
            autosave_delay: Quiet period in seconds before the draft is written
            status_poll_interval: Seconds between model status polls
            require_acceleration: Block model generation without a GPU
            capability_probe: Callable returning AccelerationInfo
            prompt_manager: Prompt builder (defaults to one without overrides)
            labels: Normalizer label allow-lists
        """
        self.model_service = model_service
        self.data_manager = data_manager
        self.model_id = model_id
        self.require_acceleration = require_acceleration
        self.capability_probe = capability_probe
        self.prompt_manager = prompt_manager or PromptManager()
        self.labels = labels or NormalizerLabels()
        self.logger = get_logger("orchestrator")

        self.draft_store = DraftStore(data_manager)
        self.profile_store = ProfileStore(data_manager)
        self.history_store = HistoryStore(data_manager, limit=history_limit)

        self.draft = Draft()
        self.profile = Profile()
        self.state = DraftingState.IDLE
        self.field_errors: Dict[str, str] = {}
        self.focus_field: Optional[str] = None
        self.notice: Optional[str] = None

        self.model_status = StatusObservable(model_service.status)
        self._status_poller = PeriodicTask(self._poll_status, status_poll_interval, name="model-status")
        self._autosave = DebouncedTask(self._persist_draft, autosave_delay, name="draft-autosave")
        self._init_task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._draft_epoch = 0
        self._started = False

    async def __aenter__(self) -> "LetterDraftingOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, init_model: bool = True) -> None:
        """
        Rehydrate the draft and profile, start status polling and model loading.

        Args:
            init_model: Start loading the model in the background
        """
        if self._started:
            return
        self._started = True

        self.draft = self.draft_store.load()
        self.profile = self.profile_store.load()
        if not self.draft.is_empty():
            self.logger.info(f"Restored draft saved at {self.draft.saved_at}")

        self._poll_status()
        self._status_poller.start()
        if init_model:
            self.load_model()

    def load_model(self) -> None:
        """Start loading the model in the background unless a load is already running."""
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._init_model())

    async def close(self) -> None:
        """Stop polling, write any pending autosave, and stop waiting on the model load."""
        await self._status_poller.stop()
        self._autosave.flush()
        self._autosave.cancel()

        task, self._init_task = self._init_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._started = False

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the background model load to finish.

        Returns:
            True if the model reports ready
        """
        if self._init_task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._init_task), timeout)
            except asyncio.TimeoutError:
                self.logger.warning(f"Model still loading after {timeout}s")
        self._poll_status()
        return self.model_status.value.ready

    async def _init_model(self) -> None:
        try:
            await self.model_service.init(self.model_id)
        except Exception as e:
            # The failure message is already in the model status
            self.logger.warning(f"Model initialization failed: {str(e)}")
        finally:
            self._poll_status()

    def _poll_status(self) -> None:
        self.model_status.update(self.model_service.status)

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        return self.model_status.subscribe(listener)

    def unsubscribe_status(self, listener: StatusListener) -> None:
        self.model_status.unsubscribe(listener)

    @property
    def generating(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    def update_draft(self, **changes: Any) -> Draft:
        """
        Apply field edits to the draft and schedule an autosave.

        Raises:
            ValueError: For unknown field names or scenario keys
        """
        for name, value in changes.items():
            if name not in DRAFT_FIELDS:
                raise ValueError(f"Unknown draft field: {name}")
            if name == "input_language":
                value = parse_language(value, self.draft.input_language)
            elif name == "tone":
                value = parse_tone(value, self.draft.tone)
            elif name == "scenario":
                value = value or CUSTOM_SCENARIO
                if not is_known_scenario(value):
                    raise ValueError(f"Unknown scenario: {value}")
            else:
                value = "" if value is None else str(value)
            setattr(self.draft, name, value)
            self.field_errors.pop(name, None)

        if self.focus_field and self.focus_field not in self.field_errors:
            self.focus_field = first_invalid_field(self.field_errors)

        self._autosave.schedule()
        return self.draft

    def apply_scenario(self, key: str) -> Optional[ScenarioPreset]:
        """
        Select a scenario preset.

        Sets the preset's tone, and its subject when the subject is still empty.

        Returns:
            The preset, or None for ``custom``
        """
        if not is_known_scenario(key):
            raise ValueError(f"Unknown scenario: {key}")

        preset = get_scenario(key)
        if preset is None:
            self.update_draft(scenario=CUSTOM_SCENARIO)
            return None

        changes: Dict[str, Any] = {"scenario": preset.key, "tone": preset.default_tone}
        if not self.draft.subject.strip():
            changes["subject"] = preset.default_subject
        self.update_draft(**changes)
        return preset

    def clear_draft(self) -> None:
        """Reset all fields and remove the stored draft."""
        self._autosave.cancel()
        self.draft = Draft()
        self._draft_epoch += 1
        self.field_errors = {}
        self.focus_field = None
        self.state = DraftingState.IDLE
        self.draft_store.remove()
        self.logger.info("Draft cleared")

    def _persist_draft(self) -> None:
        self.draft_store.save(self.draft)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_test(self) -> str:
        """
        Build the templated letter from the current fields without the model.
        """
        log_generation_start("test", self.draft.tone.value, self.draft.input_language.value)
        started = time.time()

        letter = render_template_letter(self.draft, self.profile, self.labels)
        self.draft.output = letter
        self.state = DraftingState.READY
        self._autosave.schedule()

        log_generation_complete("test", "ready", time.time() - started)
        return letter

    async def generate_with_model(self) -> GenerationOutcome:
        """
        Validate the form, call the local model and normalise its output.

        Validation, capability and readiness are checked before the model is
        called. A failed call leaves the previous output untouched.
        """
        if self._in_flight:
            error = GenerationInProgress()
            return GenerationOutcome(False, self.state, self.draft.output, error=error, message=str(error))

        started = time.time()
        self.notice = None
        self.state = DraftingState.VALIDATING
        request = dataclasses.replace(self.draft)

        rejected = self.check_request(started)
        if rejected is not None:
            return rejected

        self._poll_status()
        if not self.model_status.value.ready:
            return self._fail(self._not_ready_error(), started)

        preset = get_scenario(request.scenario)
        system, user = self.prompt_manager.build(
            request.tone,
            request.input_language,
            preset.title if preset else None,
            request.subject,
            request.recipient,
            request.body,
        )

        log_generation_start("model", request.tone.value, request.input_language.value)
        epoch = self._draft_epoch
        self.state = DraftingState.AWAITING_MODEL
        self._in_flight = True
        try:
            raw = await self.model_service.complete(system, user)
        except ModelNotReady as e:
            return self._fail(e, started)
        except Exception as e:
            log_error("orchestrator.generate_with_model", e)
            return self._fail(ModelInvocationFailure(e), started)
        finally:
            self._in_flight = False

        if epoch != self._draft_epoch:
            self.logger.info("Draft was replaced while generating, discarding model output")
            self.state = DraftingState.IDLE
            log_generation_complete("model", "discarded", time.time() - started)
            return GenerationOutcome(False, self.state, self.draft.output, message="Draft was replaced while generating.")

        self.state = DraftingState.NORMALIZING
        letter = normalize_letter(raw, request.subject, self.profile, self.labels)
        if not has_letter_body(letter, self.labels):
            return self._fail(ModelInvocationFailure(ValueError("The model returned an empty letter")), started)

        self.draft.output = letter
        self._autosave.cancel()
        self._persist_draft()
        self.state = DraftingState.READY

        log_generation_complete("model", "ready", time.time() - started)
        return GenerationOutcome(True, self.state, letter, message="Letter ready.")

    def check_request(self, started: Optional[float] = None) -> Optional[GenerationOutcome]:
        """
        Run the synchronous checks that precede a model call.

        Field validation and the acceleration probe need no model, so callers
        can reject a doomed request before waiting on the model load.

        Returns:
            The failed outcome, or None when the request may go to the model
        """
        started = started if started is not None else time.time()
        errors = validate_letter_fields(self.draft.subject, self.draft.recipient, self.draft.body)
        if errors:
            self.field_errors = errors
            self.focus_field = first_invalid_field(errors)
            self.state = DraftingState.IDLE
            error = FieldValidationError(errors)
            log_generation_complete("model", "invalid", time.time() - started)
            return GenerationOutcome(
                False, self.state, self.draft.output,
                field_errors=dict(errors), focus_field=self.focus_field,
                error=error, message=str(error),
            )

        self.field_errors = {}
        self.focus_field = None

        if self.require_acceleration:
            capability = self.capability_probe()
            if not capability.available:
                return self._fail(CapabilityUnavailable(), started)
        return None

    def _not_ready_error(self) -> ModelNotReady:
        status = self.model_status.value
        if self._init_task is not None and self._init_task.done() and status.message:
            # Load finished without a model; report why
            return ModelNotReady(status.message)
        return ModelNotReady()

    def _fail(self, error: LetterDraftingError, started: float) -> GenerationOutcome:
        self.state = DraftingState.ERROR
        self.notice = str(error)
        self.logger.warning(f"Generation failed: {self.notice}")
        log_generation_complete("model", "error", time.time() - started)
        return GenerationOutcome(False, self.state, self.draft.output, error=error, message=self.notice)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def save_current_to_history(self) -> Optional[HistoryItem]:
        """Snapshot the current letter into history; no-op without output."""
        if not self.draft.output.strip():
            return None

        item = HistoryItem.from_draft(self.draft)
        if not self.history_store.add(item):
            return None
        self.logger.info(f"Saved letter {item.id} to history")
        return item

    def load_from_history(self, history_id: str) -> bool:
        """
        Replace the draft with a history snapshot; no-op for unknown ids.
        """
        item = self.history_store.get(history_id)
        if item is None:
            return False

        self.draft = Draft(
            input_language=item.input_language,
            tone=item.tone,
            scenario=item.scenario,
            subject=item.subject,
            recipient=item.recipient,
            body=item.body,
            output=item.output,
        )
        self._draft_epoch += 1
        self.field_errors = {}
        self.focus_field = None
        self.state = DraftingState.IDLE
        self._autosave.schedule()
        return True

    def history(self) -> List[HistoryItem]:
        return self.history_store.load()

    def delete_history_item(self, history_id: str) -> bool:
        return self.history_store.delete(history_id)

    def clear_history(self) -> None:
        self.history_store.clear()

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(self, **changes: Any) -> Profile:
        """Edit the profile in memory; call save_profile() to persist it."""
        for name, value in changes.items():
            if name not in PROFILE_FIELDS:
                raise ValueError(f"Unknown profile field: {name}")
            setattr(self.profile, name, "" if value is None else str(value))
        return self.profile

    def save_profile(self) -> bool:
        return self.profile_store.save(self.profile)

    def clear_profile(self) -> None:
        self.profile = Profile()
        self.profile_store.remove()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, kind: str, output_path: Optional[Path] = None) -> Optional[Path]:
        """
        Export the current letter.

        Failures are reported through ``notice`` and never change the state.

        Returns:
            Path of the written file, or None on failure
        """
        exporter = EXPORTERS.get(kind)
        if exporter is None:
            raise ValueError(f"Unknown export format: {kind}")

        if output_path is None:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_path = self.data_manager.exports_dir / f"letter_{stamp}.{kind}"

        try:
            path = exporter(self.draft.output, output_path)
        except ExportError as e:
            self.notice = str(e)
            self.logger.warning(f"Export to {kind} failed: {str(e)}")
            return None

        self.logger.info(f"Exported letter to {path}")
        return path

    def copy_output(self) -> bool:
        try:
            copy_to_clipboard(self.draft.output)
        except ExportError as e:
            self.notice = str(e)
            self.logger.warning(f"Copy to clipboard failed: {str(e)}")
            return False
        return True
