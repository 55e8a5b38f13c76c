"""
Public library interface for Brevskriver Local.

This module exposes helpers that embed the letter drafting session in
external Python runtimes without going through the CLI wrapper.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional, Tuple, Union

from .config.prompts import PromptManager
from .config.settings import ConfigManager
from .orchestrator import GenerationOutcome, LetterDraftingOrchestrator, ModelService
from .utils.data_manager import LocalDataManager
from .utils.hardware import AccelerationInfo, detect_acceleration
from .utils.llm_client import LocalModelService, normalize_llm_base_url
from .utils.logger import log_session_start, setup_logging as _setup_logging
from .utils.normalizer import NormalizerLabels
from .utils.scheduler import StatusListener
from .utils.validators import InputValidator


class ConfigValidationError(ValueError):
    """Raised when session configuration fails validation."""


OptionsType = Union[Mapping[str, Any], object]

DEFAULT_DATA_DIR = "./brevskriver_data"


def generate_session_id(prefix: str = "brevskriver") -> str:
    """
    Generate a unique session identifier.

    Args:
        prefix: Optional prefix for the identifier (default ``"brevskriver"``).

    Returns:
        Session ID string.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_id = uuid.uuid4().hex[:8]
    return f"{prefix}_{timestamp}_{unique_id}"


def build_config(options: OptionsType) -> Dict[str, Any]:
    """
    Build a session configuration dictionary from a mapping or namespace.

    Values missing from ``options`` (or set to None) fall back to
    ``<data_dir>/config/settings.json`` and then to the built-in defaults.

    Args:
        options: Mapping, dataclass, or argparse namespace containing session options.

    Returns:
        Normalised configuration dictionary suitable for ``create_orchestrator``.
    """

    def _option(name: str) -> Any:
        if isinstance(options, Mapping):
            return options.get(name)
        return getattr(options, name, None)

    data_dir = _option("data_dir") or DEFAULT_DATA_DIR
    settings = ConfigManager(data_dir).get_settings_overrides()

    def _get(name: str, default: Any = None) -> Any:
        value = _option(name)
        if value is None:
            value = settings.get(name, default)
        return default if value is None else value

    def _coerce_bool(value: Any, default: bool = False) -> bool:
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
        return bool(value)

    config: Dict[str, Any] = {
        # Local model settings
        "llm_model": _get("llm_model", "phi3.5"),
        "llm_base_url": _get("llm_base_url"),
        "llm_api_key": _get("llm_api_key", "local"),
        "auto_pull": _coerce_bool(_get("auto_pull"), True),
        "temperature": float(_get("temperature", 0.3)),
        "max_retries": int(_get("max_retries", 3)),
        "require_acceleration": _coerce_bool(_get("require_acceleration"), True),

        # Drafting behaviour
        "history_limit": int(_get("history_limit", 50)),
        "autosave_delay": float(_get("autosave_delay", 0.5)),
        "status_poll_interval": float(_get("status_poll_interval", 0.3)),

        # Output and storage settings
        "output_format": str(_get("output_format", "json")).lower(),
        "data_dir": data_dir,
        "session_id": _get("session_id") or generate_session_id(),

        # Logging and diagnostics
        "log_level": str(_get("log_level", "INFO")).upper(),
        "log_file": _get("log_file"),
        "verbose": _coerce_bool(_get("verbose")),
    }

    config["llm_base_url"] = normalize_llm_base_url(config.get("llm_base_url"))

    return config


def prepare_data_directory(
    config: MutableMapping[str, Any],
    *,
    assign_default_log: bool = True,
    on_create: Optional[Callable[[Path], None]] = None,
) -> Path:
    """
    Ensure the data directory structure exists for the given configuration.

    Args:
        config: Configuration dictionary (mutated in-place when log_file is assigned).
        assign_default_log: When True, write a default log file path if none provided.
        on_create: Optional callback invoked with the created ``Path``.

    Returns:
        Path to the resolved data directory.
    """
    data_dir = Path(config.get("data_dir") or DEFAULT_DATA_DIR).expanduser()
    for directory in (data_dir, data_dir / "config", data_dir / "logs", data_dir / "exports"):
        directory.mkdir(parents=True, exist_ok=True)

    if assign_default_log and not config.get("log_file"):
        log_filename = f"brevskriver_{config['session_id']}.log"
        config["log_file"] = str((data_dir / "logs" / log_filename).resolve())

    if on_create:
        on_create(data_dir)

    return data_dir


def configure_logging(config: Mapping[str, Any]) -> logging.Logger:
    """
    Configure logging for the drafting session.

    Args:
        config: Session configuration dictionary.

    Returns:
        Configured logger instance.
    """
    return _setup_logging(
        level=config.get("log_level", "INFO"),
        log_file=config.get("log_file"),
        verbose=bool(config.get("verbose", False)),
    )


def validate_config(config: Mapping[str, Any]) -> Tuple[bool, list]:
    """
    Validate session configuration for common issues.

    Args:
        config: Configuration dictionary to validate.

    Returns:
        Tuple of ``(is_valid, errors)``.
    """
    errors: list = []
    validator = InputValidator()
    errors.extend(validator.validate_config(dict(config)))

    data_dir_valid, data_errors = validate_data_directory(config.get("data_dir"))
    if not data_dir_valid:
        errors.extend(data_errors)

    if config.get("output_format") not in {"json", "text", "yaml"}:
        errors.append(f"Invalid output format: {config.get('output_format')}")

    return len(errors) == 0, errors


def validate_data_directory(data_dir: Optional[str]) -> Tuple[bool, list]:
    """
    Validate that the configured data directory is writable.

    Args:
        data_dir: Directory path supplied in configuration.

    Returns:
        Tuple of ``(is_valid, errors)``.
    """
    errors: list = []

    try:
        if not data_dir:
            raise ValueError("Data directory is not configured")

        path = Path(data_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)

        test_file = path / ".__brevskriver_write_test__"
        test_file.write_text("test")
        test_file.unlink()
    except (OSError, ValueError) as exc:
        errors.append(f"Failed to prepare data directory '{data_dir}': {exc}")

    return len(errors) == 0, errors


def create_orchestrator(
    config: Mapping[str, Any],
    *,
    model_service: Optional[ModelService] = None,
    capability_probe: Optional[Callable[[], AccelerationInfo]] = None,
) -> LetterDraftingOrchestrator:
    """
    Wire stores, overrides and the local model service into an orchestrator.

    Args:
        config: Validated configuration dictionary.
        model_service: Service to use instead of ``LocalModelService``.
        capability_probe: Probe to use instead of ``detect_acceleration``.

    Returns:
        An orchestrator that has not been started yet.
    """
    data_dir = config.get("data_dir") or DEFAULT_DATA_DIR
    data_manager = LocalDataManager(data_dir)
    config_manager = ConfigManager(data_dir)

    if model_service is None:
        model_service = LocalModelService(
            base_url=config.get("llm_base_url"),
            api_key=config.get("llm_api_key") or "local",
            auto_pull=bool(config.get("auto_pull", True)),
            temperature=float(config.get("temperature", 0.3)),
            max_retries=int(config.get("max_retries", 3)),
        )

    return LetterDraftingOrchestrator(
        model_service,
        data_manager,
        model_id=config.get("llm_model") or "phi3.5",
        history_limit=int(config.get("history_limit", 50)),
        autosave_delay=float(config.get("autosave_delay", 0.5)),
        status_poll_interval=float(config.get("status_poll_interval", 0.3)),
        require_acceleration=bool(config.get("require_acceleration", True)),
        capability_probe=capability_probe or detect_acceleration,
        prompt_manager=PromptManager(config_manager),
        labels=NormalizerLabels.from_overrides(config_manager.get_normalizer_overrides()),
    )


def outcome_to_dict(outcome: GenerationOutcome) -> Dict[str, Any]:
    """Flatten a GenerationOutcome into a JSON-friendly dictionary."""
    return {
        "status": "ready" if outcome.ok else "error",
        "state": outcome.state.value,
        "output": outcome.output,
        "message": outcome.message,
        "field_errors": dict(outcome.field_errors),
        "focus_field": outcome.focus_field,
        "error_type": type(outcome.error).__name__ if outcome.error else None,
    }


async def draft_letter(
    options: OptionsType,
    *,
    subject: Optional[str] = None,
    recipient: Optional[str] = None,
    body: Optional[str] = None,
    tone: Optional[str] = None,
    input_language: Optional[str] = None,
    scenario: Optional[str] = None,
    test_mode: bool = False,
    save_history: bool = False,
    model_service: Optional[ModelService] = None,
    capability_probe: Optional[Callable[[], AccelerationInfo]] = None,
    status_listener: Optional[StatusListener] = None,
    auto_prepare: bool = True,
    auto_configure_logging: bool = True,
) -> Dict[str, Any]:
    """
    High-level helper that runs one generation against the stored draft.

    Fields passed as None keep the value of the stored draft.

    Args:
        options: Mapping or namespace of session options.
        test_mode: Build the template letter instead of calling the model.
        save_history: Add the finished letter to history.
        model_service: Service to use instead of ``LocalModelService``.
        capability_probe: Probe to use instead of ``detect_acceleration``.
        status_listener: Called with every model status change.
        auto_prepare: When True, prepare the data directory structure automatically.
        auto_configure_logging: When True, configure logging before execution.

    Returns:
        Result dictionary with ``status``, ``output`` and ``message``.

    Raises:
        ConfigValidationError: If the configuration is invalid.
    """
    config = build_config(options)

    if auto_prepare:
        prepare_data_directory(config)

    if auto_configure_logging:
        configure_logging(config)

    valid, errors = validate_config(config)
    if not valid:
        raise ConfigValidationError("; ".join(errors))

    log_session_start(config["session_id"], config)

    orchestrator = create_orchestrator(
        config, model_service=model_service, capability_probe=capability_probe
    )
    if status_listener is not None:
        orchestrator.subscribe_status(status_listener)
    # The model load waits until the request has passed the synchronous checks
    await orchestrator.start(init_model=False)
    try:
        if scenario:
            orchestrator.apply_scenario(scenario)

        fields = {
            "subject": subject,
            "recipient": recipient,
            "body": body,
            "tone": tone,
            "input_language": input_language,
        }
        orchestrator.update_draft(**{key: value for key, value in fields.items() if value is not None})

        if test_mode:
            output = orchestrator.generate_test()
            result = {
                "status": "ready",
                "state": orchestrator.state.value,
                "output": output,
                "message": "Template letter ready.",
                "field_errors": {},
                "focus_field": None,
                "error_type": None,
            }
        else:
            rejected = orchestrator.check_request()
            if rejected is not None:
                result = outcome_to_dict(rejected)
            else:
                orchestrator.load_model()
                await orchestrator.wait_until_ready()
                result = outcome_to_dict(await orchestrator.generate_with_model())

        if save_history and result["status"] == "ready":
            item = orchestrator.save_current_to_history()
            result["history_id"] = item.id if item else None
    finally:
        await orchestrator.close()

    result["session_id"] = config["session_id"]
    result["mode"] = "test" if test_mode else "model"
    return result
