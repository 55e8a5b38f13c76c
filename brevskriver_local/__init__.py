"""
Brevskriver Local - on-device drafting of Danish letters from short descriptions.

This package exposes a programmatic API so a drafting session can be embedded
in other tools without launching the CLI entry point.
"""

from .api import (
    ConfigValidationError,
    build_config,
    configure_logging,
    create_orchestrator,
    draft_letter,
    generate_session_id,
    prepare_data_directory,
    validate_config,
)
from .cli import BrevskriverCLI, main as cli_main
from .orchestrator import DraftingState, GenerationOutcome, LetterDraftingOrchestrator

__all__ = [
    "BrevskriverCLI",
    "ConfigValidationError",
    "DraftingState",
    "GenerationOutcome",
    "LetterDraftingOrchestrator",
    "build_config",
    "cli_main",
    "configure_logging",
    "create_orchestrator",
    "draft_letter",
    "generate_session_id",
    "prepare_data_directory",
    "validate_config",
]

__version__ = "0.4.0"
__author__ = "Brevskriver Team"
__description__ = "Drafts formal Danish letters with a local language model, entirely on your machine."
