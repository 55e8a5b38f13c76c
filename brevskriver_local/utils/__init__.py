"""
Brevskriver Utilities - Storage, model client, normalisation and helpers
"""

from .data_manager import LocalDataManager
from .hardware import AccelerationInfo, detect_acceleration
from .llm_client import LLMClient, LocalModelService, normalize_llm_base_url
from .logger import setup_logging
from .normalizer import NormalizerLabels, has_letter_body, normalize_letter, render_template_letter
from .scheduler import DebouncedTask, PeriodicTask, StatusObservable
from .stores import DraftStore, HistoryStore, ProfileStore
from .validators import InputValidator, first_invalid_field, validate_letter_fields

__all__ = [
    'LocalDataManager',
    'AccelerationInfo',
    'detect_acceleration',
    'LLMClient',
    'LocalModelService',
    'normalize_llm_base_url',
    'setup_logging',
    'NormalizerLabels',
    'has_letter_body',
    'normalize_letter',
    'render_template_letter',
    'DebouncedTask',
    'PeriodicTask',
    'StatusObservable',
    'DraftStore',
    'HistoryStore',
    'ProfileStore',
    'InputValidator',
    'first_invalid_field',
    'validate_letter_fields',
]
