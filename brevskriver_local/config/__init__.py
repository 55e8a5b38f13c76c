"""
Brevskriver Configuration - Configuration overrides, prompts and scenario presets
"""

from .prompts import PromptManager, build_prompt
from .scenarios import get_scenario, is_known_scenario, list_scenarios
from .settings import ConfigManager

__all__ = [
    'PromptManager',
    'build_prompt',
    'ConfigManager',
    'get_scenario',
    'is_known_scenario',
    'list_scenarios',
]
