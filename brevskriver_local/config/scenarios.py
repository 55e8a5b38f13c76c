"""
Scenario presets: named letter situations with a default tone, subject and body hint.
"""

from typing import Dict, List, Optional

from ..models import CUSTOM_SCENARIO, ScenarioPreset, Tone


_PRESETS: List[ScenarioPreset] = [
    ScenarioPreset(
        key="deadline_extension",
        title="Anmodning om fristforlængelse",
        default_tone=Tone.FORMAL,
        default_subject="Anmodning om forlængelse af frist",
        body_hint="Which deadline, why you need more time, and the new date you are asking for.",
    ),
    ScenarioPreset(
        key="complaint",
        title="Klage",
        default_tone=Tone.FORMAL,
        default_subject="Klage over afgørelse",
        body_hint="What happened, when, what you disagree with, and what outcome you want.",
    ),
    ScenarioPreset(
        key="appointment_cancellation",
        title="Aflysning af aftale",
        default_tone=Tone.NEUTRAL,
        default_subject="Aflysning af aftale",
        body_hint="Date and time of the appointment, and whether you want a new one.",
    ),
    ScenarioPreset(
        key="address_change",
        title="Adresseændring",
        default_tone=Tone.NEUTRAL,
        default_subject="Meddelelse om ny adresse",
        body_hint="Old address, new address and the date you move.",
    ),
    ScenarioPreset(
        key="access_to_records",
        title="Anmodning om aktindsigt",
        default_tone=Tone.FORMAL,
        default_subject="Anmodning om aktindsigt",
        body_hint="Which case or documents you want to see, and your case number if you have one.",
    ),
    ScenarioPreset(
        key="landlord_repair",
        title="Henvendelse til udlejer om mangler",
        default_tone=Tone.NEUTRAL,
        default_subject="Mangler i lejemålet",
        body_hint="What is broken, since when, and when it would suit you to have it repaired.",
    ),
    ScenarioPreset(
        key="job_application",
        title="Jobansøgning",
        default_tone=Tone.FRIENDLY,
        default_subject="Ansøgning om stilling",
        body_hint="The position, your relevant experience, and why you want the job.",
    ),
]

SCENARIO_PRESETS: Dict[str, ScenarioPreset] = {preset.key: preset for preset in _PRESETS}


def list_scenarios() -> List[ScenarioPreset]:
    """All presets in display order."""
    return list(_PRESETS)


def get_scenario(key: Optional[str]) -> Optional[ScenarioPreset]:
    """Look up a preset; ``custom`` and unknown keys return None."""
    if not key or key == CUSTOM_SCENARIO:
        return None
    return SCENARIO_PRESETS.get(key)


def is_known_scenario(key: Optional[str]) -> bool:
    return key == CUSTOM_SCENARIO or key in SCENARIO_PRESETS
