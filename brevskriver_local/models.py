"""
Data model for Brevskriver Local: drafts, sender profile, history snapshots
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
import uuid


class InputLanguage(str, Enum):
    """Language the user writes the description in."""

    UKRAINIAN = "uk"
    ENGLISH = "en"
    DANISH = "da"


class Tone(str, Enum):
    """Register of the generated Danish letter."""

    FORMAL = "formel"
    NEUTRAL = "neutral"
    FRIENDLY = "venlig"


_TONE_ALIASES = {
    "formal": Tone.FORMAL,
    "friendly": Tone.FRIENDLY,
}

CUSTOM_SCENARIO = "custom"


def parse_tone(value: Any, default: Tone = Tone.FORMAL) -> Tone:
    """
    Coerce a string (Danish or English name) into a Tone.

    Args:
        value: Tone instance or tone name
        default: Returned when value is empty or unknown

    Returns:
        Tone member
    """
    if isinstance(value, Tone):
        return value
    if not value:
        return default
    key = str(value).strip().lower()
    if key in _TONE_ALIASES:
        return _TONE_ALIASES[key]
    try:
        return Tone(key)
    except ValueError:
        return default


def parse_language(value: Any, default: InputLanguage = InputLanguage.UKRAINIAN) -> InputLanguage:
    """Coerce a language code into an InputLanguage, falling back to default."""
    if isinstance(value, InputLanguage):
        return value
    if not value:
        return default
    try:
        return InputLanguage(str(value).strip().lower())
    except ValueError:
        return default


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class Draft:
    """The in-progress letter request and its latest output."""

    input_language: InputLanguage = InputLanguage.UKRAINIAN
    tone: Tone = Tone.FORMAL
    scenario: str = CUSTOM_SCENARIO
    subject: str = ""
    recipient: str = ""
    body: str = ""
    output: str = ""
    saved_at: Optional[str] = None

    TEXT_FIELDS = ("subject", "recipient", "body", "output")

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.TEXT_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["input_language"] = self.input_language.value
        data["tone"] = self.tone.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Draft":
        """Build a Draft from stored data, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        draft = cls(**values)
        draft.input_language = parse_language(draft.input_language)
        draft.tone = parse_tone(draft.tone)
        draft.scenario = str(draft.scenario or CUSTOM_SCENARIO)
        for name in cls.TEXT_FIELDS:
            setattr(draft, name, str(getattr(draft, name) or ""))
        return draft


@dataclass
class Profile:
    """Sender identity rendered into the signature block."""

    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""

    def contact_lines(self) -> List[str]:
        """Non-empty phone, email and address, in that order."""
        return [value.strip() for value in (self.phone, self.email, self.address) if value and value.strip()]

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Profile":
        known = {f.name for f in fields(cls)}
        return cls(**{key: str(value or "") for key, value in data.items() if key in known})


@dataclass(frozen=True)
class HistoryItem:
    """Immutable snapshot of a completed letter."""

    id: str
    input_language: InputLanguage
    tone: Tone
    scenario: str
    subject: str
    recipient: str
    body: str
    output: str
    created_at: str = field(default_factory=_now_iso)

    @classmethod
    def from_draft(cls, draft: Draft) -> "HistoryItem":
        return cls(
            id=uuid.uuid4().hex,
            input_language=draft.input_language,
            tone=draft.tone,
            scenario=draft.scenario,
            subject=draft.subject,
            recipient=draft.recipient,
            body=draft.body,
            output=draft.output,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["input_language"] = self.input_language.value
        data["tone"] = self.tone.value
        return data


@dataclass(frozen=True)
class ScenarioPreset:
    key: str
    title: str
    default_tone: Tone
    default_subject: str
    body_hint: str


@dataclass(frozen=True)
class ModelStatus:
    """Load status reported by the model service."""

    ready: bool = False
    progress: float = 0.0
    message: str = ""
