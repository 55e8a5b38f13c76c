"""
Output normalizer: turns raw model text into the canonical Danish letter layout.

The steps run in a fixed order, each one covering a way local models
misbehave in practice: echoed chat transcripts, leaked prompt labels, a
missing subject line, a missing closing, and an unfilled signature.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple
import re

from ..config.prompts import DEFAULT_VALEDICTION, SIGNATURE_PLACEHOLDER, SUBJECT_LABEL
from ..models import Draft, Profile, Tone

NO_SUBJECT = "(uden emne)"
NO_RECIPIENT_GREETING = "Kære modtager,"
NO_BODY = "(beskrivelse…)"
FRIENDLY_VALEDICTION = "De bedste hilsner"

_SUBJECT_LINE = re.compile(rf'^{SUBJECT_LABEL}\s*:', re.IGNORECASE)
_BLANK_RUNS = re.compile(r'\n{3,}')


def _label_pattern(labels: Iterable[str]) -> Optional["re.Pattern[str]"]:
    alternatives = "|".join(re.escape(label) for label in labels if label)
    if not alternatives:
        return None
    return re.compile(rf'^\s*(?:{alternatives})\s*:', re.IGNORECASE)


@dataclass(frozen=True)
class NormalizerLabels:
    """
    Label allow-lists used to recognise transcript and scaffolding lines.

    Model runtimes differ in how they format chat transcripts, so the lists
    can be extended from ``config/normalizer.json``.
    """

    role_labels: Tuple[str, ...] = ("Assistant", "User", "System")
    field_labels: Tuple[str, ...] = (
        "Subject", "Recipient", "Body",
        "Modtager", "Brødtekst",
        "Тема", "Кому", "Текст",
    )
    valedictions: Tuple[str, ...] = (
        "Med venlig hilsen",
        "Med venlige hilsner",
        "Venlig hilsen",
        "Venlige hilsner",
        "De bedste hilsner",
        "Bedste hilsner",
        "Mange hilsner",
        "Kærlig hilsen",
        "Mvh",
    )

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Any]]) -> "NormalizerLabels":
        """Extend the default lists with any configured extra labels."""
        defaults = cls()
        if not overrides:
            return defaults

        def merged(name: str) -> Tuple[str, ...]:
            extra = overrides.get(name) or []
            if not isinstance(extra, (list, tuple)):
                return getattr(defaults, name)
            values = list(getattr(defaults, name))
            values.extend(str(item) for item in extra if item and str(item) not in values)
            return tuple(values)

        return cls(
            role_labels=merged("role_labels"),
            field_labels=merged("field_labels"),
            valedictions=merged("valedictions"),
        )

    def __post_init__(self):
        object.__setattr__(self, "_role_re", _label_pattern(self.role_labels))
        object.__setattr__(self, "_field_re", _label_pattern(self.field_labels))
        alternatives = "|".join(re.escape(v) for v in self.valedictions if v)
        object.__setattr__(
            self,
            "_valediction_re",
            re.compile(rf'^\s*(?:{alternatives})\s*[,.!]?\s*$', re.IGNORECASE) if alternatives else None,
        )

    def is_role_line(self, line: str) -> bool:
        return bool(self._role_re and self._role_re.match(line))

    def is_field_line(self, line: str) -> bool:
        return bool(self._field_re and self._field_re.match(line))

    def is_valediction(self, line: str) -> bool:
        return bool(self._valediction_re and self._valediction_re.match(line))


DEFAULT_LABELS = NormalizerLabels()


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith('```'):
        lines = cleaned.splitlines()
        normalized = '\n'.join(lines[1:]) if len(lines) > 1 else ''
        if '```' in normalized:
            normalized = normalized.rsplit('```', 1)[0]
        cleaned = normalized
    return cleaned.strip()


def signature_lines(profile: Optional[Profile]) -> list:
    """Name (or the placeholder) followed by the non-empty contact details."""
    profile = profile or Profile()
    name = (profile.name or "").strip()
    return [name or SIGNATURE_PLACEHOLDER] + profile.contact_lines()


def _last_placeholder_index(lines: list) -> Optional[int]:
    for index in range(len(lines) - 1, 0, -1):
        if lines[index].strip() == SIGNATURE_PLACEHOLDER:
            return index
    return None


def normalize_letter(
    raw_text: Optional[str],
    fallback_subject: Optional[str],
    profile: Optional[Profile] = None,
    labels: Optional[NormalizerLabels] = None,
) -> str:
    """
    Clean raw model output into a complete letter.

    Args:
        raw_text: Text returned by the model
        fallback_subject: Subject used when the model left out the subject line
        profile: Sender profile for the signature block
        labels: Label allow-lists (defaults to DEFAULT_LABELS)

    Returns:
        Letter with a subject line, body, valediction and signature block
    """
    labels = labels or DEFAULT_LABELS

    text = (raw_text or "").replace("\r\n", "\n").replace("\r", "\n")
    text = _strip_code_fences(text)

    lines = [line.rstrip() for line in text.split("\n")]
    lines = [line for line in lines if not labels.is_role_line(line)]
    lines = [line for line in lines if not labels.is_field_line(line)]
    text = _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()

    if not _SUBJECT_LINE.match(text):
        subject = " ".join((fallback_subject or "").split()) or NO_SUBJECT
        subject_line = f"{SUBJECT_LABEL}: {subject}"
        text = f"{subject_line}\n\n{text}" if text else subject_line

    lines = text.split("\n")
    valediction_index = None
    for index in range(len(lines) - 1, -1, -1):
        if labels.is_valediction(lines[index]):
            valediction_index = index
            break

    if valediction_index is None:
        placeholder_index = _last_placeholder_index(lines)
        if placeholder_index is not None:
            # An unsigned placeholder starts the signature block
            lines = lines[:placeholder_index]
            while lines and not lines[-1].strip():
                lines.pop()
        lines.extend(["", DEFAULT_VALEDICTION])
        valediction_index = len(lines) - 1

    # Everything after the closing line is rebuilt from the profile
    lines = lines[:valediction_index + 1] + signature_lines(profile)
    return "\n".join(lines)


def has_letter_body(letter: str, labels: Optional[NormalizerLabels] = None) -> bool:
    """True when a normalised letter has text between its subject line and closing."""
    labels = labels or DEFAULT_LABELS
    for line in letter.split("\n")[1:]:
        if labels.is_valediction(line):
            return False
        if line.strip():
            return True
    return False


def render_template_letter(
    draft: Draft,
    profile: Optional[Profile] = None,
    labels: Optional[NormalizerLabels] = None,
) -> str:
    """
    Build the deterministic test letter from the current form fields.

    No model is involved; used for offline previews.
    """
    recipient = (draft.recipient or "").strip()
    greeting = f"Kære {recipient}," if recipient else NO_RECIPIENT_GREETING
    valediction = FRIENDLY_VALEDICTION if draft.tone == Tone.FRIENDLY else DEFAULT_VALEDICTION
    subject = (draft.subject or "").strip() or NO_SUBJECT
    body = (draft.body or "").strip() or NO_BODY

    text = "\n".join([
        f"{SUBJECT_LABEL}: {subject}",
        "",
        greeting,
        "",
        body,
        "",
        valediction,
        SIGNATURE_PLACEHOLDER,
    ])
    return normalize_letter(text, subject, profile, labels)
