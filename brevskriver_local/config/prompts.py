"""
Prompt Manager for Brevskriver Local
Builds the system/user instruction pair sent to the local model.

Rules live in the system instructions and form data in the user
instructions, so the model runtime can reuse the system role between calls
and user text is never read as instructions.
"""

from typing import Any, Dict, List, Optional, Tuple
import re
import logging

from ..models import InputLanguage, Tone, parse_language, parse_tone
from .settings import ConfigManager


SUBJECT_LABEL = "Emne"
SIGNATURE_PLACEHOLDER = "[Dit navn]"
DEFAULT_VALEDICTION = "Med venlig hilsen"

TONE_PHRASES: Dict[str, str] = {
    Tone.FORMAL.value: "formelt og kortfattet",
    Tone.NEUTRAL.value: "neutralt og professionelt",
    Tone.FRIENDLY.value: "venligt og imødekommende",
}

# Labels used in the user instructions; the model must not echo them
PROMPT_FIELD_LABELS = ("Subject", "Recipient", "Body")

SYSTEM_TEMPLATE = [
    "Du er en assistent, der skriver officielle breve på DANSK.",
    "Skriv {tone_phrase}. Brug KUN oplysninger fra brugerens input.",
    "SVAR KUN med selve brevet, ingen forklaringer, ingen roller (Assistant/User), ingen markdown.",
    "FORMAT (præcis linjestruktur):",
    SUBJECT_LABEL + ": (kort emne)",
    "Kære [modtager],",
    "(2-5 korte afsnit med klare sætninger)",
    DEFAULT_VALEDICTION,
    SIGNATURE_PLACEHOLDER,
    "Forbudt at bruge {forbidden_labels} osv.",
]

LANGUAGE_NAMES = {
    InputLanguage.UKRAINIAN.value: "ukrainsk",
    InputLanguage.ENGLISH.value: "engelsk",
    InputLanguage.DANISH.value: "dansk",
}


def _language_line(input_language: InputLanguage) -> str:
    if input_language == InputLanguage.DANISH:
        return f"Input language: {input_language.value}. Input er på dansk; bevar betydningen."
    return (
        f"Input language: {input_language.value} ({LANGUAGE_NAMES[input_language.value]}). "
        "Input er ikke på dansk: oversæt til dansk, men bevar betydningen."
    )


def build_prompt(
    tone: Any,
    input_language: Any,
    scenario_title: Optional[str],
    subject: str,
    recipient: str,
    body: str,
    *,
    tone_phrases: Optional[Dict[str, str]] = None,
    extra_rules: Optional[List[str]] = None,
) -> Tuple[str, str]:
    """
    Assemble the instruction payload for the model.

    Args:
        tone: Tone member or name
        input_language: InputLanguage member or code
        scenario_title: Optional preset title, added as a one-line annotation
        subject: Subject, verbatim
        recipient: Recipient, verbatim
        body: Description in any language, verbatim
        tone_phrases: Optional override of the per-tone phrasing
        extra_rules: Optional extra system rules appended before the format block

    Returns:
        Tuple of (system_instructions, user_instructions)
    """
    tone = parse_tone(tone)
    input_language = parse_language(input_language)
    phrases = dict(TONE_PHRASES)
    if tone_phrases:
        phrases.update({parse_tone(key).value: value for key, value in tone_phrases.items() if value})

    forbidden = ", ".join(f"'{label}:'" for label in PROMPT_FIELD_LABELS)
    system_lines = [
        line.format(tone_phrase=phrases[tone.value], forbidden_labels=forbidden)
        for line in SYSTEM_TEMPLATE
    ]
    if extra_rules:
        system_lines[2:2] = [rule for rule in extra_rules if rule]

    user_lines = [_language_line(input_language)]
    if scenario_title:
        user_lines.append(f"Scenarie: {scenario_title}.")
    user_lines.extend([
        f"Subject: {subject or ''}",
        f"Recipient: {recipient or ''}",
        "Body:",
        body or "",
        "Returnér KUN det endelige brev i formatet ovenfor.",
    ])

    return "\n".join(system_lines), "\n".join(user_lines)


class PromptManager:
    """
    Builds prompts with optional overrides from ``config/prompts.json``.

    Supported override keys: ``tones`` (tone name to phrasing) and
    ``system_rules`` (list of extra rules, ``{variable}`` substitution applied).
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize prompt manager.

        Args:
            config_manager: Configuration manager instance (None disables overrides)
        """
        self.config_manager = config_manager
        self.logger = logging.getLogger("brevskriver.prompts")

    def build(
        self,
        tone: Any,
        input_language: Any,
        scenario_title: Optional[str],
        subject: str,
        recipient: str,
        body: str,
    ) -> Tuple[str, str]:
        overrides = self.config_manager.get_prompt_overrides() if self.config_manager else {}

        tone_phrases = overrides.get("tones") if isinstance(overrides.get("tones"), dict) else None
        rules = overrides.get("system_rules") if isinstance(overrides.get("system_rules"), list) else []
        variables = {
            "tone": parse_tone(tone).value,
            "input_language": parse_language(input_language).value,
            "scenario": scenario_title or "",
        }
        extra_rules = [self._substitute_variables(str(rule), variables) for rule in rules]

        system, user = build_prompt(
            tone,
            input_language,
            scenario_title,
            subject,
            recipient,
            body,
            tone_phrases=tone_phrases,
            extra_rules=extra_rules,
        )
        self.logger.debug(f"Built prompt: system={len(system)} chars, user={len(user)} chars")
        return system, user

    def _substitute_variables(self, template: str, variables: Dict[str, Any]) -> str:
        """
        Substitute ``{name}`` placeholders, leaving unknown ones untouched.

        Args:
            template: Rule template with placeholders
            variables: Variables to substitute

        Returns:
            Template with variables substituted
        """
        def replace(match):
            value = variables.get(match.group(1))
            return str(value) if value is not None else match.group(0)

        return re.sub(r'\{([^}]+)\}', replace, template)
