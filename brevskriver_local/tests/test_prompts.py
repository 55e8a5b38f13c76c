from brevskriver_local.config.prompts import PromptManager, build_prompt
from brevskriver_local.config.settings import ConfigManager
from brevskriver_local.models import InputLanguage, Tone


def test_system_instructions_carry_rules_and_format():
    system, _ = build_prompt(Tone.FORMAL, InputLanguage.UKRAINIAN, None, "Frist", "SKAT", "Текст листа")

    assert "DANSK" in system
    assert "formelt og kortfattet" in system
    assert "Emne: (kort emne)" in system
    assert "Med venlig hilsen" in system
    assert "[Dit navn]" in system
    assert "'Subject:'" in system and "'Recipient:'" in system and "'Body:'" in system


def test_user_instructions_carry_fields_verbatim():
    body = "Рядок один\nLine two with Subject: inside"
    system, user = build_prompt(Tone.NEUTRAL, InputLanguage.UKRAINIAN, None, "Frist", "SKAT", body)

    assert "Subject: Frist" in user
    assert "Recipient: SKAT" in user
    assert "Body:\n" + body in user
    assert user.rstrip().endswith("Returnér KUN det endelige brev i formatet ovenfor.")
    assert body not in system


def test_language_line_depends_on_input_language():
    _, danish = build_prompt(Tone.FORMAL, InputLanguage.DANISH, None, "s", "r", "b")
    _, english = build_prompt(Tone.FORMAL, InputLanguage.ENGLISH, None, "s", "r", "b")

    assert danish.startswith("Input language: da.")
    assert "oversæt" not in danish
    assert english.startswith("Input language: en")
    assert "oversæt til dansk" in english


def test_scenario_title_is_annotated_only_when_given():
    _, with_scenario = build_prompt(Tone.FORMAL, "da", "Klage", "s", "r", "b")
    _, without = build_prompt(Tone.FORMAL, "da", None, "s", "r", "b")

    assert "Scenarie: Klage." in with_scenario
    assert "Scenarie" not in without


def test_tone_phrasing_follows_tone():
    friendly, _ = build_prompt("friendly", "uk", None, "s", "r", "b")
    neutral, _ = build_prompt(Tone.NEUTRAL, "uk", None, "s", "r", "b")

    assert "venligt og imødekommende" in friendly
    assert "neutralt og professionelt" in neutral


def test_prompt_manager_applies_overrides(tmp_path):
    config_manager = ConfigManager(str(tmp_path))
    config_manager.save_config("prompts.json", {
        "tones": {"formel": "meget høfligt"},
        "system_rules": ["Nævn scenariet {scenario} i emnet.", "Ukendt {placeholder} bevares."],
    })

    system, user = PromptManager(config_manager).build(
        Tone.FORMAL, InputLanguage.DANISH, "Klage", "Frist", "SKAT", "Jeg er utilfreds med svaret"
    )

    assert "meget høfligt" in system
    assert "Nævn scenariet Klage i emnet." in system
    assert "Ukendt {placeholder} bevares." in system
    assert "Scenarie: Klage." in user


def test_prompt_manager_without_config_uses_defaults():
    system, _ = PromptManager().build(Tone.FORMAL, "da", None, "s", "r", "b")
    assert "formelt og kortfattet" in system
