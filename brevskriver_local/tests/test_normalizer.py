import pytest

from brevskriver_local.models import Draft, Profile, Tone
from brevskriver_local.utils.normalizer import (
    NormalizerLabels,
    normalize_letter,
    render_template_letter,
)

FENCED_TRANSCRIPT = """```text
Assistant:
Emne: Forlængelse
Subject: Forlængelse

Kære SKAT,



Jeg beder om mere tid.

Med venlig hilsen
Olena
```"""

PROFILE = Profile(name="Olena Hansen", phone="+45 12 34 56 78", email="olena@example.dk", address="")


def test_transcript_is_cleaned_into_canonical_letter():
    letter = normalize_letter(FENCED_TRANSCRIPT, "Forlængelse")

    assert letter == (
        "Emne: Forlængelse\n"
        "\n"
        "Kære SKAT,\n"
        "\n"
        "Jeg beder om mere tid.\n"
        "\n"
        "Med venlig hilsen\n"
        "[Dit navn]"
    )


def test_crlf_and_trailing_whitespace_are_normalized():
    letter = normalize_letter("Emne: Test   \r\n\r\nKære X,  \r\nTekst\r\n", "Test")

    assert "\r" not in letter
    assert all(line == line.rstrip() for line in letter.split("\n"))


def test_missing_subject_uses_collapsed_fallback():
    letter = normalize_letter("Kære X,\nTekst", "  Frist   for \n årsopgørelse ")

    assert letter.startswith("Emne: Frist for årsopgørelse\n\nKære X,")


def test_missing_subject_without_fallback_uses_placeholder():
    assert normalize_letter("Kære X,\nTekst", "").startswith("Emne: (uden emne)\n\n")


def test_empty_output_still_yields_letter_skeleton():
    assert normalize_letter("", None) == "Emne: (uden emne)\n\nMed venlig hilsen\n[Dit navn]"


def test_missing_valediction_is_appended():
    letter = normalize_letter("Emne: Test\n\nKære X,\n\nTekst her.", "Test")

    assert letter.endswith("Tekst her.\n\nMed venlig hilsen\n[Dit navn]")


def test_unsigned_placeholder_is_replaced_by_profile_name():
    raw = "Emne: Frist\n\nKære SKAT,\n\nJeg beder om mere tid.\n\n[Dit navn]\nolena@example.dk"

    letter = normalize_letter(raw, "Frist", Profile(name="Olena Hansen"))

    assert "[Dit navn]" not in letter
    assert letter == (
        "Emne: Frist\n\nKære SKAT,\n\nJeg beder om mere tid.\n\n"
        "Med venlig hilsen\nOlena Hansen"
    )
    assert normalize_letter(letter, "Frist", Profile(name="Olena Hansen")) == letter


def test_signature_block_comes_from_profile():
    letter = normalize_letter(FENCED_TRANSCRIPT, "Forlængelse", PROFILE)

    assert letter.endswith("Med venlig hilsen\nOlena Hansen\n+45 12 34 56 78\nolena@example.dk")
    assert "[Dit navn]" not in letter
    assert "\nOlena\n" not in letter


def test_last_valediction_wins():
    raw = "Emne: Test\n\nMed venlig hilsen fra os alle sendes videre.\n\nVenlige hilsner,\nHvem som helst"
    letter = normalize_letter(raw, "Test")

    assert letter.endswith("Venlige hilsner,\n[Dit navn]")
    assert "Med venlig hilsen fra os alle sendes videre." in letter


def test_field_words_inside_sentences_are_kept():
    raw = "Emne: Test\n\nRecipients of this letter: all members.\nDen Body-tekst er vigtig."
    letter = normalize_letter(raw, "Test")

    assert "Recipients of this letter: all members." in letter
    assert "Den Body-tekst er vigtig." in letter


def test_ukrainian_field_labels_are_removed():
    raw = "Тема: Термін\nКому: SKAT\nEmne: Frist\n\nKære SKAT,\nTekst"
    letter = normalize_letter(raw, "Frist")

    assert "Тема" not in letter
    assert "Кому" not in letter
    assert letter.startswith("Emne: Frist")


@pytest.mark.parametrize(
    "raw, subject, profile",
    [
        (FENCED_TRANSCRIPT, "Forlængelse", None),
        (FENCED_TRANSCRIPT, "Forlængelse", PROFILE),
        ("Kære X,\nTekst", "  Frist  ny ", PROFILE),
        ("", None, None),
        ("User: hej\nSystem: regler\nTekst uden alt", "Emne", Profile(name="A", address="Vej 1")),
    ],
)
def test_normalization_is_idempotent(raw, subject, profile):
    once = normalize_letter(raw, subject, profile)
    assert normalize_letter(once, subject, profile) == once


def test_configured_labels_extend_defaults():
    labels = NormalizerLabels.from_overrides({"role_labels": ["Model"], "valedictions": ["Hilsen"]})
    raw = "Model: her er brevet\nAssistant: også væk\nEmne: Test\n\nTekst\n\nHilsen\nX"

    letter = normalize_letter(raw, "Test", labels=labels)

    assert "Model:" not in letter
    assert "Assistant:" not in letter
    assert letter.endswith("Hilsen\n[Dit navn]")


def test_template_letter_uses_fields_and_tone():
    draft = Draft(subject="Frist", recipient="SKAT", body="Jeg har brug for mere tid.", tone=Tone.FRIENDLY)

    letter = render_template_letter(draft, Profile(name="Olena Hansen"))

    assert letter == (
        "Emne: Frist\n"
        "\n"
        "Kære SKAT,\n"
        "\n"
        "Jeg har brug for mere tid.\n"
        "\n"
        "De bedste hilsner\n"
        "Olena Hansen"
    )


def test_template_letter_fills_placeholders_for_empty_fields():
    letter = render_template_letter(Draft())

    assert letter.startswith("Emne: (uden emne)\n\nKære modtager,\n\n(beskrivelse…)")
    assert letter.endswith("Med venlig hilsen\n[Dit navn]")
