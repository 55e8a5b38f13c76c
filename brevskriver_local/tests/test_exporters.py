import pytest
from docx import Document

from brevskriver_local.errors import ExportError
from brevskriver_local.utils import exporters
from brevskriver_local.utils.exporters import copy_to_clipboard, export_docx, export_pdf, export_txt

LETTER = "Emne: Ændring af adresse\n\nKære Kommunen,\n\nJeg flytter til Åbenrå.\n\nMed venlig hilsen\nSøren Ø"


def test_export_txt_writes_utf8(tmp_path):
    path = export_txt(LETTER, tmp_path / "out" / "brev.txt")

    assert path.read_text(encoding="utf-8") == LETTER + "\n"


def test_export_docx_writes_one_paragraph_per_line(tmp_path):
    path = export_docx(LETTER, tmp_path / "brev.docx")

    paragraphs = [paragraph.text for paragraph in Document(str(path)).paragraphs]
    assert paragraphs == LETTER.split("\n")


def test_export_pdf_handles_danish_and_other_scripts(tmp_path):
    path = export_pdf(LETTER + "\nПривіт — “citat”", tmp_path / "brev.pdf")

    assert path.read_bytes().startswith(b"%PDF")


def test_pdf_text_is_latin1_safe():
    safe = exporters._pdf_safe_text("Søren – “Å”… Привіт")

    assert safe.startswith('Søren - "Å"...')
    safe.encode("latin-1")


@pytest.mark.parametrize("exporter", [export_txt, export_docx, export_pdf])
def test_empty_letter_is_rejected(exporter, tmp_path):
    with pytest.raises(ExportError):
        exporter("   ", tmp_path / "brev")


def test_copy_without_clipboard_tool_raises(monkeypatch):
    monkeypatch.setattr(exporters.shutil, "which", lambda name: None)

    with pytest.raises(ExportError):
        copy_to_clipboard(LETTER)


def test_copy_pipes_letter_to_clipboard_tool(monkeypatch):
    calls = []
    monkeypatch.setattr(exporters.platform, "system", lambda: "Linux")
    monkeypatch.setattr(exporters.shutil, "which", lambda name: "/usr/bin/xclip" if name == "xclip" else None)
    monkeypatch.setattr(exporters.subprocess, "run", lambda command, **kwargs: calls.append((command, kwargs)))

    copy_to_clipboard(LETTER)

    command, kwargs = calls[0]
    assert command == ["xclip", "-selection", "clipboard"]
    assert kwargs["input"] == LETTER.encode("utf-8")
