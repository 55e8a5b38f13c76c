"""Helpers for exporting a finished letter to DOCX, PDF, plain text or the clipboard."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union
import platform
import shutil
import subprocess
import textwrap
import unicodedata

from docx import Document
from docx.shared import Pt
from fpdf import FPDF

from ..errors import ExportError

PathLike = Union[str, Path]

_PDF_LATIN1_REPLACEMENTS = {
    ord("\u2010"): "-",  # hyphen
    ord("\u2011"): "-",  # non-breaking hyphen
    ord("\u2013"): "-",  # en dash
    ord("\u2014"): "-",  # em dash
    ord("\u2212"): "-",  # minus sign
    ord("\u2018"): "'",
    ord("\u2019"): "'",
    ord("\u201A"): "'",
    ord("\u201C"): '"',
    ord("\u201D"): '"',
    ord("\u201E"): '"',
    ord("\u2026"): "...",  # ellipsis
    ord("\u00A0"): " ",  # non-breaking space
    ord("\u202F"): " ",  # narrow no-break space
    ord("\u200B"): "",  # zero-width space
    ord("\ufeff"): "",  # BOM
}


def _require_text(text: Optional[str]) -> str:
    if not text or not text.strip():
        raise ExportError("There is no letter to export yet.")
    return text


def _pdf_safe_text(text: str) -> str:
    """Return ``text`` normalised for the PDF Latin-1 core fonts."""

    # NFC keeps æ/ø/å as single Latin-1 code points
    normalized = unicodedata.normalize("NFC", text or "")
    normalized = normalized.replace("\t", " ")
    replaced = normalized.translate(_PDF_LATIN1_REPLACEMENTS)
    return replaced.encode("latin-1", "replace").decode("latin-1")


def _pdf_wrapped_lines(text: str, *, width: int = 95) -> list[str]:
    wrapped: list[str] = []
    for raw_line in _pdf_safe_text(text).splitlines():
        if not raw_line.strip():
            wrapped.append("")
            continue
        wrapped.extend(
            textwrap.wrap(raw_line, width=width, break_long_words=True, break_on_hyphens=False) or [""]
        )
    return wrapped


def export_txt(text: str, output_path: PathLike) -> Path:
    """Write the letter to a UTF-8 text file."""

    body = _require_text(text).rstrip() + "\n"
    resolved_path = Path(output_path)
    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        resolved_path.write_text(body, encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"Unable to export TXT file: {exc}") from exc
    return resolved_path


def export_docx(text: str, output_path: PathLike) -> Path:
    """Write the letter to a Word document, one paragraph per line."""

    letter = _require_text(text)
    document = Document()
    style = document.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    for line in letter.split("\n"):
        paragraph = document.add_paragraph(line)
        paragraph.paragraph_format.space_after = Pt(0)

    resolved_path = Path(output_path)
    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        document.save(str(resolved_path))
    except OSError as exc:
        raise ExportError(f"Unable to export DOCX file: {exc}") from exc
    return resolved_path


def export_pdf(text: str, output_path: PathLike) -> Path:
    """Render the letter onto A4 pages with a core font."""

    letter = _require_text(text)
    pdf = FPDF(format="A4")
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.set_margins(20, 20, 20)
    pdf.add_page()
    pdf.set_font("Helvetica", "", 11)

    effective_width = pdf.w - pdf.l_margin - pdf.r_margin
    for line in _pdf_wrapped_lines(letter):
        pdf.set_x(pdf.l_margin)
        if line:
            pdf.multi_cell(effective_width, 6, line)
        else:
            pdf.ln(6)

    resolved_path = Path(output_path)
    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        pdf.output(str(resolved_path))
    except (OSError, RuntimeError) as exc:
        raise ExportError(f"Unable to export PDF: {exc}") from exc
    return resolved_path


def _clipboard_command() -> Optional[list[str]]:
    system = platform.system()
    if system == "Darwin" and shutil.which("pbcopy"):
        return ["pbcopy"]
    if system == "Windows" and shutil.which("clip"):
        return ["clip"]
    if shutil.which("wl-copy"):
        return ["wl-copy"]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("xsel"):
        return ["xsel", "--clipboard", "--input"]
    return None


def copy_to_clipboard(text: str) -> None:
    """Put the letter on the system clipboard."""

    letter = _require_text(text)
    command = _clipboard_command()
    if command is None:
        raise ExportError("No clipboard tool found (pbcopy, clip, wl-copy, xclip or xsel).")

    encoding = "utf-16-le" if command[0] == "clip" else "utf-8"
    try:
        subprocess.run(command, input=letter.encode(encoding), check=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as exc:
        raise ExportError(f"Unable to copy to clipboard: {exc}") from exc


EXPORTERS = {
    "docx": export_docx,
    "pdf": export_pdf,
    "txt": export_txt,
}


__all__ = ["EXPORTERS", "copy_to_clipboard", "export_docx", "export_pdf", "export_txt"]
