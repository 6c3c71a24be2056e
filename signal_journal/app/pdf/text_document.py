"""
Plain-text to PDF synthesis.

Used when a journal is signed from raw text rather than an uploaded PDF,
and for the optional verification page appended to signed documents.

Rendering is intentionally minimal: A4 pages, standard Helvetica,
WinAnsi encoding. Characters outside cp1252 are replaced.
"""

from __future__ import annotations

import textwrap
from typing import Iterable, List, Optional

import pikepdf
from pikepdf import Dictionary, Name, Stream

from signal_journal.app.schemas.packet import SignaturePacket

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 50
FONT_SIZE = 12
LEADING = 14.4
WRAP_COLUMNS = 80

LINES_PER_PAGE = int((PAGE_HEIGHT - 2 * MARGIN) / LEADING)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def wrap_text(text: str, *, width: int = WRAP_COLUMNS) -> List[str]:
    """Split text into display lines, preserving blank lines."""
    lines: List[str] = []
    for paragraph in text.splitlines():
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(
            textwrap.wrap(
                paragraph.expandtabs(4),
                width=width,
                break_long_words=True,
                drop_whitespace=True,
            )
        )
    return lines


def _escape(line: str) -> bytes:
    raw = line.encode("cp1252", errors="replace")
    return (
        raw.replace(b"\\", b"\\\\")
        .replace(b"(", b"\\(")
        .replace(b")", b"\\)")
        .replace(b"\r", b"")
    )


def _content_stream(lines: Iterable[str]) -> bytes:
    top = PAGE_HEIGHT - MARGIN
    parts = [
        b"BT",
        b"/F1 %d Tf" % FONT_SIZE,
        b"%.1f TL" % LEADING,
        b"%d %d Td" % (MARGIN, top),
    ]
    for index, line in enumerate(lines):
        if index:
            parts.append(b"T*")
        parts.append(b"(" + _escape(line) + b") Tj")
    parts.append(b"ET")
    return b"\n".join(parts) + b"\n"


def _font(pdf: pikepdf.Pdf) -> pikepdf.Object:
    return pdf.make_indirect(
        Dictionary(
            Type=Name.Font,
            Subtype=Name.Type1,
            BaseFont=Name.Helvetica,
            Encoding=Name.WinAnsiEncoding,
        )
    )


# ---------------------------------------------------------------------------
# Page construction
# ---------------------------------------------------------------------------

def add_text_pages(pdf: pikepdf.Pdf, lines: List[str]) -> int:
    """
    Append pages rendering ``lines`` to ``pdf``.

    Always appends at least one page. Returns the number of pages added.
    """
    font = _font(pdf)
    chunks = [
        lines[start:start + LINES_PER_PAGE]
        for start in range(0, len(lines), LINES_PER_PAGE)
    ] or [[]]

    for chunk in chunks:
        page = pdf.add_blank_page(page_size=(PAGE_WIDTH, PAGE_HEIGHT))
        page.obj["/Resources"] = Dictionary(Font=Dictionary(F1=font))
        page.obj["/Contents"] = pdf.make_indirect(
            Stream(pdf, _content_stream(chunk))
        )

    return len(chunks)


def build_text_pdf(text: str) -> pikepdf.Pdf:
    """
    Create a new PDF rendering ``text``.

    Caller owns the returned Pdf and must close it.
    """
    pdf = pikepdf.new()
    add_text_pages(pdf, wrap_text(text))
    return pdf


def add_verification_page(
    pdf: pikepdf.Pdf,
    packet: SignaturePacket,
    *,
    verification_url: Optional[str] = None,
) -> None:
    """
    Append a human-readable signature summary page.

    The page is informational only. Verification always relies on the
    embedded packet, never on this text.
    """
    lines = [
        "DIGITAL SIGNATURE VERIFICATION",
        "",
        "This document carries an embedded ECDSA P-256 digital signature.",
        "",
        f"Signed by: {packet.author}",
        f"Subject: {packet.perihal}",
        f"Signing date: {packet.signing_date.isoformat()}",
    ]
    if packet.journal_id:
        lines.append(f"Document ID: {packet.journal_id}")

    lines += ["", "Document hash (SHA-256):"]
    lines += wrap_text(packet.original_hash)
    lines += ["", "Public key:"]
    lines += textwrap.wrap(packet.public_key, width=WRAP_COLUMNS, break_long_words=True)

    if verification_url:
        lines += ["", "Verify this document at:"]
        lines += textwrap.wrap(verification_url, width=WRAP_COLUMNS, break_long_words=True)

    add_text_pages(pdf, lines)
