"""
PDF metadata codec.

Embeds a SignaturePacket into a PDF and recovers it again.

The packet is written redundantly so that it survives PDF tools that
rewrite or drop individual locations:

1. Info /Keywords         array; element 0 is the packet JSON
2. Info /X-Signal-Metadata-JSON
3. Catalog /SIGNAL_Properties /SIGNAL_Metadata
4. Individual info entries (signal_signature, signal_publicKey, ...)

Extraction tries the locations in that order and returns the first
candidate carrying a signature or public key.

IMPORTANT:
- /Keywords is written as a PDF array, never a concatenated string.
  A single-string /Keywords (legacy writers) is still read.
- XMP metadata is not touched.
- Extraction never verifies anything. Trust decisions belong to the
  verification coordinator.
"""

from __future__ import annotations

import io
import json
import logging
from datetime import timezone
from typing import Any, Dict, Iterator, Optional, Union

import pikepdf
from pydantic import ValidationError

from signal_journal.app.errors import CodecError, InputError
from signal_journal.app.pdf import text_document
from signal_journal.app.pdf.values import (
    PdfName,
    PdfSequence,
    PdfText,
    read_entry,
    read_text,
    write_entry,
)
from signal_journal.app.schemas.packet import (
    DescriptiveMetadata,
    MetadataField,
    SignaturePacket,
)

logger = logging.getLogger("signal_journal.pdf")

PDF_HEADER = b"%PDF-"
HEADER_SEARCH_WINDOW = 1024

INFO_JSON_KEY = "X-Signal-Metadata-JSON"
CATALOG_PROPERTIES_KEY = "SIGNAL_Properties"
CATALOG_METADATA_KEY = "SIGNAL_Metadata"
CATALOG_TYPE = "SIGNAL"

KEYWORD_TAG_PREFIX = "signal:"
SIGNATURE_ALGORITHM = "ECDSA-P256-SHA256"
PRODUCER = "Signal Journal Signing Service"

Document = Union[bytes, bytearray, memoryview, str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def is_pdf(data: bytes) -> bool:
    return PDF_HEADER in bytes(data[:HEADER_SEARCH_WINDOW])


def serialize_packet(packet: SignaturePacket) -> str:
    """Canonical packet JSON (sorted keys, compact, UTF-8 preserved)."""
    return json.dumps(
        packet.to_metadata(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _pdf_date(packet: SignaturePacket) -> str:
    moment = packet.signing_date.astimezone(timezone.utc)
    return moment.strftime("D:%Y%m%d%H%M%S+00'00'")


def _open_document(document: Document) -> pikepdf.Pdf:
    """
    Open PDF bytes, or synthesize a PDF from text.

    Raises:
        InputError: unsupported document type
        CodecError: bytes look like a PDF but cannot be parsed
    """
    if isinstance(document, str):
        return text_document.build_text_pdf(document)

    if not isinstance(document, (bytes, bytearray, memoryview)):
        raise InputError(
            f"Unsupported document type: {type(document).__name__}"
        )

    data = bytes(document)
    if not is_pdf(data):
        return text_document.build_text_pdf(
            data.decode("utf-8", errors="replace")
        )

    try:
        return pikepdf.open(io.BytesIO(data))
    except pikepdf.PdfError as exc:
        raise CodecError("Unable to parse PDF for embedding") from exc


def _ensure_info(pdf: pikepdf.Pdf) -> pikepdf.Object:
    """Return the trailer /Info dictionary, replacing a missing or bad one."""
    info = pdf.trailer.get("/Info")
    if not isinstance(info, pikepdf.Dictionary):
        info = pdf.make_indirect(pikepdf.Dictionary())
        pdf.trailer["/Info"] = info
    return info


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------

def _require_encodable(*values: Optional[str]) -> None:
    for value in values:
        if value is None:
            continue
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InputError(
                "Signature metadata contains text that cannot be encoded"
            ) from exc


def embed(
    document: Document,
    packet: SignaturePacket,
    *,
    metadata: Optional[DescriptiveMetadata] = None,
    add_verification_page: bool = False,
    verification_url: Optional[str] = None,
) -> bytes:
    """
    Embed ``packet`` into ``document`` and return the new PDF bytes.

    ``document`` may be existing PDF bytes or plain text. Text is rendered
    into a fresh PDF first.

    Raises:
        InputError:
            If a packet or metadata string cannot be encoded as PDF text.
        CodecError:
            If the input PDF cannot be parsed or the result cannot be saved.
    """
    metadata = metadata or DescriptiveMetadata()
    packet_json = serialize_packet(packet)
    _require_encodable(
        packet_json,
        metadata.title,
        metadata.author,
        metadata.subject,
        metadata.creator,
        metadata.producer,
    )

    with _open_document(document) as pdf:
        info = _ensure_info(pdf)

        # Standard document information
        write_entry(info, "Title", PdfText(value=metadata.title or packet.perihal))
        write_entry(info, "Author", PdfText(value=metadata.author or packet.author))
        write_entry(
            info,
            "Subject",
            PdfText(value=metadata.subject or f"Digitally signed: {packet.perihal}"),
        )
        write_entry(info, "Creator", PdfText(value=metadata.creator or PRODUCER))
        write_entry(info, "Producer", PdfText(value=metadata.producer or PRODUCER))
        write_entry(info, "ModDate", PdfText(value=_pdf_date(packet)))

        # 1. Keywords array
        write_entry(
            info,
            "Keywords",
            PdfSequence(
                items=[
                    PdfText(value=packet_json),
                    PdfText(value=f"{KEYWORD_TAG_PREFIX}version={packet.version}"),
                    PdfText(value=f"{KEYWORD_TAG_PREFIX}algorithm={SIGNATURE_ALGORITHM}"),
                    PdfText(value=f"{KEYWORD_TAG_PREFIX}hash={packet.original_hash}"),
                ]
            ),
        )

        # 2. Info-dictionary JSON
        write_entry(info, INFO_JSON_KEY, PdfText(value=packet_json))

        # 3. Catalog properties
        properties: Dict[str, Any] = {}
        write_entry(properties, "Type", PdfName(value=CATALOG_TYPE))
        write_entry(properties, "Version", PdfText(value=packet.version))
        write_entry(properties, CATALOG_METADATA_KEY, PdfText(value=packet_json))
        pdf.Root["/" + CATALOG_PROPERTIES_KEY] = pdf.make_indirect(
            pikepdf.Dictionary(properties)
        )

        # 4. Individual entries
        for key, value in packet.to_metadata().items():
            if value is None:
                continue
            write_entry(info, key, PdfText(value=str(value)))

        if add_verification_page:
            text_document.add_verification_page(
                pdf,
                packet,
                verification_url=verification_url,
            )

        buffer = io.BytesIO()
        try:
            pdf.save(buffer)
        except pikepdf.PdfError as exc:
            raise CodecError("Unable to serialize signed PDF") from exc

    logger.info(
        "packet_embedded",
        extra={
            "journal_id": packet.journal_id,
            "content_hash": packet.original_hash,
            "size_bytes": buffer.tell(),
        },
    )

    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _is_candidate(fields: Any) -> bool:
    return isinstance(fields, dict) and bool(
        fields.get(MetadataField.SIGNATURE) or fields.get(MetadataField.PUBLIC_KEY)
    )


def _parse_json_candidate(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        fields = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return fields if _is_candidate(fields) else None


def _scan_json_candidates(text: str) -> Iterator[Dict[str, Any]]:
    """Yield packet-like JSON objects embedded anywhere in ``text``."""
    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            fields, _ = decoder.raw_decode(text, index)
        except ValueError:
            fields = None
        except RecursionError:
            # Nesting this deep is never a packet.
            return
        if _is_candidate(fields):
            yield fields
        index = text.find("{", index + 1)


def _from_keywords(info: Any) -> Optional[Dict[str, Any]]:
    keywords = read_entry(info, "Keywords")
    if keywords is None:
        return None

    if isinstance(keywords, pikepdf.Array):
        for item in keywords:
            fields = _parse_json_candidate(read_text(item))
            if fields is not None:
                return fields
        return None

    text = read_text(keywords)
    if not text:
        return None

    fields = _parse_json_candidate(text)
    if fields is not None:
        return fields
    return next(_scan_json_candidates(text), None)


def _from_info_json(info: Any) -> Optional[Dict[str, Any]]:
    return _parse_json_candidate(read_text(read_entry(info, INFO_JSON_KEY)))


def _from_catalog(root: Any) -> Optional[Dict[str, Any]]:
    properties = read_entry(root, CATALOG_PROPERTIES_KEY)
    if not isinstance(properties, pikepdf.Dictionary):
        return None
    return _parse_json_candidate(read_text(read_entry(properties, CATALOG_METADATA_KEY)))


def _from_individual_entries(info: Any) -> Optional[Dict[str, Any]]:
    fields = {key: read_text(read_entry(info, key)) for key in MetadataField.ALL}
    fields = {key: value for key, value in fields.items() if value}
    return fields if _is_candidate(fields) else None


def _locate_packet(pdf: pikepdf.Pdf) -> Optional[Dict[str, Any]]:
    info = pdf.trailer.get("/Info")
    if not isinstance(info, pikepdf.Dictionary):
        info = None

    for source, locate in (
        ("keywords", lambda: _from_keywords(info)),
        ("info_json", lambda: _from_info_json(info)),
        ("catalog", lambda: _from_catalog(pdf.Root)),
        ("info_fields", lambda: _from_individual_entries(info)),
    ):
        fields = locate()
        if fields is None:
            continue

        # Legacy packets may omit the author; fall back to /Author.
        if MetadataField.AUTHOR not in fields:
            author = read_text(read_entry(info, "Author"))
            if author:
                fields = {**fields, MetadataField.AUTHOR: author}

        logger.debug("packet_located", extra={"source": source})
        return fields

    return None


def extract(pdf_bytes: Union[bytes, bytearray, memoryview]) -> Optional[SignaturePacket]:
    """
    Recover the embedded packet from PDF bytes.

    Returns:
        The packet, or None if the PDF carries no signature metadata.

    Raises:
        CodecError:
            If the bytes are not a parseable PDF, or a packet is present but
            its fields do not form a valid packet.
    """
    if not isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
        raise CodecError(f"Expected PDF bytes, got {type(pdf_bytes).__name__}")

    data = bytes(pdf_bytes)
    if not is_pdf(data):
        raise CodecError("Input is not a PDF document")

    try:
        with pikepdf.open(io.BytesIO(data)) as pdf:
            fields = _locate_packet(pdf)
    except pikepdf.PdfError as exc:
        raise CodecError("Unable to parse PDF") from exc

    if fields is None:
        logger.info("packet_not_found")
        return None

    try:
        return SignaturePacket.from_metadata(fields)
    except ValidationError as exc:
        raise CodecError("Embedded signature metadata is malformed") from exc
