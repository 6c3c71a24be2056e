"""
Typed PDF primitive values.

The metadata codec only ever writes three kinds of value into document
dictionaries: names, text strings, and arrays of those. Writers build a
PdfValue and hand it to ``write_entry``; conversion into pikepdf objects
happens in one place.

IMPORTANT:
- Keys are normalized to carry exactly one leading "/".
- Reading is case-insensitive on keys; writing preserves the given case.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Annotated, Any, List, Literal, Optional, Union

import pikepdf
from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Tagged union
# ---------------------------------------------------------------------------

class PdfName(BaseModel):
    kind: Literal["name"] = "name"
    value: str

    model_config = ConfigDict(frozen=True)


class PdfText(BaseModel):
    kind: Literal["string"] = "string"
    value: str

    model_config = ConfigDict(frozen=True)


class PdfSequence(BaseModel):
    kind: Literal["array"] = "array"
    items: List["PdfValue"] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


PdfValue = Annotated[
    Union[PdfName, PdfText, PdfSequence],
    Field(discriminator="kind"),
]

PdfSequence.model_rebuild()


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def normalize_key(key: str) -> str:
    """Return ``key`` with exactly one leading slash."""
    stripped = key.lstrip("/")
    if not stripped:
        raise ValueError("PDF dictionary key must not be empty")
    return "/" + stripped


def to_pdf_object(value: PdfValue) -> pikepdf.Object:
    if isinstance(value, PdfName):
        return pikepdf.Name(normalize_key(value.value))
    if isinstance(value, PdfText):
        return pikepdf.String(value.value)
    if isinstance(value, PdfSequence):
        return pikepdf.Array([to_pdf_object(item) for item in value.items])
    raise TypeError(f"Unsupported PDF value: {type(value).__name__}")


def write_entry(target: Any, key: str, value: PdfValue) -> None:
    """
    Write one typed value into a PDF dictionary.

    ``target`` is either a pikepdf dictionary (info, catalog, or stream
    dictionary) or a plain mapping that will later be wrapped into one.
    """
    name = normalize_key(key)
    obj = to_pdf_object(value)

    if isinstance(target, (pikepdf.Dictionary, pikepdf.Stream)):
        target[name] = obj
    elif isinstance(target, MutableMapping):
        target[name] = obj
    else:
        raise TypeError(
            f"Cannot write PDF entry into {type(target).__name__}"
        )


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def find_key(source: Any, key: str) -> Optional[str]:
    """
    Locate ``key`` in a PDF dictionary, ignoring case and the leading slash.

    Returns the key exactly as stored, or None.
    """
    if not isinstance(source, (pikepdf.Dictionary, pikepdf.Stream)):
        return None

    wanted = key.lstrip("/").lower()
    for stored in source.keys():
        if str(stored).lstrip("/").lower() == wanted:
            return str(stored)
    return None


def read_entry(source: Any, key: str) -> Any:
    """Case-insensitive lookup returning the raw pikepdf object or None."""
    stored = find_key(source, key)
    if stored is None:
        return None
    return source[stored]


def read_text(obj: Any) -> Optional[str]:
    """
    Coerce a stored PDF value into text.

    Arrays are joined with a single space; anything without a textual
    form yields None.
    """
    if obj is None:
        return None
    if isinstance(obj, pikepdf.String):
        return str(obj)
    if isinstance(obj, pikepdf.Name):
        return str(obj).lstrip("/")
    if isinstance(obj, pikepdf.Array):
        parts = [read_text(item) for item in obj]
        return " ".join(part for part in parts if part)
    if isinstance(obj, str):
        return obj
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    return None
