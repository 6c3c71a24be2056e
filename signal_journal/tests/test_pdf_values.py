import pikepdf
import pytest
from pydantic import TypeAdapter

from signal_journal.app.pdf.values import (
    PdfName,
    PdfSequence,
    PdfText,
    PdfValue,
    find_key,
    normalize_key,
    read_entry,
    read_text,
    to_pdf_object,
    write_entry,
)


# ------------------------------------------------------------------
# Each primitive kind, written independently
# ------------------------------------------------------------------

def test_write_name():
    target = pikepdf.Dictionary()
    write_entry(target, "Type", PdfName(value="SIGNAL"))

    assert isinstance(target["/Type"], pikepdf.Name)
    assert target["/Type"] == pikepdf.Name("/SIGNAL")


def test_write_name_with_leading_slash():
    target = pikepdf.Dictionary()
    write_entry(target, "/Type", PdfName(value="/SIGNAL"))

    assert target["/Type"] == pikepdf.Name("/SIGNAL")


def test_write_string():
    target = pikepdf.Dictionary()
    write_entry(target, "signal_author", PdfText(value="Budi Santoso"))

    assert isinstance(target["/signal_author"], pikepdf.String)
    assert str(target["/signal_author"]) == "Budi Santoso"


def test_write_non_ascii_string():
    target = pikepdf.Dictionary()
    write_entry(target, "Title", PdfText(value="Laporan – Catatan Harian ✓"))

    assert str(target["/Title"]) == "Laporan – Catatan Harian ✓"


def test_write_array_of_strings():
    target = pikepdf.Dictionary()
    write_entry(
        target,
        "Keywords",
        PdfSequence(items=[PdfText(value='{"a":1}'), PdfText(value="signal:version=1.2")]),
    )

    keywords = target["/Keywords"]
    assert isinstance(keywords, pikepdf.Array)
    assert len(keywords) == 2
    assert all(isinstance(item, pikepdf.String) for item in keywords)
    assert str(keywords[0]) == '{"a":1}'


def test_write_nested_mixed_array():
    target = pikepdf.Dictionary()
    write_entry(
        target,
        "Mixed",
        PdfSequence(
            items=[
                PdfName(value="A"),
                PdfText(value="b"),
                PdfSequence(items=[PdfText(value="c")]),
            ]
        ),
    )

    mixed = target["/Mixed"]
    assert isinstance(mixed[0], pikepdf.Name)
    assert isinstance(mixed[1], pikepdf.String)
    assert isinstance(mixed[2], pikepdf.Array)


def test_write_into_plain_mapping_then_wrap():
    properties = {}
    write_entry(properties, "Type", PdfName(value="SIGNAL"))
    write_entry(properties, "Version", PdfText(value="1.2"))

    wrapped = pikepdf.Dictionary(properties)
    assert wrapped["/Type"] == pikepdf.Name("/SIGNAL")
    assert str(wrapped["/Version"]) == "1.2"


def test_write_into_unsupported_target_raises():
    with pytest.raises(TypeError):
        write_entry(["not", "a", "dict"], "Key", PdfText(value="x"))


def test_to_pdf_object_rejects_unknown_values():
    with pytest.raises(TypeError):
        to_pdf_object("plain string")


# ------------------------------------------------------------------
# Keys
# ------------------------------------------------------------------

@pytest.mark.parametrize("key", ["Title", "/Title", "//Title"])
def test_normalize_key(key):
    assert normalize_key(key) == "/Title"


def test_empty_key_is_rejected():
    with pytest.raises(ValueError):
        normalize_key("/")


def test_lookup_is_case_insensitive():
    target = pikepdf.Dictionary()
    write_entry(target, "SIGNAL_SIGNATURE", PdfText(value="abc"))

    assert find_key(target, "signal_signature") == "/SIGNAL_SIGNATURE"
    assert read_text(read_entry(target, "/Signal_Signature")) == "abc"
    assert read_entry(target, "missing") is None
    assert find_key(None, "anything") is None


# ------------------------------------------------------------------
# Reading
# ------------------------------------------------------------------

def test_read_text_variants():
    assert read_text(pikepdf.String("abc")) == "abc"
    assert read_text(pikepdf.Name("/SIGNAL")) == "SIGNAL"
    assert read_text(pikepdf.Array([pikepdf.String("a"), pikepdf.String("b")])) == "a b"
    assert read_text("plain") == "plain"
    assert read_text(b"bytes") == "bytes"
    assert read_text(None) is None
    assert read_text(42) is None


def test_tagged_union_discriminates_on_kind():
    adapter = TypeAdapter(PdfValue)

    value = adapter.validate_python(
        {"kind": "array", "items": [{"kind": "name", "value": "X"}, {"kind": "string", "value": "y"}]}
    )
    assert isinstance(value, PdfSequence)
    assert isinstance(value.items[0], PdfName)
    assert isinstance(value.items[1], PdfText)
