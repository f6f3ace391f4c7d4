"""Tests for the XML converter."""

import io
import json

import pytest

from sourcebridge.app.adapters import XmlConverter
from sourcebridge.errors import FormatError


def _convert(xml: str) -> object:
    return json.loads(XmlConverter().convert(io.BytesIO(xml.encode("utf-8"))))


def test_repeated_children_become_array():
    assert XmlConverter().convert(io.BytesIO(b"<root><item>x</item><item>y</item></root>")) == '{"item":["x","y"]}'


def test_nested_elements_become_objects():
    xml = "<orders><order><id>1</id><customer><name>Ada</name></customer></order></orders>"
    assert _convert(xml) == {"order": {"id": "1", "customer": {"name": "Ada"}}}


def test_repeated_nested_records_keep_document_order():
    xml = "<rows><row><id>1</id></row><row><id>2</id></row><row><id>3</id></row></rows>"
    assert _convert(xml) == {"row": [{"id": "1"}, {"id": "2"}, {"id": "3"}]}


def test_leaf_text_is_trimmed_and_attributes_ignored():
    assert _convert('<root><name lang="en">  Ada  </name><empty/></root>') == {"name": "Ada", "empty": ""}


def test_namespaces_are_stripped_from_keys():
    xml = '<feed xmlns="urn:example"><entry>a</entry><entry>b</entry></feed>'
    assert _convert(xml) == {"entry": ["a", "b"]}


def test_leaf_root_becomes_string():
    assert _convert("<value>42</value>") == "42"


def test_malformed_xml_raises_format_error():
    with pytest.raises(FormatError):
        XmlConverter().convert(io.BytesIO(b"<root><open></root>"))


def test_validate():
    converter = XmlConverter()
    assert converter.validate(io.BytesIO(b"<root/>"))
    assert not converter.validate(io.BytesIO(b"id,name\n1,Alice\n"))
    assert not converter.validate(io.BytesIO(b""))


def test_metadata():
    xml = b'<?xml version="1.0" encoding="iso-8859-1"?><ns:catalog xmlns:ns="urn:c"><ns:book/></ns:catalog>'
    stream = io.BytesIO(xml)
    metadata = XmlConverter().extract_metadata(stream)

    assert metadata.format == "xml"
    assert metadata.encoding == "ISO-8859-1"
    assert metadata.details == {"root_element": "catalog", "has_namespace": True}
    assert stream.tell() == 0


def test_metadata_defaults_to_utf8():
    metadata = XmlConverter().extract_metadata(io.BytesIO(b"<root/>"))
    assert metadata.encoding == "UTF-8"
    assert metadata.details["has_namespace"] is False


def test_validate_leaves_position_unchanged():
    converter = XmlConverter()
    for payload in (b"<root><item>x</item></root>", b"id,name\n1,Alice\n"):
        stream = io.BytesIO(payload)
        stream.seek(4)
        converter.validate(stream)
        assert stream.tell() == 4


def test_convert_is_repeatable():
    converter = XmlConverter()
    stream = io.BytesIO(b"<rows><row><id>1</id></row><row><id>2</id></row></rows>")
    assert converter.convert(stream) == converter.convert(stream)
