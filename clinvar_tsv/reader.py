"""
Module for turning ClinVar XML byte streams into structural events, and events
into ClinVarSet records.
"""

import logging
import xml.etree.ElementTree as ET
from enum import StrEnum
from typing import BinaryIO, Iterator

from clinvar_tsv.builder import RecordBuilder
from clinvar_tsv.events import XmlEvent, XmlEventType
from clinvar_tsv.exceptions import TruncatedInputError, XmlStructureError
from clinvar_tsv.fs import DEFAULT_BUFFER_SIZE, DEFAULT_QUEUE_DEPTH, ReadAheadReader
from clinvar_tsv.model.records import ClinVarSet, ReleaseSet

_logger = logging.getLogger("clinvar_tsv")

DEFAULT_CHUNK_SIZE = 64 * 1024


class ElementTreeEvent(StrEnum):
    """
    Enum for ElementTree events
    """

    START = "start"
    END = "end"


def _local_name(name: str) -> str:
    """Strips an ElementTree namespace prefix like '{http://...}'."""
    return name.rpartition("}")[2]


def iter_xml_events(
    stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[XmlEvent]:
    """
    Generator of structural events for the XML document read from `stream`.

    Text is reported in TEXT events tagged with the element containing it, in
    document order: text before an element's first child just before that
    child's START, text following a child once the next START or END is seen,
    and the text of an element without children just before its END. An empty
    element produces a START followed by an END. The last event is EOF.

    Duplicate attribute names make a document malformed and are reported as an
    XmlStructureError, like any other well-formedness error. Input ending while
    elements are still open raises TruncatedInputError.

    Closed elements are detached from the tree, so memory use does not grow with
    the number of elements read.
    """
    parser = ET.XMLPullParser(events=[ElementTreeEvent.START, ElementTreeEvent.END])
    open_elements: list[ET.Element] = []
    # Last closed element, kept until its tail text is known
    closed: list[ET.Element] = []
    offset = 0

    def text_event(elem: ET.Element, text: str) -> XmlEvent:
        return XmlEvent(XmlEventType.TEXT, _local_name(elem.tag), text=text, offset=offset)

    def release_closed() -> Iterator[XmlEvent]:
        # The tail of an element is complete once the next event is produced
        if closed:
            elem = closed.pop()
            parent = open_elements[-1]
            if elem.tail is not None:
                yield text_event(parent, elem.tail)
            parent.remove(elem)
            elem.clear()

    def drain() -> Iterator[XmlEvent]:
        for event, elem in parser.read_events():
            tag = _local_name(elem.tag)
            yield from release_closed()
            if event == ElementTreeEvent.START:
                if open_elements and open_elements[-1].text is not None:
                    yield text_event(open_elements[-1], open_elements[-1].text)
                    open_elements[-1].text = None
                open_elements.append(elem)
                attrs = {_local_name(k): v for k, v in elem.attrib.items()}
                yield XmlEvent(XmlEventType.START, tag, attrs, offset=offset)
            else:
                open_elements.pop()
                if elem.text is not None:
                    yield text_event(elem, elem.text)
                yield XmlEvent(XmlEventType.END, tag, offset=offset)
                if open_elements:
                    closed.append(elem)
                else:
                    elem.clear()

    try:
        while chunk := stream.read(chunk_size):
            offset += len(chunk)
            parser.feed(chunk)
            yield from drain()
    except ET.ParseError as e:
        raise XmlStructureError(f"Malformed XML: {e}", offset=offset) from e

    try:
        parser.close()
        yield from drain()
    except ET.ParseError as e:
        if open_elements:
            open_tags = "/".join(_local_name(elem.tag) for elem in open_elements)
            raise TruncatedInputError(
                f"Input ended inside {open_tags}: {e}", offset=offset
            ) from e
        raise XmlStructureError(f"Malformed XML: {e}", offset=offset) from e
    yield XmlEvent(XmlEventType.EOF, offset=offset)


def read_release_set(stream: BinaryIO) -> ReleaseSet:
    """
    Reads top level release info from the stream, stopping at the root element.
    """
    builder = RecordBuilder()
    for event in iter_xml_events(stream):
        builder.feed(event)
        if event.type == XmlEventType.START:
            break
    if builder.release_set is None:
        raise XmlStructureError("Root element ReleaseSet not found!")
    return builder.release_set


def read_clinvar_xml(
    path: str,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    queue_depth: int = DEFAULT_QUEUE_DEPTH,
) -> Iterator[ClinVarSet]:
    """
    Generator function that reads a ClinVar full release XML file (optionally
    gzipped) and yields one ClinVarSet per record.
    """
    _logger.info(f"Reading ClinVar XML from {path}")
    with ReadAheadReader(path, buffer_size=buffer_size, queue_depth=queue_depth) as f:
        yield from RecordBuilder().build(iter_xml_events(f))
