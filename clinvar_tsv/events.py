import dataclasses
from enum import StrEnum


class XmlEventType(StrEnum):
    START = "start"
    END = "end"
    TEXT = "text"
    EOF = "eof"


@dataclasses.dataclass
class XmlEvent:
    """
    One structural event of an XML document.

    `tag` is set for START, END and TEXT events, `attrs` only for START and
    `text` only for TEXT. `offset` is the approximate number of input bytes
    consumed when the event was produced.
    """

    type: XmlEventType
    tag: str | None = None
    attrs: dict[str, str] = dataclasses.field(default_factory=dict)
    text: str | None = None
    offset: int | None = None
