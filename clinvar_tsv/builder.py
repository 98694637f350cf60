"""
State machine building ClinVarSet records from a flat stream of XML events.

Open elements are kept as frames on an explicit stack. A frame either owns a
record entity (e.g. a Measure) or is a plain element whose text and attributes
are routed into the nearest enclosing entity when it closes (e.g. the
RecordStatus of a ClinVarSet). Which tags open entities, and where plain
elements are routed, is looked up by the type of the nearest enclosing entity
plus the tag path from that entity down to the element. Elements not found in
these tables are passed over.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Iterable, Iterator

from clinvar_tsv.events import XmlEvent, XmlEventType
from clinvar_tsv.exceptions import TruncatedInputError, XmlStructureError
from clinvar_tsv.model.common import int_or_none, sanitize_date
from clinvar_tsv.model.records import (
    ClinicalSignificance,
    ClinVarAssertion,
    ClinVarSet,
    GenotypeSet,
    Measure,
    MeasureSet,
    ObservedDataDescription,
    ObservedIn,
    ReferenceClinVarAssertion,
    ReleaseSet,
    SequenceLocation,
    Trait,
    TraitSet,
)

_logger = logging.getLogger("clinvar_tsv")

RELEASE_SET_TAG = "ReleaseSet"

_ASSERTION_TYPES = (ReferenceClinVarAssertion, ClinVarAssertion)

# (type of enclosing entity, tag path below it) -> entity type opened by the tag
_ENTITY_FRAMES: dict[tuple[type | None, str], type] = {
    (None, "ClinVarSet"): ClinVarSet,
    (ClinVarSet, "ReferenceClinVarAssertion"): ReferenceClinVarAssertion,
    (ClinVarSet, "ClinVarAssertion"): ClinVarAssertion,
    (GenotypeSet, "MeasureSet"): MeasureSet,
    (MeasureSet, "Measure"): Measure,
    (Measure, "SequenceLocation"): SequenceLocation,
    (ObservedIn, "ObservedData"): ObservedDataDescription,
    (TraitSet, "Trait"): Trait,
}
for _assertion_type in _ASSERTION_TYPES:
    _ENTITY_FRAMES.update(
        {
            (_assertion_type, "ObservedIn"): ObservedIn,
            (_assertion_type, "GenotypeSet"): GenotypeSet,
            (_assertion_type, "MeasureSet"): MeasureSet,
            (_assertion_type, "TraitSet"): TraitSet,
            (_assertion_type, "ClinicalSignificance"): ClinicalSignificance,
        }
    )


# Entity type -> {XML attribute: (field, converter)}, applied when the entity opens
_ENTITY_ATTRIBUTES: dict[type, dict[str, tuple[str, Callable[[str], Any]]]] = {
    ClinVarSet: {"ID": ("id_no", int)},
    ReferenceClinVarAssertion: {
        "ID": ("id_no", int),
        "DateCreated": ("date_created", sanitize_date),
        "DateLastUpdated": ("date_updated", sanitize_date),
    },
    ClinVarAssertion: {"ID": ("id_no", int)},
    ClinicalSignificance: {"DateLastEvaluated": ("date_evaluated", sanitize_date)},
    GenotypeSet: {"Type": ("set_type", str), "Acc": ("accession", str)},
    MeasureSet: {"Type": ("set_type", str), "Acc": ("accession", str)},
    Measure: {"Type": ("measure_type", str)},
    SequenceLocation: {
        "Assembly": ("assembly", str),
        "Chr": ("chrom", str),
        "Accession": ("chrom_acc", str),
        "start": ("start", int),
        "stop": ("stop", int),
        "outerStart": ("outer_start", int),
        "outerStop": ("outer_stop", int),
        "innerStart": ("inner_start", int),
        "innerStop": ("inner_stop", int),
        "referenceAlleleVCF": ("reference", str),
        "alternateAlleleVCF": ("alternative", str),
        "positionVCF": ("position_vcf", int),
    },
    TraitSet: {"Type": ("set_type", str), "ID": ("id_no", int)},
}


def _set(field: str) -> Callable[[Any, str, dict], None]:
    def route(entity, text: str, attrs: dict):
        setattr(entity, field, text)

    return route


def _append(field: str) -> Callable[[Any, str, dict], None]:
    def route(entity, text: str, attrs: dict):
        getattr(entity, field).append(text)

    return route


def _append_unique(field: str) -> Callable[[Any, str], None]:
    def route(entity, text: str):
        values = getattr(entity, field)
        if text and text not in values:
            values.append(text)

    return route


def _accession(entity, text: str, attrs: dict):
    if "Acc" in attrs:
        entity.clinvar_accession = attrs["Acc"]
    if "Version" in attrs:
        entity.version_no = int_or_none(attrs["Version"])


def _submission_id(entity: ClinVarAssertion, text: str, attrs: dict):
    entity.submitter_date = sanitize_date(attrs.get("submitterDate"))


def _pubmed_id(entity: ObservedDataDescription, text: str, attrs: dict):
    if attrs.get("Source") == "PubMed":
        _append_numeric_id(entity.pubmed_ids, text, "PubMed")


def _omim_id(entity: ObservedDataDescription, text: str, attrs: dict):
    if attrs.get("DB") == "OMIM":
        # Allelic variant ids like 600198.0001 are reduced to the MIM number
        _append_numeric_id(entity.omim_ids, attrs.get("ID", "").split(".")[0], "OMIM")


def _append_numeric_id(ids: list[int], value: str, source: str):
    try:
        ids.append(int(value))
    except ValueError:
        _logger.warning(f"Ignoring non-numeric {source} id: {value!r}")


def _hgnc_id(entity: Measure, text: str, attrs: dict):
    if attrs.get("DB") == "HGNC":
        _append_unique("hgnc_ids")(entity, attrs.get("ID", ""))


def _typed(routes: dict[str, Callable[[Any, str], None]]):
    """
    Routes element text by the element's Type attribute. Types without a route
    are passed over silently.
    """

    def route(entity, text: str, attrs: dict):
        handler = routes.get(attrs.get("Type"))
        if handler is not None:
            handler(entity, text)

    return route


def _set_text(field: str) -> Callable[[Any, str], None]:
    def handler(entity, text: str):
        setattr(entity, field, text)

    return handler


# (type of enclosing entity, tag path below it) -> route(entity, text, attrs)
_TEXT_ROUTES: dict[tuple[type, str], Callable[[Any, str, dict], None]] = {
    (ClinVarSet, "RecordStatus"): _set("record_status"),
    (ClinVarSet, "Title"): _set("title"),
    (ClinVarAssertion, "ClinVarSubmissionID"): _submission_id,
    (ClinicalSignificance, "ReviewStatus"): _set("review_status"),
    (ClinicalSignificance, "Description"): _set("description"),
    (ClinicalSignificance, "Comment"): _append("comments"),
    (ObservedIn, "Sample/Origin"): _set("origin"),
    (ObservedIn, "Sample/Species"): _set("species"),
    (ObservedIn, "Sample/AffectedStatus"): _set("affected_status"),
    (ObservedIn, "Comment"): _append("comments"),
    (ObservedDataDescription, "Citation/ID"): _pubmed_id,
    (ObservedDataDescription, "XRef"): _omim_id,
    (Measure, "MeasureRelationship/Symbol/ElementValue"): _typed(
        {"Preferred": _append_unique("symbols")}
    ),
    (Measure, "MeasureRelationship/XRef"): _hgnc_id,
    (Measure, "Comment"): _append("comments"),
    (Trait, "Name/ElementValue"): _typed(
        {
            "Preferred": _set_text("preferred_name"),
            "Alternate": lambda trait, text: trait.alternate_names.append(text),
        }
    ),
}
for _assertion_type in _ASSERTION_TYPES:
    _TEXT_ROUTES.update(
        {
            (_assertion_type, "RecordStatus"): _set("record_status"),
            (_assertion_type, "ClinVarAccession"): _accession,
        }
    )

# Elements whose text is routed by their Type attribute, where an unknown
# Type is reported. The text is attached when the element closes, once both
# the Type and the text are known.
_TYPED_TEXT_ROUTES: dict[tuple[type, str], dict[str, Callable[[Any, str], None]]] = {
    (ObservedDataDescription, "Attribute"): {
        "Description": _set_text("description"),
    },
}


def _synthesize_genotype_set(measure_set: MeasureSet) -> GenotypeSet:
    return GenotypeSet(
        set_type=measure_set.set_type,
        accession=measure_set.accession,
        measure_sets=[measure_set],
    )


def _add_sequence_location(measure: Measure, location: SequenceLocation):
    if location.assembly in measure.sequence_locations:
        _logger.warning(
            f"Measure has more than one {location.assembly!r} sequence location,"
            " keeping the last one"
        )
    measure.sequence_locations[location.assembly] = location


def _set_observed_data(observed_in: ObservedIn, data: ObservedDataDescription):
    # Only ObservedData carrying a description is kept
    if data.description is not None:
        observed_in.observed_data_description = data


# (parent entity type, child entity type) -> merge(parent, child)
_MERGES: dict[tuple[type, type], Callable[[Any, Any], None]] = {
    (ClinVarSet, ReferenceClinVarAssertion): lambda p, c: setattr(
        p, "ref_cv_assertion", c
    ),
    (ClinVarSet, ClinVarAssertion): lambda p, c: p.cv_assertions.append(c),
    (GenotypeSet, MeasureSet): lambda p, c: p.measure_sets.append(c),
    (MeasureSet, Measure): lambda p, c: p.measures.append(c),
    (Measure, SequenceLocation): _add_sequence_location,
    (ObservedIn, ObservedDataDescription): _set_observed_data,
    (TraitSet, Trait): lambda p, c: p.traits.append(c),
}
for _assertion_type in _ASSERTION_TYPES:
    _MERGES.update(
        {
            (_assertion_type, ObservedIn): lambda p, c: setattr(p, "observed_in", c),
            (_assertion_type, GenotypeSet): lambda p, c: p.genotype_sets.append(c),
            (_assertion_type, MeasureSet): lambda p, c: p.genotype_sets.append(
                _synthesize_genotype_set(c)
            ),
            (_assertion_type, TraitSet): lambda p, c: p.trait_sets.append(c),
            (_assertion_type, ClinicalSignificance): lambda p, c: p.clin_sigs.append(
                c
            ),
        }
    )


@dataclasses.dataclass
class Frame:
    """
    An open element.

    `entity` is set when the element opened a record entity. `owner` is the
    frame of the nearest enclosing entity and `path` the tag path from it.
    """

    tag: str
    path: str
    owner: Frame | None = None
    entity: Any = None
    attrs: dict[str, str] = dataclasses.field(default_factory=dict)
    text: list[str] | None = None


class RecordBuilder:
    """
    Consumes XML events and returns each ClinVarSet once its closing tag is seen.
    """

    def __init__(self):
        self._stack: list[Frame] = []
        self._release_set: ReleaseSet | None = None
        self._in_release_set = False
        self._unknown_types: set[tuple[str, str]] = set()

    @property
    def release_set(self) -> ReleaseSet | None:
        return self._release_set

    @property
    def depth(self) -> int:
        return len(self._stack)

    def build(self, events: Iterable[XmlEvent]) -> Iterator[ClinVarSet]:
        """
        Generator of the ClinVarSet records for `events`. The events must
        describe a complete document; running out of events counts as EOF.
        """
        for event in events:
            record = self.feed(event)
            if record is not None:
                yield record
            if event.type == XmlEventType.EOF:
                return
        self.feed(XmlEvent(XmlEventType.EOF))

    def feed(self, event: XmlEvent) -> ClinVarSet | None:
        match event.type:
            case XmlEventType.START:
                self._start(event)
            case XmlEventType.TEXT:
                if self._stack and self._stack[-1].text is not None:
                    self._stack[-1].text.append(event.text or "")
            case XmlEventType.END:
                return self._end(event)
            case XmlEventType.EOF:
                self._eof(event)
            case _:
                raise ValueError(f"Unexpected event: {event}")
        return None

    def _start(self, event: XmlEvent):
        tag = event.tag
        if not self._stack and not self._in_release_set and tag == RELEASE_SET_TAG:
            self._in_release_set = True
            self._release_set = ReleaseSet(
                release_date=sanitize_date(event.attrs.get("Dated"))
            )
            _logger.info(f"Parsing release date: {self._release_set.release_date}")
            return

        parent = self._stack[-1] if self._stack else None
        if parent is None:
            owner, path = None, tag
        elif parent.entity is not None:
            owner, path = parent, tag
        else:
            owner, path = parent.owner, f"{parent.path}/{tag}"
        key = (type(owner.entity) if owner is not None else None, path)

        entity_type = _ENTITY_FRAMES.get(key)
        if entity_type is not None:
            entity = entity_type()
            self._apply_attributes(entity, event)
            self._stack.append(Frame(tag, path, owner, entity))
            return

        routed = key in _TEXT_ROUTES or key in _TYPED_TEXT_ROUTES
        self._stack.append(
            Frame(
                tag,
                path,
                owner,
                attrs=event.attrs if routed else {},
                text=[] if routed else None,
            )
        )

    def _apply_attributes(self, entity, event: XmlEvent):
        fields = _ENTITY_ATTRIBUTES.get(type(entity), {})
        for name, value in event.attrs.items():
            if name not in fields:
                continue
            field, convert = fields[name]
            try:
                setattr(entity, field, convert(value))
            except ValueError as e:
                raise XmlStructureError(
                    f"Invalid value {value!r} for attribute {name} of <{event.tag}>: {e}",
                    offset=event.offset,
                ) from e

    def _end(self, event: XmlEvent) -> ClinVarSet | None:
        if not self._stack:
            if self._in_release_set and event.tag == RELEASE_SET_TAG:
                self._in_release_set = False
                return None
            raise XmlStructureError(
                f"Unexpected closing tag </{event.tag}>", offset=event.offset
            )

        frame = self._stack.pop()
        if frame.tag != event.tag:
            raise XmlStructureError(
                f"Closing tag </{event.tag}> does not match open tag <{frame.tag}>",
                offset=event.offset,
            )

        if frame.entity is None:
            if frame.text is not None:
                self._route_text(frame)
            return None

        if frame.owner is None:
            record = frame.entity
            _logger.debug(f"Finished ClinVarSet {record.id_no}")
            return record

        _MERGES[(type(frame.owner.entity), type(frame.entity))](
            frame.owner.entity, frame.entity
        )
        return None

    def _route_text(self, frame: Frame):
        entity = frame.owner.entity
        key = (type(entity), frame.path)
        text = "".join(frame.text).strip()
        route = _TEXT_ROUTES.get(key)
        if route is not None:
            try:
                route(entity, text, frame.attrs)
            except ValueError as e:
                raise XmlStructureError(
                    f"Invalid content in <{frame.path}> of {type(entity).__name__}: {e}"
                ) from e
            return

        typed_routes = _TYPED_TEXT_ROUTES[key]
        type_value = frame.attrs.get("Type")
        handler = typed_routes.get(type_value)
        if handler is not None:
            handler(entity, text)
        elif (frame.path, type_value) not in self._unknown_types:
            self._unknown_types.add((frame.path, type_value))
            _logger.warning(
                f"Ignoring <{frame.path}> of unknown Type {type_value!r}"
                f" in {type(entity).__name__}"
            )

    def _eof(self, event: XmlEvent):
        if self._stack or self._in_release_set:
            open_tags = [RELEASE_SET_TAG] if self._in_release_set else []
            open_tags += [frame.tag for frame in self._stack]
            raise TruncatedInputError(
                f"Input ended inside {'/'.join(open_tags)}", offset=event.offset
            )
