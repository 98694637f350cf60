"""
Data model for records of the ClinVar full release XML (ReleaseSet/ClinVarSet).

Every class can be constructed without arguments, since the record builder
creates an empty instance when the opening tag is seen and fills in fields
as nested elements are closed.
"""

from __future__ import annotations

import dataclasses
import datetime
from enum import IntEnum, StrEnum


class Pathogenicity(IntEnum):
    """Clinical significance call. Ordered from benign to pathogenic."""

    BENIGN = 0
    LIKELY_BENIGN = 1
    UNCERTAIN = 2
    LIKELY_PATHOGENIC = 3
    PATHOGENIC = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", " ")


class ReviewStatus(StrEnum):
    CONFLICTING_INTERPRETATIONS = "conflicting interpretations"
    CRITERIA_PROVIDED = "criteria provided"
    MULTIPLE_SUBMITTERS = "multiple submitters"
    NO_ASSERTION_CRITERIA_PROVIDED = "no assertion criteria provided"
    NO_ASSERTION_PROVIDED = "no assertion provided"
    NO_CONFLICTS = "no conflicts"
    PRACTICE_GUIDELINE = "practice guideline"
    EXPERT_PANEL = "reviewed by expert panel"
    SINGLE_SUBMITTER = "single submitter"


@dataclasses.dataclass
class ReleaseSet:
    release_date: datetime.date | None = None


@dataclasses.dataclass
class ClinicalSignificance:
    date_evaluated: datetime.date | None = None
    # Full phrase, e.g. "criteria provided, single submitter"
    review_status: str = ""
    description: str | None = None
    comments: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ObservedDataDescription:
    """Relevant parts of ObservedData/Attribute[@Type="Description"]."""

    description: str | None = None
    pubmed_ids: list[int] = dataclasses.field(default_factory=list)
    omim_ids: list[int] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ObservedIn:
    origin: str = ""
    species: str = ""
    affected_status: str = ""
    observed_data_description: ObservedDataDescription | None = None
    comments: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class SequenceLocation:
    assembly: str = ""
    chrom: str = ""
    chrom_acc: str = ""
    start: int | None = None
    stop: int | None = None
    outer_start: int | None = None
    outer_stop: int | None = None
    inner_start: int | None = None
    inner_stop: int | None = None
    reference: str | None = None
    alternative: str | None = None
    position_vcf: int | None = None


@dataclasses.dataclass
class Measure:
    measure_type: str = ""
    symbols: list[str] = dataclasses.field(default_factory=list)
    hgnc_ids: list[str] = dataclasses.field(default_factory=list)
    # Keyed by assembly label, e.g. "GRCh37"
    sequence_locations: dict[str, SequenceLocation] = dataclasses.field(
        default_factory=dict
    )
    comments: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class Trait:
    preferred_name: str | None = None
    alternate_names: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class TraitSet:
    set_type: str = ""
    id_no: int | None = None
    traits: list[Trait] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class MeasureSet:
    set_type: str = ""
    accession: str = ""
    measures: list[Measure] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class GenotypeSet:
    """
    Wraps one or more measure sets.

    A single non-compound variant is given a synthesized GenotypeSet
    holding just its MeasureSet, so every MeasureSet has one.
    """

    set_type: str = ""
    accession: str = ""
    measure_sets: list[MeasureSet] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class Assertion:
    """Fields shared by reference (RCV) and submitted (SCV) assertions."""

    id_no: int | None = None
    record_status: str = ""
    clinvar_accession: str = ""
    version_no: int | None = None
    observed_in: ObservedIn | None = None
    genotype_sets: list[GenotypeSet] = dataclasses.field(default_factory=list)
    trait_sets: list[TraitSet] = dataclasses.field(default_factory=list)
    clin_sigs: list[ClinicalSignificance] = dataclasses.field(default_factory=list)

    # Derived from the clinical significance by clinvar_tsv.normalize
    gold_stars: int = 0
    review_status: ReviewStatus = ReviewStatus.NO_ASSERTION_CRITERIA_PROVIDED
    pathogenicity: Pathogenicity = Pathogenicity.UNCERTAIN


@dataclasses.dataclass
class ReferenceClinVarAssertion(Assertion):
    date_created: datetime.date | None = None
    date_updated: datetime.date | None = None


@dataclasses.dataclass
class ClinVarAssertion(Assertion):
    submitter_date: datetime.date | None = None


@dataclasses.dataclass
class ClinVarSet:
    id_no: int | None = None
    record_status: str = ""
    title: str = ""
    ref_cv_assertion: ReferenceClinVarAssertion | None = None
    cv_assertions: list[ClinVarAssertion] = dataclasses.field(default_factory=list)

    def assertions(self) -> list[Assertion]:
        """The reference assertion, if any, followed by the submitted ones."""
        result: list[Assertion] = []
        if self.ref_cv_assertion is not None:
            result.append(self.ref_cv_assertion)
        result.extend(self.cv_assertions)
        return result
