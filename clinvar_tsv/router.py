"""
Classification of finished ClinVarSet records into (assembly, variant shape)
buckets, one output sink per bucket.
"""

import dataclasses
import logging
from enum import StrEnum
from types import MappingProxyType
from typing import Iterator, Mapping, Protocol

from clinvar_tsv.model.records import (
    Assertion,
    ClinVarSet,
    GenotypeSet,
    Measure,
    MeasureSet,
    SequenceLocation,
)

_logger = logging.getLogger("clinvar_tsv")


class Assembly(StrEnum):
    GRCH37 = "GRCh37"
    GRCH38 = "GRCh38"


class VariantShape(StrEnum):
    SMALL = "small"
    STRUCTURAL = "sv"


Bucket = tuple[Assembly, VariantShape]

BUCKETS: tuple[Bucket, ...] = tuple(
    (assembly, shape) for assembly in Assembly for shape in VariantShape
)

# Lower-cased assembly name without patch suffix -> bucket
_ASSEMBLY_ALIASES: Mapping[str, Assembly] = MappingProxyType(
    {
        "grch37": Assembly.GRCH37,
        "hg19": Assembly.GRCH37,
        "b37": Assembly.GRCH37,
        "grch38": Assembly.GRCH38,
        "hg38": Assembly.GRCH38,
        "b38": Assembly.GRCH38,
    }
)

STRUCTURAL_MEASURE_TYPES = frozenset(
    {
        "copy number gain",
        "copy number loss",
        "complex",
        "fusion",
        "inversion",
        "structural variant",
        "tandem duplication",
        "translocation",
    }
)


def assembly_bucket(label: str) -> Assembly | None:
    """
    Normalizes an assembly label. Returns None for other assemblies.

    Example:
        >>> assembly_bucket("GRCh37.p13")
        <Assembly.GRCH37: 'GRCh37'>
        >>> assembly_bucket("NCBI36") is None
        True
    """
    return _ASSEMBLY_ALIASES.get(label.strip().lower().split(".")[0])


def shape_bucket(measure_type: str) -> VariantShape:
    if measure_type.strip().lower() in STRUCTURAL_MEASURE_TYPES:
        return VariantShape.STRUCTURAL
    return VariantShape.SMALL


@dataclasses.dataclass
class OutputRow:
    """One sequence location of one measure, with the records it belongs to."""

    assembly: Assembly
    shape: VariantShape
    clinvar_set: ClinVarSet
    assertion: Assertion
    genotype_set: GenotypeSet
    measure_set: MeasureSet
    measure: Measure
    location: SequenceLocation

    @property
    def bucket(self) -> Bucket:
        return (self.assembly, self.shape)


class Sink(Protocol):
    def write(self, row: OutputRow) -> None: ...

    def close(self) -> None: ...


def iter_rows(clinvar_set: ClinVarSet) -> Iterator[OutputRow]:
    """
    Yields a row for each sequence location in an assembly we write out, for
    every measure of every assertion, the reference assertion first.
    """
    for assertion in clinvar_set.assertions():
        for genotype_set in assertion.genotype_sets:
            for measure_set in genotype_set.measure_sets:
                for measure in measure_set.measures:
                    shape = shape_bucket(measure.measure_type)
                    for label, location in measure.sequence_locations.items():
                        assembly = assembly_bucket(label)
                        if assembly is None:
                            _logger.debug(
                                f"Skipping {label} location of {assertion.clinvar_accession}"
                            )
                            continue
                        yield OutputRow(
                            assembly=assembly,
                            shape=shape,
                            clinvar_set=clinvar_set,
                            assertion=assertion,
                            genotype_set=genotype_set,
                            measure_set=measure_set,
                            measure=measure,
                            location=location,
                        )


class OutputRouter:
    """Writes the rows of each record to the sink of their bucket."""

    def __init__(self, sinks: Mapping[Bucket, Sink]):
        missing = [bucket for bucket in BUCKETS if bucket not in sinks]
        if missing:
            raise ValueError(f"No sink given for buckets: {missing}")
        self.sinks = dict(sinks)
        self.row_counts: dict[Bucket, int] = {bucket: 0 for bucket in BUCKETS}

    def route(self, clinvar_set: ClinVarSet) -> int:
        """Returns the number of rows written."""
        written = 0
        for row in iter_rows(clinvar_set):
            self.sinks[row.bucket].write(row)
            self.row_counts[row.bucket] += 1
            written += 1
        return written
