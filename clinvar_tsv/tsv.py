"""
Tab-separated output files, one per (assembly, variant shape) bucket.
"""

import datetime
import json
import logging
from enum import Enum
from typing import Any, Callable

from clinvar_tsv.fs import BinaryOpenMode, fs_open
from clinvar_tsv.model.common import dictify
from clinvar_tsv.model.records import Pathogenicity
from clinvar_tsv.router import BUCKETS, Bucket, OutputRow, VariantShape

_logger = logging.getLogger("clinvar_tsv")

LIST_SEPARATOR = ";"

_SHARED_COLUMNS = (
    "variation_type",
    "symbols",
    "hgnc_ids",
    "clinvar_set_id",
    "accession",
    "variation_accession",
    "genotype_type",
    "record_status",
    "review_status",
    "gold_stars",
    "pathogenicity",
    "traits",
)

SMALL_VARIANT_COLUMNS = (
    "release",
    "chromosome",
    "start",
    "end",
    "reference",
    "alternative",
) + _SHARED_COLUMNS

STRUCTURAL_VARIANT_COLUMNS = (
    "release",
    "chromosome",
    "start",
    "end",
    "outer_start",
    "inner_start",
    "inner_end",
    "outer_end",
) + _SHARED_COLUMNS

COLUMNS: dict[VariantShape, tuple[str, ...]] = {
    VariantShape.SMALL: SMALL_VARIANT_COLUMNS,
    VariantShape.STRUCTURAL: STRUCTURAL_VARIANT_COLUMNS,
}


def _start(row: OutputRow):
    location = row.location
    if row.shape == VariantShape.SMALL and location.position_vcf is not None:
        return location.position_vcf
    return location.start


def _end(row: OutputRow):
    location = row.location
    if (
        row.shape == VariantShape.SMALL
        and location.position_vcf is not None
        and location.reference
    ):
        return location.position_vcf + len(location.reference) - 1
    return location.stop


def _traits(row: OutputRow):
    trait_sets = dictify(row.assertion.trait_sets)
    return json.dumps(trait_sets) if trait_sets else None


# Column name -> value of the column for a row
_COLUMN_VALUES: dict[str, Callable[[OutputRow], Any]] = {
    "chromosome": lambda row: row.location.chrom,
    "start": _start,
    "end": _end,
    "reference": lambda row: row.location.reference,
    "alternative": lambda row: row.location.alternative,
    "outer_start": lambda row: row.location.outer_start,
    "inner_start": lambda row: row.location.inner_start,
    "inner_end": lambda row: row.location.inner_stop,
    "outer_end": lambda row: row.location.outer_stop,
    "variation_type": lambda row: row.measure.measure_type,
    "symbols": lambda row: row.measure.symbols,
    "hgnc_ids": lambda row: row.measure.hgnc_ids,
    "clinvar_set_id": lambda row: row.clinvar_set.id_no,
    "accession": lambda row: row.assertion.clinvar_accession,
    "variation_accession": lambda row: row.measure_set.accession,
    "genotype_type": lambda row: row.genotype_set.set_type,
    "record_status": lambda row: row.assertion.record_status,
    "review_status": lambda row: row.assertion.review_status,
    "gold_stars": lambda row: row.assertion.gold_stars,
    "pathogenicity": lambda row: row.assertion.pathogenicity,
    "traits": _traits,
}


def format_value(value: Any) -> str:
    """
    Renders a value for a TSV cell. None is the empty string, lists are joined
    with LIST_SEPARATOR. Tabs and newlines are replaced by spaces.

    Example:
        >>> format_value(["BRCA1", "BRCA2"])
        'BRCA1;BRCA2'
        >>> format_value(None)
        ''
    """
    if value is None:
        return ""
    if isinstance(value, list):
        return LIST_SEPARATOR.join(format_value(v) for v in value)
    if isinstance(value, Pathogenicity):
        value = value.label
    elif isinstance(value, Enum):
        value = value.value
    elif isinstance(value, datetime.date):
        value = value.isoformat()
    return str(value).replace("\t", " ").replace("\r", " ").replace("\n", " ")


def output_file_path(output_directory: str, bucket: Bucket, gzip_output=False) -> str:
    assembly, shape = bucket
    suffix = ".tsv.gz" if gzip_output else ".tsv"
    return f"{output_directory}/clinvar_{shape}_{assembly}{suffix}"


class TsvSink:
    """Writes rows of one bucket to a TSV file with a header line."""

    def __init__(
        self,
        path: str,
        columns: tuple[str, ...],
        release_date: datetime.date | None = None,
    ):
        self.path = path
        self.columns = columns
        self.release_date = release_date
        self.rows_written = 0
        _logger.info("Opening file for writing: %s", path)
        self._f = fs_open(path, make_parents=True, mode=BinaryOpenMode.WRITE)
        self._write_line(columns)

    def _write_line(self, values):
        self._f.write(("\t".join(values) + "\n").encode("utf-8"))

    def write(self, row: OutputRow):
        values = []
        for column in self.columns:
            if column == "release":
                values.append(format_value(self.release_date))
            else:
                values.append(format_value(_COLUMN_VALUES[column](row)))
        self._write_line(values)
        self.rows_written += 1

    def close(self):
        self._f.close()


def open_sinks(
    output_directory: str,
    release_date: datetime.date | None = None,
    gzip_output=False,
) -> dict[Bucket, TsvSink]:
    """Opens the TSV file for each bucket."""
    sinks = {}
    try:
        for bucket in BUCKETS:
            sinks[bucket] = TsvSink(
                output_file_path(output_directory, bucket, gzip_output),
                COLUMNS[bucket[1]],
                release_date=release_date,
            )
    except Exception:
        for sink in sinks.values():
            sink.close()
        raise
    return sinks
