import pytest

from clinvar_tsv.model.records import (
    ClinVarAssertion,
    ClinVarSet,
    GenotypeSet,
    Measure,
    MeasureSet,
    ReferenceClinVarAssertion,
    SequenceLocation,
)
from clinvar_tsv.router import (
    BUCKETS,
    Assembly,
    OutputRouter,
    VariantShape,
    assembly_bucket,
    iter_rows,
    shape_bucket,
)


class RecordingSink:
    def __init__(self):
        self.rows = []
        self.closed = False

    def write(self, row):
        self.rows.append(row)

    def close(self):
        self.closed = True


def _clinvar_set(measure_type: str, *assemblies: str, cv_assertions=()) -> ClinVarSet:
    measure = Measure(
        measure_type=measure_type,
        sequence_locations={
            assembly: SequenceLocation(assembly=assembly, chrom="1", start=10, stop=10)
            for assembly in assemblies
        },
    )
    return ClinVarSet(
        id_no=1,
        ref_cv_assertion=ReferenceClinVarAssertion(
            clinvar_accession="RCV000000001",
            genotype_sets=[
                GenotypeSet(measure_sets=[MeasureSet(measures=[measure])])
            ],
        ),
        cv_assertions=list(cv_assertions),
    )


@pytest.fixture
def sinks():
    return {bucket: RecordingSink() for bucket in BUCKETS}


def test_buckets():
    assert set(BUCKETS) == {
        (Assembly.GRCH37, VariantShape.SMALL),
        (Assembly.GRCH37, VariantShape.STRUCTURAL),
        (Assembly.GRCH38, VariantShape.SMALL),
        (Assembly.GRCH38, VariantShape.STRUCTURAL),
    }


@pytest.mark.parametrize(
    "label,expected",
    [
        ("GRCh37", Assembly.GRCH37),
        ("GRCh37.p13", Assembly.GRCH37),
        ("grch37", Assembly.GRCH37),
        ("hg19", Assembly.GRCH37),
        ("GRCh38", Assembly.GRCH38),
        ("GRCh38.p14", Assembly.GRCH38),
        ("hg38", Assembly.GRCH38),
        ("NCBI36", None),
        ("hg18", None),
        ("", None),
    ],
)
def test_assembly_bucket(label, expected):
    assert assembly_bucket(label) == expected


@pytest.mark.parametrize(
    "measure_type,expected",
    [
        ("single nucleotide variant", VariantShape.SMALL),
        ("Deletion", VariantShape.SMALL),
        ("Indel", VariantShape.SMALL),
        ("Microsatellite", VariantShape.SMALL),
        ("", VariantShape.SMALL),
        ("copy number loss", VariantShape.STRUCTURAL),
        ("copy number gain", VariantShape.STRUCTURAL),
        ("Translocation", VariantShape.STRUCTURAL),
        ("Inversion", VariantShape.STRUCTURAL),
        ("Tandem duplication", VariantShape.STRUCTURAL),
        ("Complex", VariantShape.STRUCTURAL),
    ],
)
def test_shape_bucket(measure_type, expected):
    assert shape_bucket(measure_type) == expected


def test_route_single_small_grch37(sinks):
    router = OutputRouter(sinks)
    clinvar_set = _clinvar_set("single nucleotide variant", "GRCh37")
    assert router.route(clinvar_set) == 1

    small_37 = sinks[(Assembly.GRCH37, VariantShape.SMALL)]
    assert len(small_37.rows) == 1
    row = small_37.rows[0]
    assert row.clinvar_set is clinvar_set
    assert row.assertion is clinvar_set.ref_cv_assertion
    assert row.location.assembly == "GRCh37"
    for bucket, sink in sinks.items():
        if bucket != (Assembly.GRCH37, VariantShape.SMALL):
            assert sink.rows == []
    assert router.row_counts[(Assembly.GRCH37, VariantShape.SMALL)] == 1
    assert sum(router.row_counts.values()) == 1


def test_route_structural_both_assemblies(sinks):
    router = OutputRouter(sinks)
    router.route(_clinvar_set("copy number gain", "GRCh38", "GRCh37", "NCBI36"))
    assert len(sinks[(Assembly.GRCH37, VariantShape.STRUCTURAL)].rows) == 1
    assert len(sinks[(Assembly.GRCH38, VariantShape.STRUCTURAL)].rows) == 1
    assert sinks[(Assembly.GRCH37, VariantShape.SMALL)].rows == []
    assert sinks[(Assembly.GRCH38, VariantShape.SMALL)].rows == []


def test_route_without_locations(sinks):
    router = OutputRouter(sinks)
    assert router.route(_clinvar_set("Deletion")) == 0
    assert router.route(ClinVarSet(id_no=2)) == 0
    assert all(sink.rows == [] for sink in sinks.values())


def test_iter_rows_reference_assertion_first():
    scv = ClinVarAssertion(
        clinvar_accession="SCV000000001",
        genotype_sets=[
            GenotypeSet(
                measure_sets=[
                    MeasureSet(
                        measures=[
                            Measure(
                                measure_type="Deletion",
                                sequence_locations={
                                    "GRCh38": SequenceLocation(assembly="GRCh38")
                                },
                            )
                        ]
                    )
                ]
            )
        ],
    )
    rows = list(iter_rows(_clinvar_set("Deletion", "GRCh37", cv_assertions=[scv])))
    assert [row.assertion.clinvar_accession for row in rows] == [
        "RCV000000001",
        "SCV000000001",
    ]
    assert [row.bucket for row in rows] == [
        (Assembly.GRCH37, VariantShape.SMALL),
        (Assembly.GRCH38, VariantShape.SMALL),
    ]


def test_router_requires_all_sinks(sinks):
    del sinks[(Assembly.GRCH38, VariantShape.STRUCTURAL)]
    with pytest.raises(ValueError):
        OutputRouter(sinks)
