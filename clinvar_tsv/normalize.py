"""
Mapping of ClinVar's free-text clinical significance vocabulary onto fixed enums.

The lookup tables are read-only mappings built once at import time.
"""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, TypeVar

from clinvar_tsv.exceptions import UnknownVocabularyError
from clinvar_tsv.model.records import (
    Assertion,
    ClinVarSet,
    Pathogenicity,
    ReviewStatus,
)

_logger = logging.getLogger("clinvar_tsv")

_V = TypeVar("_V")

# Registration order matters: a phrase listed more than once keeps the value
# of its last entry. "protective" ends up UNCERTAIN, "association",
# "confers sensitivity" and "risk factor" end up LIKELY_PATHOGENIC.
_PATHOGENICITY_REGISTRATIONS: tuple[tuple[str, Pathogenicity], ...] = (
    ("benign", Pathogenicity.BENIGN),
    ("no known pathogenicity", Pathogenicity.BENIGN),
    ("non-pathogenic", Pathogenicity.BENIGN),
    ("poly", Pathogenicity.BENIGN),
    ("likely benign", Pathogenicity.LIKELY_BENIGN),
    ("probable-non-pathogenic", Pathogenicity.LIKELY_BENIGN),
    ("probably not pathogenic", Pathogenicity.LIKELY_BENIGN),
    ("protective", Pathogenicity.LIKELY_BENIGN),
    ("suspected benign", Pathogenicity.LIKELY_BENIGN),
    ("uncertain significance", Pathogenicity.UNCERTAIN),
    ("association", Pathogenicity.UNCERTAIN),
    ("association not found", Pathogenicity.UNCERTAIN),
    ("cancer", Pathogenicity.UNCERTAIN),
    ("confers sensitivity", Pathogenicity.UNCERTAIN),
    ("drug response", Pathogenicity.UNCERTAIN),
    ("drug-response", Pathogenicity.UNCERTAIN),
    ("histocompatibility", Pathogenicity.UNCERTAIN),
    ("not provided", Pathogenicity.UNCERTAIN),
    ("other", Pathogenicity.UNCERTAIN),
    ("protective", Pathogenicity.UNCERTAIN),
    ("risk factor", Pathogenicity.UNCERTAIN),
    ("uncertain", Pathogenicity.UNCERTAIN),
    ("unknown", Pathogenicity.UNCERTAIN),
    ("untested", Pathogenicity.UNCERTAIN),
    ("variant of unknown significance", Pathogenicity.UNCERTAIN),
    ("associated with leiomyomas", Pathogenicity.UNCERTAIN),
    ("likely pathogenic", Pathogenicity.LIKELY_PATHOGENIC),
    ("affects", Pathogenicity.LIKELY_PATHOGENIC),
    ("association", Pathogenicity.LIKELY_PATHOGENIC),
    ("confers sensitivity", Pathogenicity.LIKELY_PATHOGENIC),
    (
        "conflicting interpretations of pathogenicity",
        Pathogenicity.LIKELY_PATHOGENIC,
    ),
    ("probable-pathogenic", Pathogenicity.LIKELY_PATHOGENIC),
    ("probably pathogenic", Pathogenicity.LIKELY_PATHOGENIC),
    ("risk factor", Pathogenicity.LIKELY_PATHOGENIC),
    ("suspected pathogenic", Pathogenicity.LIKELY_PATHOGENIC),
    ("pathogenic", Pathogenicity.PATHOGENIC),
    ("moderate", Pathogenicity.PATHOGENIC),
    ("mut", Pathogenicity.PATHOGENIC),
    ("pathologic", Pathogenicity.PATHOGENIC),
)

_REVIEW_STATUS_REGISTRATIONS: tuple[tuple[str, ReviewStatus], ...] = (
    ("conflicting interpretations", ReviewStatus.CONFLICTING_INTERPRETATIONS),
    (
        "conflicting interpretations of pathogenicity",
        ReviewStatus.CONFLICTING_INTERPRETATIONS,
    ),
    ("criteria provided", ReviewStatus.CRITERIA_PROVIDED),
    ("multiple submitters", ReviewStatus.MULTIPLE_SUBMITTERS),
    ("no assertion criteria provided", ReviewStatus.NO_ASSERTION_CRITERIA_PROVIDED),
    ("no assertion provided", ReviewStatus.NO_ASSERTION_PROVIDED),
    ("no conflicts", ReviewStatus.NO_CONFLICTS),
    ("practice guideline", ReviewStatus.PRACTICE_GUIDELINE),
    ("reviewed by expert panel", ReviewStatus.EXPERT_PANEL),
    ("single submitter", ReviewStatus.SINGLE_SUBMITTER),
)

_GOLD_STAR_REGISTRATIONS: tuple[tuple[str, int], ...] = (
    ("no assertion provided", 0),
    ("no assertion criteria provided", 0),
    ("criteria provided, single submitter", 1),
    ("criteria provided, multiple submitters, no conflicts", 2),
    ("criteria provided, conflicting interpretations", 1),
    ("reviewed by expert panel", 3),
    ("practice guideline", 4),
)


def build_table(registrations: Iterable[tuple[str, _V]]) -> Mapping[str, _V]:
    """
    Folds (label, value) pairs into a read-only mapping, in order.
    A label registered more than once maps to the value of its last registration.

    Example:
        >>> table = build_table([("a", 1), ("b", 2), ("a", 3)])
        >>> table["a"], table["b"]
        (3, 2)
    """
    table: dict[str, _V] = {}
    for label, value in registrations:
        table[label] = value
    return MappingProxyType(table)


PATHOGENICITY_LABELS = build_table(_PATHOGENICITY_REGISTRATIONS)
REVIEW_STATUS_LABELS = build_table(_REVIEW_STATUS_REGISTRATIONS)
GOLD_STAR_MAP = build_table(_GOLD_STAR_REGISTRATIONS)


def _ambiguous_labels(registrations: Iterable[tuple[str, _V]]) -> frozenset[str]:
    values: dict[str, set] = {}
    for label, value in registrations:
        values.setdefault(label, set()).add(value)
    return frozenset(label for label, vs in values.items() if len(vs) > 1)


AMBIGUOUS_PATHOGENICITY_LABELS = _ambiguous_labels(_PATHOGENICITY_REGISTRATIONS)
_logger.debug(
    "Pathogenicity labels registered under more than one value "
    f"(last registration kept): {sorted(AMBIGUOUS_PATHOGENICITY_LABELS)}"
)


def pathogenicity_from_label(label: str) -> Pathogenicity:
    """
    Case-sensitive lookup. Unknown labels are logged and map to UNCERTAIN.
    """
    pathogenicity = PATHOGENICITY_LABELS.get(label)
    if pathogenicity is None:
        _logger.warning(f"Cannot decode pathogenicity from {label!r}")
        return Pathogenicity.UNCERTAIN
    return pathogenicity


def review_status_from_label(label: str) -> ReviewStatus:
    review_status = REVIEW_STATUS_LABELS.get(label)
    if review_status is None:
        raise UnknownVocabularyError(f"Unknown review status {label!r}")
    return review_status


def gold_stars_from_review_status(review_status: str) -> int:
    gold_stars = GOLD_STAR_MAP.get(review_status)
    if gold_stars is None:
        raise UnknownVocabularyError(f"Unknown review status {review_status!r}")
    return gold_stars


def review_status_from_phrase(phrase: str) -> ReviewStatus:
    """
    Maps a full review status phrase like
    "criteria provided, multiple submitters, no conflicts" to the status of its
    most specific (last) component. Every component must be a known label.

    Example:
        >>> review_status_from_phrase("criteria provided, single submitter")
        <ReviewStatus.SINGLE_SUBMITTER: 'single submitter'>
    """
    parts = [review_status_from_label(part.strip()) for part in phrase.split(",")]
    return parts[-1]


def annotate_assertion(assertion: Assertion):
    """
    Sets the derived gold_stars, review_status and pathogenicity of an assertion
    from its first ClinicalSignificance. Without one, the defaults are kept.
    """
    if not assertion.clin_sigs:
        return
    clin_sig = assertion.clin_sigs[0]
    assertion.gold_stars = gold_stars_from_review_status(clin_sig.review_status)
    assertion.review_status = review_status_from_phrase(clin_sig.review_status)
    if clin_sig.description is not None:
        # ClinVar capitalizes descriptions ("Likely pathogenic")
        assertion.pathogenicity = pathogenicity_from_label(
            clin_sig.description.lower()
        )


def annotate_clinvar_set(clinvar_set: ClinVarSet) -> ClinVarSet:
    for assertion in clinvar_set.assertions():
        try:
            annotate_assertion(assertion)
        except UnknownVocabularyError as e:
            raise UnknownVocabularyError(
                f"{e} in {assertion.clinvar_accession} "
                f"(ClinVarSet {clinvar_set.id_no})"
            ) from e
    return clinvar_set
