"""Exceptions raised by the ClinVar XML to TSV pipeline."""


class ClinVarTsvError(Exception):
    """Base exception for clinvar_tsv."""


class ReadAheadError(ClinVarTsvError):
    """Raised when the background reader fails to read or decompress input."""


class XmlStructureError(ClinVarTsvError):
    """
    Raised when the XML event stream is malformed.

    `offset` is the approximate byte offset into the (decompressed) input
    at which the problem was detected, or None when unknown.
    """

    def __init__(self, message: str, offset: int | None = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (near byte offset {offset})"
        super().__init__(message)


class TruncatedInputError(XmlStructureError):
    """Raised when the input ends while records are still open."""


class UnknownVocabularyError(ClinVarTsvError, ValueError):
    """Raised when a controlled-vocabulary label has no known mapping."""
