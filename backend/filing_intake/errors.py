"""Error taxonomy shared by the extraction and normalization pipeline."""


class IntakeError(Exception):
    """Base class for pipeline errors."""


class InputError(IntakeError):
    """Unsupported media or document type, or a document with no readable text."""


class ExtractionError(IntakeError):
    """OCR engine failure or an LLM response that is not the expected JSON shape."""


class PersistenceError(IntakeError):
    """A canonical write was rejected by the storage layer."""


class ReaggregationError(IntakeError):
    """Rebuilding canonical state from the surviving documents failed."""
