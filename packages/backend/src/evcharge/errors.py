"""Pipeline exceptions.

Learn: Only programming errors and startup policy violations surface as
exceptions. Runtime store/broker failures are logged and absorbed by the
component that hit them.
"""


class PipelineError(Exception):
    """Base class for real-time pipeline errors."""


class UnknownCollectionError(PipelineError):
    """Raised when a collection has no canonical event tag."""

    def __init__(self, collection: str):
        super().__init__(f"Collection {collection!r} is not tracked")
        self.collection = collection


class ChangeNormalizationError(PipelineError):
    """Raised when a change notification cannot become an envelope."""


class CaptureStartupError(PipelineError):
    """Raised when watchers are required at startup but some failed to open."""
