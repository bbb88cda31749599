# codescope/core/errors.py
"""Exceptions raised inside codescope."""


class CodescopeError(Exception):
    """Base class for codescope errors."""


class NodeReadFailure(CodescopeError):
    """A single file's content could not be read. Absorbed by the ingestor."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not read '{path}': {cause}")


class ListingPageFailure(CodescopeError):
    """A page of a directory listing could not be retrieved. Ends that listing early."""

    def __init__(self, path: str, pages_read: int, cause: BaseException | None = None):
        self.path = path
        self.pages_read = pages_read
        self.cause = cause
        super().__init__(f"Listing of '{path}' failed after {pages_read} page(s): {cause}")


class AnalysisRequestFailure(CodescopeError):
    """No context was available, or the analysis service call failed."""
