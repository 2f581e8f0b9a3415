"""Error taxonomy for the batch pipeline.

``ItemError`` subclasses are per-row failures: the batch runner turns them into
a failed result and moves on. ``CacheIOError`` signals a broken environment and
aborts the batch. ``WriteBackFailure`` never leaves a row source.
"""


class ReelBatchError(Exception):
    """Base class for all pipeline errors."""


class ItemError(ReelBatchError):
    """A failure scoped to a single work item."""


class OperationTimeout(ItemError):
    """An operation exceeded its wall-clock limit."""


# ----------------------------------------------------------------------------
# Fetch
# ----------------------------------------------------------------------------


class FetchError(ItemError):
    """A remote asset could not be downloaded."""

    def __init__(self, message: str, reference: str = ""):
        super().__init__(message)
        self.reference = reference


class UnresolvableReference(FetchError):
    """No file id could be extracted from the remote reference."""


class NotFound(FetchError):
    """The remote file does not exist (HTTP 404)."""


class AccessDenied(FetchError):
    """The remote file is not shared for link access (HTTP 403 or HTML page)."""


class FetchTimeout(FetchError, OperationTimeout):
    """The download did not complete in time."""


class DownloadFailed(FetchError):
    """One or more assets of a row failed to download."""

    def __init__(self, message: str, failures: dict[str, str]):
        super().__init__(message)
        self.failures = failures


# ----------------------------------------------------------------------------
# Composition / render / publish
# ----------------------------------------------------------------------------


class CompositionError(ItemError):
    """The row's inputs cannot be turned into a composition plan."""


class UnsupportedCombination(CompositionError):
    """The set of present inputs matches no composition strategy."""


class InvalidCompositionParameter(CompositionError):
    """A timing or visual parameter is malformed."""


class RenderError(ItemError):
    """The encoder failed or produced an unusable file."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class RenderTimeout(RenderError, OperationTimeout):
    """The encoder was killed after exceeding the render timeout."""


class PublishError(ItemError):
    """The rendered artifact could not be published."""


# ----------------------------------------------------------------------------
# Non-item errors
# ----------------------------------------------------------------------------


class WriteBackFailure(ReelBatchError):
    """A spreadsheet write-back could not be performed."""


class CacheIOError(ReelBatchError):
    """Disk I/O on the asset cache failed."""


class RowSourceError(ReelBatchError):
    """Work rows could not be read; no batch can start."""
