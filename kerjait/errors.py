"""Exception types raised by kerjait."""


class KerjaItError(Exception):
    """Base error for kerjait."""


class IngestionError(KerjaItError):
    """Raised when a batch insert is rejected by the store."""


class PipelineOrderError(KerjaItError):
    """Raised when pipeline stages are assembled out of order."""


class FeedError(KerjaItError):
    """Raised when a batch of raw postings cannot be loaded."""
