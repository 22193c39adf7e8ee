"""Error types raised by the curation pipeline."""


class CurationError(Exception):
    """Base class for curation pipeline errors."""
    pass


class DependencyUnavailable(CurationError):
    """Raised when an external API call fails or times out."""
    pass


class SearchUnavailable(DependencyUnavailable):
    """Raised when a search.list call fails or times out."""
    pass


class MetadataUnavailable(DependencyUnavailable):
    """Raised when a videos.list batch fails or times out."""
    pass


class InvalidCriteria(CurationError, ValueError):
    """Raised for malformed filter criteria, pagination bounds or keywords."""
    pass


class Cancelled(CurationError):
    """Raised by callers that want a cancelled run surfaced as an exception."""
    pass
