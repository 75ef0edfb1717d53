"""Error taxonomy shared by the filter compiler, federator, schema registrar, and API layer."""


class SearchServiceError(Exception):
    """Base class for all errors raised by the search service."""


class InvalidFilter(SearchServiceError, ValueError):
    """A client-supplied filter or search request is malformed."""


class SearchBackendError(SearchServiceError, RuntimeError):
    """The search engine was unreachable, rejected a request, or failed mid-operation."""


class SchemaError(SearchServiceError, RuntimeError):
    """A required index could not be verified or created at startup."""


__all__ = ["SearchServiceError", "InvalidFilter", "SearchBackendError", "SchemaError"]
