"""Exception taxonomy shared by the resolver, discussion engine and routes.

Validation errors are raised before any work starts and always reach the
caller. RemoteResolutionError never leaves the resolver. StorageError wraps
sqlite failures and is propagated.
"""


class NungDictError(Exception):
    """Base class for all nungdict errors."""


class InvalidInputError(NungDictError, ValueError):
    pass


class EmptyContentError(InvalidInputError):
    pass


class ParentNotFoundError(NungDictError, LookupError):
    pass


class NodeNotFoundError(NungDictError, LookupError):
    pass


class ReportNotFoundError(NungDictError, LookupError):
    pass


class ContributionNotFoundError(NungDictError, LookupError):
    pass


class RemoteResolutionError(NungDictError):
    """The completion API failed, timed out, or returned unusable content."""


class StorageError(NungDictError):
    pass


class DictionaryConfigError(NungDictError):
    """Dictionary data is malformed. Raised while loading, never per request."""
