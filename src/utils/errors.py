# error taxonomy shared by every store


class CommerceError(Exception):
    """Base class for errors raised by the commerce state layer."""


class ValidationError(CommerceError):
    """Malformed input, detected before any state is mutated."""


class DuplicateUserError(CommerceError):
    pass


class NotFoundError(CommerceError):
    pass


class AuthenticationError(CommerceError):
    pass


class StorageError(CommerceError):
    """
    Read or write failure in the key-value store.
    Recovered inside the persistence adapter; callers of the stores never see it.
    """


class CatalogUnavailableError(CommerceError):
    """
    The remote catalog could not be reached or rejected the call.
    """
