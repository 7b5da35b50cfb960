class StorageError(Exception):
    """Raised when the persistence layer fails. The message is never sent to clients."""


class DuplicateEmailError(Exception):
    pass
