class NoteStoreError(Exception):
    """Base class for every error raised by the storage layer."""


class NotFound(NoteStoreError):
    pass


class InvalidInput(NoteStoreError):
    pass


class InvalidId(InvalidInput):
    pass


class ReservedId(InvalidId):
    pass


class ContentTooLarge(InvalidInput):
    pass


class NoteAlreadyExists(InvalidInput):
    pass


class IdSelectionExhausted(NoteStoreError):
    pass
