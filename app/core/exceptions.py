"""Error taxonomy of the file tree core.

Services raise these; the HTTP layer maps them to status codes in
``app.main``. ``BlobCleanupWarning`` is only ever logged.
"""


class FileTreeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FileTreeError):
    """Empty or duplicate name, cycle, self-parent. Nothing was written."""

    status_code = 400


class NotFoundError(FileTreeError):
    """Item or destination does not exist or is not live."""

    status_code = 404


class AlreadyDeletedError(NotFoundError):
    status_code = 409


class ConflictError(FileTreeError):
    """Lost an optimistic-concurrency race. Safe to retry."""

    status_code = 409


class CascadeFailure(FileTreeError):
    """A cascade could not be applied atomically and was rolled back."""

    status_code = 503


class CorruptTreeError(FileTreeError):
    status_code = 500


class PermissionDeniedError(FileTreeError):
    status_code = 403


class BlobCleanupWarning(UserWarning):
    pass
