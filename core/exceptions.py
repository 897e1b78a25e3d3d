"""
Exceptions raised by the file store
"""


class XFSError(Exception):
    """Base exception for the file store."""

    pass


class NotFoundError(XFSError, FileNotFoundError):
    """The addressed file does not exist."""

    pass


class BackendError(XFSError):
    """The database rejected or failed to run a statement.

    The original SQLAlchemy error is chained as ``__cause__``.
    """

    pass


class ConflictError(BackendError):
    """The target identity of a move already exists."""

    pass
