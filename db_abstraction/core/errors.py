"""Exception hierarchy shared by every backend.

Driver exceptions (psycopg, pymysql, sqlite3) are never wrapped; they reach
the caller unchanged through ``query``/``transaction``.
"""


class DatabaseError(Exception):
    """Base class for errors raised by this package."""


class CompileError(DatabaseError, ValueError):
    """A table spec, column list or row set cannot be turned into SQL."""


class ParameterCountError(CompileError):
    """The number of ``?`` markers does not match the parameters supplied."""


class NotConnectedError(DatabaseError, RuntimeError):
    """The backend has not been opened, or has already been closed."""


class SchedulerClosedError(DatabaseError, RuntimeError):
    """An operation was submitted after the scheduler started closing."""
