"""Core enumerations, column type flags and the error type used across the package."""

from __future__ import annotations

from enum import IntEnum, IntFlag

NULL_INT = 0x80000000
"""Integer value reported for a null or non-numeric record field."""

MAX_STREAM_NAME_LEN = 62
LONG_STR_BYTES = 3
MAX_PROPS = 20


class ResultError(IntEnum):
    """Result codes reported by database operations."""

    SUCCESS = 0
    ACCESS_DENIED = 1
    INVALID_HANDLE = 2
    NOT_ENOUGH_MEMORY = 3
    INVALID_DATA = 4
    OUTOFMEMORY = 5
    INVALID_PARAMETER = 6
    OPEN_FAILED = 7
    CALL_NOT_IMPLEMENTED = 8
    MORE_DATA = 9
    NOT_FOUND = 10
    CONTINUE = 11
    UNKNOWN_PROPERTY = 12
    BAD_QUERY_SYNTAX = 13
    INVALID_FIELD = 14
    FUNCTION_FAILED = 15
    INVALID_TABLE = 16
    DATATYPE_MISMATCH = 17
    INVALID_DATATYPE = 18


class PropertyType(IntEnum):
    """Type of a summary information property."""

    EMPTY = 0
    INT = 1
    STRING = 2
    FILETIME = 3


class ColInfo(IntEnum):
    """Which column information a query reports."""

    NAMES = 0
    TYPES = 1


class DbFlags(IntFlag):
    """Flags used when opening a database."""

    READONLY = 1 << 0
    CREATE = 1 << 1
    TRANSACT = 1 << 2
    PATCH = 1 << 3


class DBError(IntEnum):
    """Validation errors attached to a view."""

    SUCCESS = 0
    INVALIDARG = 1
    MOREDATA = 2
    FUNCTIONERROR = 3
    DUPLICATEKEY = 4
    REQUIRED = 5
    BADLINK = 6
    OVERFLOW = 7
    UNDERFLOW = 8
    NOTINSET = 9
    BADVERSION = 10
    BADCASE = 11
    BADGUID = 12
    BADWILDCARD = 13
    BADIDENTIFIER = 14
    BADLANGUAGE = 15
    BADFILENAME = 16
    BADPATH = 17
    BADCONDITION = 18
    BADFORMATTED = 19
    BADTEMPLATE = 20
    BADDEFAULTDIR = 21
    BADREGPATH = 22
    BADCUSTOMSOURCE = 23
    BADPROPERTY = 24
    MISSINGDATA = 25
    BADCATEGORY = 26
    BADKEYTABLE = 27
    BADMAXMINVALUES = 28
    BADCABINET = 29
    BADSHORTCUT = 30
    STRINGOVERFLOW = 31
    BADLOCALIZEATTRIB = 32


class Property(IntEnum):
    """Summary information property identifiers."""

    DICTIONARY = 0
    CODEPAGE = 1
    TITLE = 2
    SUBJECT = 3
    AUTHOR = 4
    KEYWORDS = 5
    COMMENTS = 6
    TEMPLATE = 7
    LASTAUTHOR = 8
    UUID = 9
    EDITTIME = 10
    LASTPRINTED = 11
    CREATED_TM = 12
    LASTSAVED_TM = 13
    VERSION = 14
    SOURCE = 15
    RESTRICT = 16
    THUMBNAIL = 17
    APPNAME = 18
    SECURITY = 19


class ColumnType(IntFlag):
    """Bits making up a column type word."""

    DATASIZE_MASK = 0x00FF
    VALID = 0x0100
    LOCALIZABLE = 0x0200
    STRING = 0x0800
    NULLABLE = 0x1000
    KEY = 0x2000
    TEMPORARY = 0x4000
    UNKNOWN = 0x8000


class MsiError(Exception):
    """An operation failed with a result code."""

    def __init__(self, code, message=""):
        self.code = ResultError(code)
        self.message = message or self.code.name.lower().replace("_", " ")
        super().__init__(self.message)


def is_binary(column_type):
    """Return True when a column type describes a binary (stream) column."""
    stripped = int(column_type) & ~int(ColumnType.NULLABLE)
    return stripped == int(ColumnType.STRING | ColumnType.VALID)