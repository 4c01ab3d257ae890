"""ACMI 2.2 text format: record model, writer and parser."""

from .errors import (
    AcmiError,
    AcmiIOError,
    InvalidCoordinateFormat,
    InvalidEvent,
    InvalidFileType,
    InvalidId,
    InvalidNumeric,
    InvalidVersion,
    LineError,
    MissingDelimiter,
    ParseError,
    UnexpectedEndOfLine,
)
from .parser import Parser, parse
from .record import (
    Coords,
    Event,
    EventKind,
    Frame,
    GlobalProperty,
    GlobalPropertyName,
    Property,
    PropertyList,
    Record,
    Remove,
    Update,
    format_utc,
    parse_line,
)
from .writer import FILE_HEADER, Writer

__all__ = [
    "AcmiError",
    "AcmiIOError",
    "Coords",
    "Event",
    "EventKind",
    "FILE_HEADER",
    "Frame",
    "GlobalProperty",
    "GlobalPropertyName",
    "InvalidCoordinateFormat",
    "InvalidEvent",
    "InvalidFileType",
    "InvalidId",
    "InvalidNumeric",
    "InvalidVersion",
    "LineError",
    "MissingDelimiter",
    "ParseError",
    "Parser",
    "Property",
    "PropertyList",
    "Record",
    "Remove",
    "UnexpectedEndOfLine",
    "Update",
    "Writer",
    "format_utc",
    "parse",
    "parse_line",
]
