"""ACMI record model.

Every record renders to exactly one logical ACMI line through ``str()`` and
``parse_line`` is its inverse, so ``parse_line(str(record)) == [record]``.

Line shapes:

    #12.50                           Frame
    -2a                              Remove
    0,Title=Demo                     GlobalProperty
    0,Event=Destroyed|2a|Shot down   Event
    2a,T=10|20|1000,Name=F-16C       Update
"""

import math
import re
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Union

from .errors import (
    InvalidCoordinateFormat,
    InvalidEvent,
    InvalidId,
    InvalidNumeric,
    MissingDelimiter,
    UnexpectedEndOfLine,
)

MAX_OBJECT_ID = 2**64 - 1
GLOBAL_OBJECT_ID = 0
_HEX_ID = re.compile(r"[0-9a-fA-F]+")

# Characters that must be escaped in property and event text
_RESERVED = ("\\", ",", "|", "\n", "\r")


def escape(text: str) -> str:
    """Escape a property or event value for the wire."""
    for char in _RESERVED:
        text = text.replace(char, "\\" + char)
    return text


def unescape(text: str) -> str:
    """Reverse ``escape``: a backslash makes the next character literal."""
    if "\\" not in text:
        return text
    out = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            char = next(chars, "")
        out.append(char)
    return "".join(out)


def split_unescaped(text: str, sep: str, maxsplit: int = -1) -> list[str]:
    """Split on ``sep`` where it is not preceded by an escaping backslash.

    The pieces are returned still escaped.
    """
    parts = []
    start = 0
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == sep and maxsplit != 0:
            parts.append(text[start:i])
            start = i + 1
            maxsplit -= 1
        i += 1
    parts.append(text[start:])
    return parts


def ends_with_escape(text: str) -> bool:
    """True when the last character of ``text`` is an escaping backslash."""
    return (len(text) - len(text.rstrip("\\"))) % 2 == 1


def strip_terminator(line: str) -> str:
    """Drop a trailing line terminator unless it is an escaped end-of-line."""
    if line.endswith("\n") and not ends_with_escape(line[:-1]):
        line = line[:-1]
        if line.endswith("\r") and not ends_with_escape(line[:-1]):
            line = line[:-1]
    return line


def format_utc(value: datetime | str | None) -> str:
    """Format a timestamp as ACMI expects: UTC, seconds precision, ``Z`` suffix.

    Naive datetimes are taken to be UTC already. Strings pass through.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_number(value: float) -> str:
    """Shortest exact decimal text for a float, without exponent or ``.0``."""
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _parse_number(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise InvalidNumeric(f"expected numeric, got {text!r}") from None
    if not math.isfinite(value):
        raise InvalidNumeric(f"expected finite numeric, got {text!r}")
    return value


def _format_id(object_id: int) -> str:
    return format(object_id, "x")


def _parse_id(text: str) -> int:
    if not _HEX_ID.fullmatch(text):
        raise InvalidId(f"object id is not an unsigned 64-bit hex value: {text!r}")
    object_id = int(text, 16)
    if object_id > MAX_OBJECT_ID:
        raise InvalidId(f"object id exceeds 64 bits: {text!r}")
    return object_id


def _check_id(object_id: int) -> None:
    if not 0 <= object_id <= MAX_OBJECT_ID:
        raise ValueError(f"object id out of range: {object_id}")


class GlobalPropertyName(str, Enum):
    """Well-known mission metadata fields. Other names are allowed too."""

    TITLE = "Title"
    CATEGORY = "Category"
    AUTHOR = "Author"
    REFERENCE_TIME = "ReferenceTime"
    RECORDING_TIME = "RecordingTime"
    BRIEFING = "Briefing"
    DEBRIEFING = "Debriefing"
    COMMENTS = "Comments"
    DATA_SOURCE = "DataSource"
    DATA_RECORDER = "DataRecorder"
    REFERENCE_LONGITUDE = "ReferenceLongitude"
    REFERENCE_LATITUDE = "ReferenceLatitude"


class EventKind(str, Enum):
    """Event types understood by Tacview."""

    MESSAGE = "Message"
    BOOKMARK = "Bookmark"
    DEBUG = "Debug"
    LEFT_AREA = "LeftArea"
    DESTROYED = "Destroyed"
    TAKEN_OFF = "TakenOff"
    LANDED = "Landed"
    TIMEOUT = "Timeout"

    @property
    def arity(self) -> int:
        """Number of leading params that are object ids."""
        if self in (EventKind.BOOKMARK, EventKind.DEBUG):
            return 0
        return 1


def _enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class Coords:
    """Position and attitude of an object: the ``T=`` property.

    All fields are optional. Unset fields inside the rendered shape are left
    empty, meaning "unchanged" to a Tacview client.
    """

    longitude: float | None = None
    latitude: float | None = None
    altitude: float | None = None
    roll: float | None = None
    pitch: float | None = None
    yaw: float | None = None
    u: float | None = None
    v: float | None = None
    heading: float | None = None

    # Field layouts Tacview accepts, shortest first
    SHAPES = {
        3: ("longitude", "latitude", "altitude"),
        5: ("longitude", "latitude", "altitude", "u", "v"),
        6: ("longitude", "latitude", "altitude", "roll", "pitch", "yaw"),
        9: ("longitude", "latitude", "altitude", "roll", "pitch", "yaw", "u", "v", "heading"),
    }

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"{f.name} must be finite, got {value}")
            object.__setattr__(self, f.name, value)

    @property
    def name(self) -> str:
        return "T"

    def _shape(self) -> tuple[str, ...]:
        present = {f.name for f in fields(self) if getattr(self, f.name) is not None}
        for shape in self.SHAPES.values():
            if present <= set(shape):
                return shape
        return self.SHAPES[9]

    def __str__(self) -> str:
        values = (getattr(self, name) for name in self._shape())
        text = "|".join("" if value is None else format_number(value) for value in values)
        return f"T={text}"

    @classmethod
    def parse(cls, text: str) -> "Coords":
        """Parse the value of a ``T=`` field (without the ``T=`` prefix)."""
        parts = text.split("|")
        shape = cls.SHAPES.get(len(parts))
        if shape is None:
            raise InvalidCoordinateFormat(
                f"expected 3, 5, 6 or 9 coordinate fields, got {len(parts)}"
            )
        values = {
            name: _parse_number(part.strip())
            for name, part in zip(shape, parts)
            if part.strip()
        }
        return cls(**values)


@dataclass(frozen=True)
class Property:
    """A named, non-positional object attribute such as ``Name=F-16C``."""

    name: str
    value: str

    def __post_init__(self):
        if not self.name or self.name == "T" or any(c in self.name for c in ",=|\\\n"):
            raise ValueError(f"invalid property name: {self.name!r}")
        if not isinstance(self.value, str):
            value = format_number(self.value) if isinstance(self.value, float) else str(self.value)
            object.__setattr__(self, "value", value)

    def __str__(self) -> str:
        return f"{self.name}={escape(self.value)}"


PropertyList = tuple[Property, ...]


@dataclass(frozen=True)
class GlobalProperty:
    """Mission-wide metadata, always addressed to object 0."""

    name: str
    value: str = ""

    def __post_init__(self):
        name = _enum_value(self.name)
        if not name or name == "Event" or any(c in name for c in ",=|\\\n"):
            raise ValueError(f"invalid global property name: {name!r}")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "value", "" if self.value is None else str(self.value))

    def __str__(self) -> str:
        return f"{GLOBAL_OBJECT_ID},{self.name}={escape(self.value)}"


@dataclass(frozen=True)
class Frame:
    """Time offset in seconds opening a batch of records.

    The wire carries two decimals, so the time is stored at that precision.
    """

    time: float

    def __post_init__(self):
        time = float(self.time)
        if not math.isfinite(time):
            raise ValueError(f"frame time must be finite, got {time}")
        object.__setattr__(self, "time", round(time, 2) + 0.0)

    def __str__(self) -> str:
        return f"#{self.time:.2f}"


@dataclass(frozen=True)
class Update:
    """Changed properties of one object. Coords, when present, come first."""

    id: int
    props: tuple[Coords | Property, ...] = ()

    def __post_init__(self):
        _check_id(self.id)
        if self.id == GLOBAL_OBJECT_ID:
            raise ValueError("object id 0 is reserved for global properties")
        props = tuple(self.props)
        coords = [p for p in props if isinstance(p, Coords)]
        if len(coords) > 1:
            raise ValueError("an update carries at most one Coords")
        if coords and not isinstance(props[0], Coords):
            props = (coords[0],) + tuple(p for p in props if not isinstance(p, Coords))
        object.__setattr__(self, "props", props)

    @property
    def coords(self) -> Coords | None:
        if self.props and isinstance(self.props[0], Coords):
            return self.props[0]
        return None

    def __str__(self) -> str:
        return ",".join([_format_id(self.id)] + [str(p) for p in self.props])


@dataclass(frozen=True)
class Remove:
    """The object left the recording."""

    id: int

    def __post_init__(self):
        _check_id(self.id)

    def __str__(self) -> str:
        return f"-{_format_id(self.id)}"


@dataclass(frozen=True)
class Event:
    """A global event such as ``Destroyed`` or ``Message``.

    ``params`` usually start with the hex ids of the objects involved.
    """

    kind: EventKind | str
    params: tuple[str, ...] = ()
    text: str | None = None

    def __post_init__(self):
        kind = self.kind
        if not isinstance(kind, EventKind):
            kind = str(kind)
            if not kind:
                raise ValueError("event kind must not be empty")
            try:
                kind = EventKind(kind)
            except ValueError:
                pass
        params = tuple(str(p) for p in self.params)
        if isinstance(kind, EventKind) and len(params) < kind.arity:
            raise ValueError(f"{kind.value} event needs {kind.arity} object id param(s)")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "params", params)
        object.__setattr__(self, "text", self.text or None)

    @property
    def kind_name(self) -> str:
        return _enum_value(self.kind)

    def __str__(self) -> str:
        fields_ = [self.kind_name, *self.params, self.text or ""]
        return f"{GLOBAL_OBJECT_ID},Event=" + "|".join(escape(f) for f in fields_)

    @classmethod
    def parse(cls, text: str) -> "Event":
        """Parse the value of an ``Event=`` field."""
        parts = split_unescaped(text, "|")
        if len(parts) < 2:
            raise InvalidEvent(f"event needs a kind and a text field: {text!r}")
        kind = unescape(parts[0])
        if not kind:
            raise InvalidEvent("event kind is empty")
        try:
            return cls(
                kind=kind,
                params=tuple(unescape(p) for p in parts[1:-1]),
                text=unescape(parts[-1]),
            )
        except ValueError as e:
            raise InvalidEvent(str(e)) from None


Record = Union[GlobalProperty, Frame, Update, Remove, Event]


def _split_field(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition("=")
    if not sep:
        raise MissingDelimiter("=")
    if not name:
        raise UnexpectedEndOfLine("property name is empty")
    return name, value


def _parse_global(fields_: list[str]) -> list[Record]:
    records: list[Record] = []
    for raw in fields_:
        name, value = _split_field(raw)
        if name == "Event":
            records.append(Event.parse(value))
        else:
            records.append(GlobalProperty(name, unescape(value)))
    return records


def _parse_update(object_id: int, fields_: list[str]) -> Update:
    props: list[Coords | Property] = []
    for raw in fields_:
        name, value = _split_field(raw)
        if name == "T":
            props.append(Coords.parse(value))
        else:
            props.append(Property(name, unescape(value)))
    return Update(object_id, tuple(props))


def parse_line(line: str) -> list[Record]:
    """Decode one logical ACMI line.

    Returns a list because an object-0 line may bundle several global
    properties; every other line yields exactly one record.

    Raises:
        LineError: one of its subclasses describing what is wrong.
    """
    line = strip_terminator(line)
    if not line:
        raise UnexpectedEndOfLine()

    if line.startswith("#"):
        return [Frame(_parse_number(line[1:].strip()))]

    if line.startswith("-"):
        return [Remove(_parse_id(line[1:].strip()))]

    parts = split_unescaped(line, ",")
    object_id = _parse_id(parts[0].strip())
    fields_ = parts[1:]

    if object_id == GLOBAL_OBJECT_ID:
        if not fields_:
            raise MissingDelimiter(",")
        return _parse_global(fields_)

    return [_parse_update(object_id, fields_)]
