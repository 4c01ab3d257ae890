"""ACMI text parser.

Reads ``.acmi`` text recordings (or any iterable of lines) into records.
"""

import io
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, TextIO, Union

from .errors import AcmiIOError, InvalidFileType, InvalidVersion, LineError
from .record import Record, ends_with_escape, parse_line
from .writer import FILE_TYPE

logger = logging.getLogger(__name__)

Source = Union[str, Path, TextIO, Iterable[str]]


def _strip_physical(raw: str) -> str:
    """Drop the physical line break: ``\\n`` and an unescaped ``\\r`` before it."""
    if raw.endswith("\n"):
        raw = raw[:-1]
        if raw.endswith("\r") and not ends_with_escape(raw[:-1]):
            raw = raw[:-1]
    return raw


def _split_at_escaped_cr(raw: str, text: str) -> bool:
    """True when a reader broke the line at an escaped ``\\r``."""
    return not raw.endswith("\n") and text.endswith("\r") and ends_with_escape(text[:-1])


class Parser:
    """Lazily parses an ACMI text stream.

    Iterating the parser checks the header and then yields records one line
    at a time. Iterating again starts over for paths, seekable streams and
    re-iterable line collections.

    Header problems (``InvalidFileType``, ``InvalidVersion``) always abort.
    Line problems raise a ``LineError`` subclass in ``strict`` mode; in
    ``skip`` mode they are logged and the line is dropped.
    """

    def __init__(self, source: Source, errors: str = "strict"):
        """Initialize the parser.

        Args:
            source: File path, text stream, or iterable of lines.
            errors: "strict" to raise on bad lines, "skip" to log and continue.
        """
        if errors not in ("strict", "skip"):
            raise ValueError(f"errors must be 'strict' or 'skip', got {errors!r}")
        self.source = source
        self.errors = errors
        self.skipped: list[LineError] = []

    @contextmanager
    def _open(self) -> Iterator[Iterable[str]]:
        if isinstance(self.source, (str, Path)):
            try:
                f = open(self.source, encoding="utf-8-sig", newline="\n")
            except OSError as e:
                raise AcmiIOError(f"error reading input: {e}") from e
            with f:
                yield f
        elif isinstance(self.source, io.IOBase):
            try:
                if self.source.seekable():
                    self.source.seek(0)
            except OSError as e:
                raise AcmiIOError(f"error reading input: {e}") from e
            yield self.source
        else:
            yield self.source

    def _logical_lines(self, lines: Iterable[str]) -> Iterator[tuple[int, str]]:
        """Join physical lines continued by an escaped end-of-line.

        Yields (first physical line number, logical line).
        """
        pending: str | None = None
        joiner = "\n"
        start = 0
        line_no = 0
        it = iter(lines)
        while True:
            try:
                raw = next(it)
            except StopIteration:
                break
            except OSError as e:
                raise AcmiIOError(f"error reading input: {e}") from e

            line_no += 1
            text = _strip_physical(raw)
            if pending is None:
                start = line_no
            else:
                text = f"{pending}{joiner}{text}"

            if ends_with_escape(text):
                pending, joiner = text, "\n"
                continue
            # Universal-newline readers split on \r, escaped or not
            if _split_at_escaped_cr(raw, text):
                pending, joiner = text, ""
                continue

            pending = None
            yield start, text

        if pending is not None:
            yield start, pending

    def _check_header(self, lines: Iterator[tuple[int, str]]) -> None:
        _, first = next(lines, (0, ""))
        if first.lstrip("\ufeff").strip() != f"FileType={FILE_TYPE}":
            raise InvalidFileType()

        _, second = next(lines, (0, ""))
        name, _, version = second.strip().partition("=")
        if name != "FileVersion" or not version.startswith("2."):
            raise InvalidVersion()

    def __iter__(self) -> Iterator[Record]:
        self.skipped = []
        with self._open() as lines:
            logical = self._logical_lines(lines)
            self._check_header(logical)

            for line_no, line in logical:
                stripped = line.strip()
                if not stripped or stripped.startswith("//"):
                    continue
                try:
                    records = parse_line(line)
                except LineError as e:
                    e.at(line_no, line)
                    if self.errors == "strict":
                        raise
                    logger.warning(f"Skipping unparseable line: {e}")
                    self.skipped.append(e)
                    continue
                yield from records

    def records(self) -> list[Record]:
        """Parse the whole source into a list."""
        return list(self)


def parse(source: Source, errors: str = "strict") -> list[Record]:
    """Parse an ACMI source into a list of records."""
    return Parser(source, errors=errors).records()
