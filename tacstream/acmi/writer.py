"""ACMI text writer."""

import io
from typing import Iterable, TextIO

from .errors import AcmiIOError
from .record import Record

FILE_TYPE = "text/acmi/tacview"
FILE_VERSION = "2.2"
FILE_HEADER = f"FileType={FILE_TYPE}\nFileVersion={FILE_VERSION}\n"


class Writer:
    """Writes records to a text stream, one line each.

    In file mode (the default) the two header lines are written first. Live
    connections use ``Writer.live`` which starts straight with records.
    """

    def __init__(self, stream: TextIO, header: bool = True):
        """Initialize the writer.

        Args:
            stream: Text stream to write to.
            header: Write the ``FileType``/``FileVersion`` lines first.

        Raises:
            AcmiIOError: If the header could not be written.
        """
        self._stream = stream
        self.lines_written = 0
        if header:
            self._write(FILE_HEADER)

    @classmethod
    def live(cls, stream: TextIO) -> "Writer":
        """Create a writer for a live connection: no header lines."""
        return cls(stream, header=False)

    def _write(self, text: str) -> None:
        try:
            self._stream.write(text)
        except OSError as e:
            raise AcmiIOError(f"error writing output: {e}") from e

    def write(self, record: Record) -> None:
        """Append one newline-terminated record line."""
        self._write(f"{record}\n")
        self.lines_written += 1

    def write_all(self, records: Iterable[Record]) -> None:
        for record in records:
            self.write(record)

    def flush(self) -> None:
        try:
            self._stream.flush()
        except OSError as e:
            raise AcmiIOError(f"error flushing output: {e}") from e

    @property
    def stream(self) -> TextIO:
        return self._stream

    @staticmethod
    def render(records: Iterable[Record], header: bool = False) -> bytes:
        """Render records into a UTF-8 buffer ready for a socket."""
        buffer = io.StringIO()
        writer = Writer(buffer, header=header)
        writer.write_all(records)
        return buffer.getvalue().encode("utf-8")
