"""Error types raised by the ACMI codec."""


class AcmiError(Exception):
    """Base class for all ACMI codec errors."""


class AcmiIOError(AcmiError):
    """Reading or writing the underlying stream failed."""


class ParseError(AcmiError):
    """Input could not be decoded as ACMI."""


class InvalidFileType(ParseError):
    """The stream does not start with the ACMI file type line."""

    def __init__(self, message: str = "input is not an ACMI file"):
        super().__init__(message)


class InvalidVersion(ParseError):
    """The stream declares a file version other than 2.x."""

    def __init__(self, message: str = "invalid version, expected ACMI v2.x"):
        super().__init__(message)


class LineError(ParseError):
    """A single line failed to parse. The rest of the stream may still be valid."""

    def __init__(self, message: str, line_no: int | None = None, line: str | None = None):
        self.message = message
        self.line_no = line_no
        self.line = line
        super().__init__(message)

    def at(self, line_no: int, line: str) -> "LineError":
        """Attach the position of the offending line."""
        self.line_no = line_no
        self.line = line
        return self

    def __str__(self) -> str:
        if self.line_no is None:
            return self.message
        return f"line {self.line_no}: {self.message}"


class UnexpectedEndOfLine(LineError):
    def __init__(self, message: str = "unexpected end of line", **kwargs):
        super().__init__(message, **kwargs)


class InvalidId(LineError):
    def __init__(self, message: str = "object id is not an unsigned 64-bit hex value", **kwargs):
        super().__init__(message, **kwargs)


class InvalidNumeric(LineError):
    def __init__(self, message: str = "expected numeric", **kwargs):
        super().__init__(message, **kwargs)


class MissingDelimiter(LineError):
    def __init__(self, delimiter: str, **kwargs):
        self.delimiter = delimiter
        super().__init__(f"could not find expected delimiter `{delimiter}`", **kwargs)


class InvalidEvent(LineError):
    def __init__(self, message: str = "failed to parse event", **kwargs):
        super().__init__(message, **kwargs)


class InvalidCoordinateFormat(LineError):
    def __init__(self, message: str = "encountered invalid coordinate format", **kwargs):
        super().__init__(message, **kwargs)
