"""Tests for the ACMI record model and line codec."""

from datetime import datetime, timedelta, timezone

import pytest

from tacstream.acmi import (
    Coords,
    Event,
    EventKind,
    Frame,
    GlobalProperty,
    GlobalPropertyName,
    InvalidCoordinateFormat,
    InvalidEvent,
    InvalidId,
    InvalidNumeric,
    MissingDelimiter,
    Property,
    Remove,
    UnexpectedEndOfLine,
    Update,
    format_utc,
    parse_line,
)
from tacstream.acmi.record import escape, split_unescaped, unescape


class TestEscaping:
    """Tests for value escaping."""

    def test_escape_reserved_characters(self):
        """Test comma, pipe and backslash are escaped."""
        assert escape("a,b|c\\d") == "a\\,b\\|c\\\\d"

    def test_escape_line_breaks(self):
        """Test both line break characters are escaped."""
        assert escape("a\rb\nc") == "a\\\rb\\\nc"

    def test_unescape_reverses_escape(self):
        """Test unescape(escape(x)) == x for awkward values."""
        values = ["plain", "a,b", "x|y", "back\\slash", "trailing\\", "two\nlines", "cr\rlf\r\n", ",|\\"]
        for value in values:
            assert unescape(escape(value)) == value

    def test_split_ignores_escaped_separators(self):
        """Test escaped separators do not split."""
        assert split_unescaped("a\\,b,c", ",") == ["a\\,b", "c"]
        assert split_unescaped("a\\\\,b", ",") == ["a\\\\", "b"]


class TestCoords:
    """Tests for the T= positional property."""

    def test_three_field_shape(self):
        """Test only lon/lat/alt renders the short form."""
        coords = Coords(longitude=10, latitude=20, altitude=1000)
        assert str(coords) == "T=10|20|1000"

    def test_fractional_values(self):
        """Test fractions keep their digits and no exponent is used."""
        coords = Coords(longitude=-2.25, latitude=41.6082183, altitude=0.00001)
        assert str(coords) == "T=-2.25|41.6082183|0.00001"

    def test_uv_shape(self):
        """Test local offsets select the five-field form."""
        coords = Coords(longitude=1, latitude=2, altitude=3, u=4, v=5)
        assert str(coords) == "T=1|2|3|4|5"

    def test_attitude_shape(self):
        """Test roll/pitch/yaw select the six-field form."""
        coords = Coords(longitude=1, latitude=2, altitude=3, roll=-30, pitch=2.5, yaw=270)
        assert str(coords) == "T=1|2|3|-30|2.5|270"

    def test_full_shape_leaves_unset_fields_empty(self):
        """Test heading alone forces the nine-field form with gaps."""
        coords = Coords(longitude=1, latitude=2, altitude=3, heading=90)
        assert str(coords) == "T=1|2|3||||||90"

    def test_parse_with_empty_fields(self):
        """Test empty fields parse as unset."""
        coords = Coords.parse("|20|")
        assert coords == Coords(latitude=20)

    def test_parse_rejects_bad_field_count(self):
        """Test field counts other than 3/5/6/9 are rejected."""
        with pytest.raises(InvalidCoordinateFormat):
            Coords.parse("1|2")
        with pytest.raises(InvalidCoordinateFormat):
            Coords.parse("1|2|3|4")

    def test_rejects_non_finite(self):
        """Test NaN cannot be constructed."""
        with pytest.raises(ValueError):
            Coords(longitude=float("nan"))


class TestRendering:
    """Tests for rendering each record kind."""

    def test_update_line(self):
        """Test an object with coords renders hex id then fields."""
        update = Update(0x42, (Coords(longitude=10, latitude=20, altitude=1000),))
        assert str(update) == "42,T=10|20|1000"

    def test_update_coords_moved_first(self):
        """Test Coords is always emitted before other properties."""
        update = Update(0x2A, (Property("Name", "F-16C"), Coords(longitude=1, latitude=2, altitude=3)))
        assert str(update) == "2a,T=1|2|3,Name=F-16C"

    def test_update_escapes_property_values(self):
        """Test reserved characters are escaped in property values."""
        update = Update(0x2A, (Property("Pilot", "Doe, John|Jr"),))
        assert str(update) == "2a,Pilot=Doe\\, John\\|Jr"

    def test_remove_line(self):
        """Test removal renders a dash and hex id."""
        assert str(Remove(0xBEEF)) == "-beef"

    def test_frame_line(self):
        """Test frames render fixed point with two decimals."""
        assert str(Frame(0)) == "#0.00"
        assert str(Frame(1234.5)) == "#1234.50"

    def test_global_property_line(self):
        """Test metadata lines are addressed to object 0."""
        assert str(GlobalProperty(GlobalPropertyName.TITLE, "Demo")) == "0,Title=Demo"
        assert str(GlobalProperty("Briefing", "")) == "0,Briefing="

    def test_event_line(self):
        """Test events render kind, params and text."""
        event = Event(EventKind.DESTROYED, ("2a",))
        assert str(event) == "0,Event=Destroyed|2a|"

        message = Event("Message", ("2a",), "Fox 3")
        assert str(message) == "0,Event=Message|2a|Fox 3"

    def test_update_rejects_object_zero(self):
        """Test id 0 is reserved for global lines."""
        with pytest.raises(ValueError):
            Update(0, ())

    def test_property_name_t_reserved(self):
        """Test T cannot be used as a plain property name."""
        with pytest.raises(ValueError):
            Property("T", "1|2|3")


class TestRoundTrip:
    """Tests that every record survives str() then parse_line()."""

    RECORDS = [
        GlobalProperty("Title", "Demo, with comma | pipe \\ backslash"),
        GlobalProperty("ReferenceTime", "2024-01-01T00:00:00Z"),
        GlobalProperty("Comments", "first line\nsecond line"),
        GlobalProperty("CustomField", ""),
        GlobalProperty("Comments", "x\r"),
        Frame(12.5),
        Frame(0.07),
        Update(0x2A, ()),
        Update(
            0x2A,
            (
                Coords(longitude=1.5, latitude=-2.25, altitude=300, roll=10, pitch=-5, yaw=270),
                Property("Name", "a,b|c\\d"),
                Property("Comments", "ends with backslash\\"),
                Property("Pilot", "a\rb"),
            ),
        ),
        Update(0xFFFFFFFFFFFFFFFF, (Coords(longitude=1, latitude=2, altitude=3, u=4, v=5),)),
        Update(0x10, (Coords(heading=45),)),
        Remove(0x2A),
        Event(EventKind.DESTROYED, ("2a",)),
        Event(EventKind.BOOKMARK, (), "Merge"),
        Event("Message", ("2a",), "hello, world|!"),
        Event("CustomKind", ("1", "2", "3"), "text\nwith newline"),
    ]

    @pytest.mark.parametrize("record", RECORDS, ids=lambda r: type(r).__name__)
    def test_round_trip(self, record):
        """Test parse_line(str(r)) == [r]."""
        assert parse_line(str(record)) == [record]

    def test_frame_precision_normalised(self):
        """Test frame times keep the two decimals the wire carries."""
        frame = Frame(1.23456)
        assert frame.time == 1.23
        assert parse_line(str(frame)) == [frame]

    def test_event_requires_object_param(self):
        """Test known kinds need their object id params."""
        with pytest.raises(ValueError):
            Event(EventKind.DESTROYED, ())
        with pytest.raises(ValueError):
            Event("Timeout")

    def test_event_without_objects_allowed(self):
        """Test bookmarks and unknown kinds need no params."""
        assert Event(EventKind.BOOKMARK, (), "Merge").params == ()
        assert Event("Custom", (), "note").params == ()

    def test_event_empty_text_is_none(self):
        """Test empty event text normalises to None."""
        assert Event("Timeout", ("2a",), "") == Event("Timeout", ("2a",), None)

    def test_unknown_event_kind_kept_as_string(self):
        """Test unknown kinds are preserved verbatim."""
        event = parse_line("0,Event=Custom|a|b")[0]
        assert event.kind == "Custom"
        assert event.params == ("a",)
        assert event.text == "b"


class TestParseLine:
    """Tests for line-level decoding and its errors."""

    def test_multiple_global_fields(self):
        """Test an object-0 line may bundle several properties."""
        records = parse_line("0,Title=A,Author=B")
        assert records == [GlobalProperty("Title", "A"), GlobalProperty("Author", "B")]

    def test_uppercase_hex_id(self):
        """Test ids are parsed as hex regardless of case."""
        assert parse_line("-2A") == [Remove(0x2A)]

    def test_trailing_newline_ignored(self):
        """Test a real line terminator is stripped."""
        assert parse_line("#1.00\n") == [Frame(1.0)]

    def test_invalid_id(self):
        """Test a non-hex id is rejected."""
        with pytest.raises(InvalidId):
            parse_line("zz,T=1|2|3")

    def test_id_too_large(self):
        """Test ids beyond 64 bits are rejected."""
        with pytest.raises(InvalidId):
            parse_line("10000000000000000,T=1|2|3")

    def test_empty_remove(self):
        """Test a bare dash is an invalid id."""
        with pytest.raises(InvalidId):
            parse_line("-")

    def test_invalid_frame_time(self):
        """Test a non-numeric frame time is rejected."""
        with pytest.raises(InvalidNumeric):
            parse_line("#abc")

    def test_invalid_coordinate_number(self):
        """Test non-numeric coordinates are rejected."""
        with pytest.raises(InvalidNumeric):
            parse_line("2a,T=1|x|3")

    def test_bad_coordinate_shape(self):
        """Test wrong coordinate field counts are rejected."""
        with pytest.raises(InvalidCoordinateFormat):
            parse_line("2a,T=1|2")

    def test_missing_equals(self):
        """Test a field without = reports the missing delimiter."""
        with pytest.raises(MissingDelimiter) as exc_info:
            parse_line("2a,Name")
        assert exc_info.value.delimiter == "="

    def test_global_line_without_fields(self):
        """Test object 0 needs at least one field."""
        with pytest.raises(MissingDelimiter) as exc_info:
            parse_line("0")
        assert exc_info.value.delimiter == ","

    def test_event_without_text_field(self):
        """Test an event needs a kind and a text field."""
        with pytest.raises(InvalidEvent):
            parse_line("0,Event=Destroyed")

    def test_event_missing_object_param(self):
        """Test a Destroyed event without its object id is rejected."""
        with pytest.raises(InvalidEvent):
            parse_line("0,Event=Destroyed|")

    @pytest.mark.parametrize("line", ["2_a,T=1|2|3", "0x2a,T=1|2|3", "-0x2a", "-2_a", "+2a,T=1|2|3"])
    def test_non_hex_id_forms(self, line):
        """Test only plain hex digits are accepted as ids."""
        with pytest.raises(InvalidId):
            parse_line(line)

    def test_empty_line(self):
        """Test empty input is reported."""
        with pytest.raises(UnexpectedEndOfLine):
            parse_line("")


class TestFormatUtc:
    """Tests for metadata time formatting."""

    def test_aware_datetime_converted_to_utc(self):
        """Test offsets are converted and seconds precision is kept."""
        value = datetime(2024, 1, 1, 2, 0, 0, 999999, tzinfo=timezone(timedelta(hours=2)))
        assert format_utc(value) == "2024-01-01T00:00:00Z"

    def test_naive_datetime_assumed_utc(self):
        """Test naive datetimes are taken as UTC."""
        assert format_utc(datetime(2016, 2, 18, 16, 44, 12)) == "2016-02-18T16:44:12Z"

    def test_none_is_empty(self):
        """Test absent times render as empty values."""
        assert format_utc(None) == ""
