"""Tests for icalswitch.calendar.ics_lines."""

import pytest

from icalswitch.calendar.ics_lines import RawProperty, tokenize_line, unescape_text, unfold_lines

pytestmark = pytest.mark.unit


class TestUnfoldLines:
    """Line unfolding and normalization."""

    def test_unfold_when_space_continuation_then_joins_without_leading_space(self) -> None:
        text = "SUMMARY:Long meet\r\n ing title\r\nLOCATION:Here\r\n"
        assert unfold_lines(text) == ["SUMMARY:Long meeting title", "LOCATION:Here"]

    def test_unfold_when_tab_continuation_then_strips_only_first_character(self) -> None:
        text = "DESCRIPTION:a\n\t  b\n"
        assert unfold_lines(text) == ["DESCRIPTION:a  b"]

    def test_unfold_when_bare_carriage_returns_then_treated_as_breaks(self) -> None:
        assert unfold_lines("A:1\rB:2\rC:3") == ["A:1", "B:2", "C:3"]

    def test_unfold_when_blank_lines_then_dropped(self) -> None:
        assert unfold_lines("A:1\n\n   \nB:2\n") == ["A:1", "B:2"]

    def test_unfold_when_continuation_first_then_dropped(self) -> None:
        assert unfold_lines(" orphan\nA:1") == ["A:1"]

    def test_unfold_when_long_line_then_no_length_limit(self) -> None:
        value = "x" * 500
        assert unfold_lines(f"SUMMARY:{value}") == [f"SUMMARY:{value}"]

    def test_unfold_when_empty_text_then_empty_list(self) -> None:
        assert unfold_lines("") == []

    def test_unfold_trims_finished_lines(self) -> None:
        assert unfold_lines("SUMMARY:Standup   \n") == ["SUMMARY:Standup"]


class TestTokenizeLine:
    """Property tokenizing."""

    def test_tokenize_when_simple_property_then_name_and_value(self) -> None:
        prop = tokenize_line("SUMMARY:Standup")
        assert prop == RawProperty(name="SUMMARY", value="Standup", params={})

    def test_tokenize_when_parameters_then_parsed(self) -> None:
        prop = tokenize_line("DTSTART;TZID=America/New_York:20250101T090000")
        assert prop is not None
        assert prop.name == "DTSTART"
        assert prop.param("TZID") == "America/New_York"
        assert prop.value == "20250101T090000"

    def test_tokenize_when_value_contains_colons_then_split_at_first(self) -> None:
        prop = tokenize_line("URL:https://example.com:8443/x")
        assert prop is not None
        assert prop.value == "https://example.com:8443/x"

    def test_tokenize_when_quoted_param_contains_colon_then_not_split_there(self) -> None:
        prop = tokenize_line('ATTENDEE;CN="Doe: Jane";PARTSTAT=DECLINED:mailto:jane@example.com')
        assert prop is not None
        assert prop.param("CN") == "Doe: Jane"
        assert prop.param("PARTSTAT") == "DECLINED"
        assert prop.value == "mailto:jane@example.com"

    def test_tokenize_when_quoted_tzid_then_quotes_removed(self) -> None:
        prop = tokenize_line('DTSTART;TZID="Pacific Standard Time":20250101T090000')
        assert prop is not None
        assert prop.param("TZID") == "Pacific Standard Time"

    def test_tokenize_when_bare_parameter_then_boolean_flag(self) -> None:
        prop = tokenize_line("X-FLAGGED;RSVP:yes")
        assert prop is not None
        assert prop.params["RSVP"] is True
        assert prop.param("RSVP") is None

    def test_tokenize_when_lowercase_names_then_upper_cased(self) -> None:
        prop = tokenize_line("dtstart;tzid=UTC:20250101T090000")
        assert prop is not None
        assert prop.name == "DTSTART"
        assert prop.param("tzid") == "UTC"

    @pytest.mark.parametrize("line", ["NO COLON HERE", ":value only", ";X=1:value"])
    def test_tokenize_when_malformed_then_none(self, line: str) -> None:
        assert tokenize_line(line) is None


class TestUnescapeText:
    """TEXT value unescaping."""

    def test_unescape_when_all_sequences_then_replaced(self) -> None:
        assert unescape_text(r"a\nb\Nc\\d\,e\;f") == "a\nb\nc\\d,e;f"

    def test_unescape_when_escaped_backslash_before_n_then_single_pass(self) -> None:
        # "\\n" is an escaped backslash followed by a literal n
        assert unescape_text(r"C:\\new") == "C:\\new"

    def test_unescape_when_unknown_sequence_then_kept(self) -> None:
        assert unescape_text(r"50\% off") == r"50\% off"

    def test_unescape_when_empty_then_empty_string(self) -> None:
        assert unescape_text(None) == ""
        assert unescape_text("") == ""
