"""
Tests for the serial-number codec (carbon_kernel.domain.serial_range).

Covers both encodings, the dispatch rule on the legacy width, rejection of
malformed input, and the contiguity of split halves.
"""

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from carbon_kernel.domain.serial_range import (
    LEGACY_SERIAL_LENGTH,
    IssuanceRange,
    LegacyRange,
    SerialFormat,
    parse_issuance,
    parse_legacy,
    parse_serial,
    render_serial,
    serial_quantity,
    split_range,
    split_serial,
)
from carbon_kernel.exceptions import (
    ConsistencyError,
    InvalidSplitAmountError,
    SerialNumberFormatError,
    ValidationError,
)

TYPE_TAG = "A" * 18
ISSUANCE_ID = "11111111-1111-1111-1111-111111111111"


def legacy(start: int, end: int, tag: str = TYPE_TAG) -> str:
    return f"{tag}{start:012d}-{tag}{end:012d}"


def issuance(start: int, end: int, issuance_id: str = ISSUANCE_ID) -> str:
    return f"{issuance_id}_{start}-{end}"


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

legacy_ranges = st.builds(
    lambda tag, a, b: LegacyRange(tag, min(a, b), max(a, b)),
    st.text(alphabet=string.ascii_uppercase + string.digits, min_size=18, max_size=18),
    st.integers(min_value=0, max_value=10**12 - 1),
    st.integers(min_value=0, max_value=10**12 - 1),
)

# Bounded to ten digits so no rendering reaches the legacy width.
issuance_ranges = st.builds(
    lambda uid, a, b: IssuanceRange(str(uid), min(a, b), max(a, b)),
    st.uuids(),
    st.integers(min_value=0, max_value=10**9),
    st.integers(min_value=0, max_value=10**9),
)

serial_ranges = st.one_of(legacy_ranges, issuance_ranges)


# ---------------------------------------------------------------------------
# Legacy encoding
# ---------------------------------------------------------------------------


class TestLegacyParsing:
    """Fixed-width <TYPE:18><NUM:12>-<TYPE:18><NUM:12> serials."""

    def test_parses_documented_example(self):
        serial = "AAAAAAAAAAAAAAAAAA000000000001-AAAAAAAAAAAAAAAAAA000000000100"
        assert len(serial) == LEGACY_SERIAL_LENGTH

        parsed = parse_serial(serial)

        assert isinstance(parsed, LegacyRange)
        assert parsed.format is SerialFormat.LEGACY
        assert parsed.type_tag == TYPE_TAG
        assert (parsed.start, parsed.end) == (1, 100)
        assert parsed.quantity == 100

    def test_render_keeps_zero_padding(self):
        assert LegacyRange(TYPE_TAG, 7, 9).render() == legacy(7, 9)

    def test_single_unit_range(self):
        assert parse_serial(legacy(5, 5)).quantity == 1

    def test_mismatched_type_tags_rejected(self):
        serial = f"{'A' * 18}{1:012d}-{'B' * 18}{100:012d}"
        with pytest.raises(SerialNumberFormatError, match="type tags differ"):
            parse_legacy(serial)

    def test_missing_separator_rejected(self):
        serial = legacy(1, 100).replace("-", "+")
        with pytest.raises(SerialNumberFormatError):
            parse_legacy(serial)

    def test_non_digit_unit_number_rejected(self):
        serial = f"{TYPE_TAG}00000000000X-{TYPE_TAG}{100:012d}"
        with pytest.raises(SerialNumberFormatError, match="decimal digits"):
            parse_legacy(serial)

    def test_start_after_end_rejected(self):
        with pytest.raises(SerialNumberFormatError, match="after end"):
            parse_serial(legacy(100, 1))

    def test_wrong_length_rejected_by_legacy_parser(self):
        with pytest.raises(SerialNumberFormatError):
            parse_legacy(legacy(1, 100)[:-1])

    def test_type_tag_width_enforced_on_construction(self):
        with pytest.raises(ValueError):
            LegacyRange("SHORT", 1, 2)

    def test_unit_number_width_enforced_on_construction(self):
        with pytest.raises(ValueError):
            LegacyRange(TYPE_TAG, 1, 10**12)


# ---------------------------------------------------------------------------
# Issuance encoding
# ---------------------------------------------------------------------------


class TestIssuanceParsing:
    """<issuance id>_<start>-<end> serials."""

    def test_parses_documented_example(self):
        parsed = parse_serial("11111111-1111-1111-1111-111111111111_1-100")

        assert isinstance(parsed, IssuanceRange)
        assert parsed.format is SerialFormat.ISSUANCE
        assert parsed.issuance_id == ISSUANCE_ID
        assert (parsed.start, parsed.end) == (1, 100)
        assert parsed.quantity == 100

    def test_large_unit_numbers(self):
        serial = issuance(10**20, 10**20 + 4)
        assert parse_serial(serial).quantity == 5

    @pytest.mark.parametrize(
        "serial",
        [
            "",
            "11111111-1111-1111-1111-111111111111-1-100",
            "11111111-1111-1111-1111-111111111111_1_100",
            "11111111-1111-1111-1111-11111111111_1-100",
            "1111111111111-1111-1111-111111111111_1-100",
            "11111111-1111-1111-1111-111111111111_1-100-200",
            "11111111-1111-1111-1111-111111111111_a-100",
            "11111111-1111-1111-1111-111111111111_1-",
            "11111111-1111-1111-1111-111111111111_+1-100",
        ],
    )
    def test_malformed_serials_rejected(self, serial):
        with pytest.raises(SerialNumberFormatError):
            parse_serial(serial)

    def test_leading_zeros_rejected(self):
        with pytest.raises(SerialNumberFormatError, match="leading zeros"):
            parse_issuance(issuance(1, 100).replace("_1-", "_01-"))

    def test_zero_is_canonical(self):
        assert parse_serial(issuance(0, 9)).quantity == 10

    def test_start_after_end_rejected(self):
        with pytest.raises(SerialNumberFormatError, match="after end"):
            parse_serial(issuance(100, 1))

    def test_format_error_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_serial("not-a-serial")
        assert exc_info.value.code == "SERIAL_NUMBER_FORMAT"
        assert exc_info.value.serial_number == "not-a-serial"

    def test_malformed_issuance_id_rejected_on_construction(self):
        with pytest.raises(ValueError):
            IssuanceRange("abc_def", 1, 2)


class TestFormatDispatch:
    """A string of the legacy width is parsed as legacy only."""

    def test_issuance_shaped_serial_of_legacy_length_rejected(self):
        # 36 + 1 + 11 + 1 + 12 == 61 characters
        serial = issuance(10**10, 10**11)
        assert len(serial) == LEGACY_SERIAL_LENGTH

        with pytest.raises(SerialNumberFormatError):
            parse_serial(serial)
        with pytest.raises(SerialNumberFormatError, match="are legacy"):
            parse_issuance(serial)

    def test_issuance_range_of_legacy_width_cannot_be_constructed(self):
        with pytest.raises(ValueError, match="read as legacy"):
            IssuanceRange(ISSUANCE_ID, 10**10, 10**11)

    def test_split_into_legacy_width_half_rejected(self):
        # the remaining half 10**10..10**11 would render at 61 characters
        source = IssuanceRange(ISSUANCE_ID, 10**10 - 1, 10**11)
        with pytest.raises(SerialNumberFormatError):
            split_range(source, 1)

    def test_legacy_error_reported_for_legacy_length(self):
        serial = f"{'A' * 18}{1:012d}-{'B' * 18}{100:012d}"
        with pytest.raises(SerialNumberFormatError, match="type tags differ"):
            parse_serial(serial)

    def test_serial_quantity(self):
        assert serial_quantity(legacy(1, 100)) == 100
        assert serial_quantity(issuance(61, 100)) == 40


class TestRoundTrip:
    """render(parse(s)) == s and parse(render(r)) == r."""

    @given(serial_range=serial_ranges)
    def test_parse_of_render_is_identity(self, serial_range):
        assert parse_serial(render_serial(serial_range)) == serial_range

    @given(serial_range=serial_ranges)
    def test_render_of_parse_is_identity(self, serial_range):
        serial = render_serial(serial_range)
        assert render_serial(parse_serial(serial)) == serial


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


class TestSplit:
    """split_range / split_serial."""

    def test_legacy_split_by_ten(self):
        balancing, remaining = split_serial(legacy(1, 100), 10)

        assert balancing == legacy(1, 10)
        assert balancing.endswith("000000000010")
        assert remaining == legacy(11, 100)
        assert remaining.startswith(TYPE_TAG + "000000000011")

    def test_issuance_split_by_ten(self):
        balancing, remaining = split_serial("11111111-1111-1111-1111-111111111111_1-100", 10)

        assert balancing == "11111111-1111-1111-1111-111111111111_1-10"
        assert remaining == "11111111-1111-1111-1111-111111111111_11-100"

    def test_split_keeps_encoding_and_tag(self):
        balancing, remaining = split_range(parse_serial(legacy(1, 100)), 60)
        assert isinstance(balancing, LegacyRange)
        assert isinstance(remaining, LegacyRange)
        assert balancing.type_tag == remaining.type_tag == TYPE_TAG

    @pytest.mark.parametrize("amount", [0, -1, 100, 101])
    def test_amount_outside_open_interval_rejected(self, amount):
        with pytest.raises(InvalidSplitAmountError) as exc_info:
            split_serial(issuance(1, 100), amount)
        assert isinstance(exc_info.value, ConsistencyError)
        assert exc_info.value.quantity == 100

    def test_single_unit_range_cannot_split(self):
        with pytest.raises(InvalidSplitAmountError):
            split_serial(issuance(5, 5), 1)

    @given(serial_range=serial_ranges, data=st.data())
    def test_split_halves_cover_range_contiguously(self, serial_range, data):
        if serial_range.quantity < 2:
            return
        amount = data.draw(st.integers(min_value=1, max_value=serial_range.quantity - 1))

        balancing, remaining = split_range(serial_range, amount)

        assert balancing.start == serial_range.start
        assert remaining.end == serial_range.end
        assert balancing.end + 1 == remaining.start
        assert balancing.quantity == amount
        assert balancing.quantity + remaining.quantity == serial_range.quantity
        assert parse_serial(balancing.render()) == balancing
        assert parse_serial(remaining.render()) == remaining
