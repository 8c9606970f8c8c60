"""
SerialRange -- parsing, rendering and splitting of certificate serial numbers.

Responsibility:
    Turns the physical registry's textual serial number of a batch into a
    typed, validated range of certificate units, and splits a range at a unit
    boundary so that a partially consumed batch can be divided without losing
    identity.  This is the single place where a batch's ``quantity`` (what the
    ledger counts) and its ``serial_number`` (what the physical registry
    tracks) are reconciled.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Encodings:
    Legacy (fixed width, 61 characters)::

        <TYPE:18><NUM:12>-<TYPE:18><NUM:12>
        AAAAAAAAAAAAAAAAAA000000000001-AAAAAAAAAAAAAAAAAA000000000100

    Both TYPE fields must be identical; NUM fields are zero-padded decimals.

    Issuance (any other length)::

        <issuance id:36, exactly 4 hyphens>_<start>-<end>
        11111111-1111-1111-1111-111111111111_1-100

    ``start``/``end`` are canonical decimal integers (no sign, no leading
    zeros), so ``render_serial(parse_serial(s)) == s`` holds for every
    accepted ``s``.

Dispatch:
    A string whose length equals the legacy width is parsed as legacy and
    nothing else.  Every other length is parsed as issuance, so an issuance
    range whose rendering would be exactly the legacy width cannot be
    constructed.

Invariants enforced:
    SPLIT_CONTIGUITY -- ``split_range`` halves satisfy
        balancing.start == original.start, remaining.end == original.end,
        balancing.end + 1 == remaining.start.
    start <= end for every range (checked at construction).

Failure modes:
    - SerialNumberFormatError: delimiter counts, field widths, digits or
      ordering do not match either encoding.
    - InvalidSplitAmountError: split amount outside (0, quantity).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Union

from carbon_kernel.exceptions import InvalidSplitAmountError, SerialNumberFormatError

LEGACY_TYPE_WIDTH = 18
LEGACY_NUMBER_WIDTH = 12
LEGACY_HALF_WIDTH = LEGACY_TYPE_WIDTH + LEGACY_NUMBER_WIDTH
LEGACY_SERIAL_LENGTH = 2 * LEGACY_HALF_WIDTH + 1

ISSUANCE_ID_LENGTH = 36
ISSUANCE_ID_HYPHENS = 4

_RANGE_SEPARATOR = "-"
_ISSUANCE_SEPARATOR = "_"
_DIGITS = frozenset("0123456789")


class SerialFormat(str, Enum):
    """Encoding a serial number was parsed from."""

    LEGACY = "legacy"
    ISSUANCE = "issuance"


@dataclass(frozen=True, slots=True)
class LegacyRange:
    """
    Unit range in the fixed-width legacy encoding.

    Guarantees:
        - type_tag is exactly LEGACY_TYPE_WIDTH characters.
        - 0 <= start <= end < 10**LEGACY_NUMBER_WIDTH.
    """

    type_tag: str
    start: int
    end: int

    format: ClassVar[SerialFormat] = SerialFormat.LEGACY

    def __post_init__(self) -> None:
        if len(self.type_tag) != LEGACY_TYPE_WIDTH:
            raise ValueError(
                f"Legacy type tag must be {LEGACY_TYPE_WIDTH} characters: {self.type_tag!r}"
            )
        _check_bounds(self.start, self.end)
        if self.end >= 10**LEGACY_NUMBER_WIDTH:
            raise ValueError(
                f"Legacy range end {self.end} exceeds {LEGACY_NUMBER_WIDTH} digits"
            )

    @property
    def quantity(self) -> int:
        return self.end - self.start + 1

    def render(self) -> str:
        return (
            f"{self.type_tag}{self.start:0{LEGACY_NUMBER_WIDTH}d}"
            f"{_RANGE_SEPARATOR}"
            f"{self.type_tag}{self.end:0{LEGACY_NUMBER_WIDTH}d}"
        )


@dataclass(frozen=True, slots=True)
class IssuanceRange:
    """
    Unit range in the issuance-id encoding.

    Guarantees:
        - issuance_id is ISSUANCE_ID_LENGTH characters with exactly
          ISSUANCE_ID_HYPHENS hyphens and no underscore.
        - 0 <= start <= end.
        - render() is never LEGACY_SERIAL_LENGTH characters long.
    """

    issuance_id: str
    start: int
    end: int

    format: ClassVar[SerialFormat] = SerialFormat.ISSUANCE

    def __post_init__(self) -> None:
        if not _is_issuance_id(self.issuance_id):
            raise ValueError(f"Malformed issuance id: {self.issuance_id!r}")
        _check_bounds(self.start, self.end)
        if len(self.render()) == LEGACY_SERIAL_LENGTH:
            raise ValueError(
                f"Issuance serial would be read as legacy: {self.render()!r}"
            )

    @property
    def quantity(self) -> int:
        return self.end - self.start + 1

    def render(self) -> str:
        return f"{self.issuance_id}{_ISSUANCE_SEPARATOR}{self.start}{_RANGE_SEPARATOR}{self.end}"


SerialRange = Union[LegacyRange, IssuanceRange]


def _check_bounds(start: int, end: int) -> None:
    if start < 0:
        raise ValueError(f"Range start must be non-negative, got {start}")
    if start > end:
        raise ValueError(f"Range start {start} is after end {end}")


def _is_issuance_id(value: str) -> bool:
    return (
        len(value) == ISSUANCE_ID_LENGTH
        and value.count("-") == ISSUANCE_ID_HYPHENS
        and _ISSUANCE_SEPARATOR not in value
    )


def _is_digits(value: str) -> bool:
    return bool(value) and all(ch in _DIGITS for ch in value)


# =============================================================================
# Parsing
# =============================================================================


def parse_legacy(serial_number: str) -> LegacyRange:
    """Parse the fixed-width legacy encoding."""
    if len(serial_number) != LEGACY_SERIAL_LENGTH:
        raise SerialNumberFormatError(
            serial_number, f"legacy serials are {LEGACY_SERIAL_LENGTH} characters"
        )
    if serial_number[LEGACY_HALF_WIDTH] != _RANGE_SEPARATOR:
        raise SerialNumberFormatError(
            serial_number, f"expected '-' at position {LEGACY_HALF_WIDTH}"
        )

    left = serial_number[:LEGACY_HALF_WIDTH]
    right = serial_number[LEGACY_HALF_WIDTH + 1:]
    start_type, start_digits = left[:LEGACY_TYPE_WIDTH], left[LEGACY_TYPE_WIDTH:]
    end_type, end_digits = right[:LEGACY_TYPE_WIDTH], right[LEGACY_TYPE_WIDTH:]

    if start_type != end_type:
        raise SerialNumberFormatError(
            serial_number, f"type tags differ ({start_type!r} vs {end_type!r})"
        )
    if not (_is_digits(start_digits) and _is_digits(end_digits)):
        raise SerialNumberFormatError(
            serial_number, f"unit numbers must be {LEGACY_NUMBER_WIDTH} decimal digits"
        )

    start, end = int(start_digits), int(end_digits)
    if start > end:
        raise SerialNumberFormatError(serial_number, f"start {start} is after end {end}")
    return LegacyRange(type_tag=start_type, start=start, end=end)


def parse_issuance(serial_number: str) -> IssuanceRange:
    """Parse the ``<issuance id>_<start>-<end>`` encoding."""
    if len(serial_number) == LEGACY_SERIAL_LENGTH:
        raise SerialNumberFormatError(
            serial_number, f"{LEGACY_SERIAL_LENGTH}-character serials are legacy"
        )
    if serial_number.count(_ISSUANCE_SEPARATOR) != 1:
        raise SerialNumberFormatError(serial_number, "expected exactly one '_'")
    issuance_id, unit_range = serial_number.split(_ISSUANCE_SEPARATOR)

    if len(issuance_id) != ISSUANCE_ID_LENGTH:
        raise SerialNumberFormatError(
            serial_number, f"issuance id must be {ISSUANCE_ID_LENGTH} characters"
        )
    if issuance_id.count("-") != ISSUANCE_ID_HYPHENS:
        raise SerialNumberFormatError(
            serial_number, f"issuance id must contain {ISSUANCE_ID_HYPHENS} hyphens"
        )
    if unit_range.count(_RANGE_SEPARATOR) != 1:
        raise SerialNumberFormatError(serial_number, "expected exactly one '-' in unit range")

    start_text, end_text = unit_range.split(_RANGE_SEPARATOR)
    for text in (start_text, end_text):
        if not _is_digits(text):
            raise SerialNumberFormatError(serial_number, f"{text!r} is not a decimal integer")
        if len(text) > 1 and text.startswith("0"):
            raise SerialNumberFormatError(serial_number, f"{text!r} has leading zeros")

    start, end = int(start_text), int(end_text)
    if start > end:
        raise SerialNumberFormatError(serial_number, f"start {start} is after end {end}")
    return IssuanceRange(issuance_id=issuance_id, start=start, end=end)


def parse_serial(serial_number: str) -> SerialRange:
    """
    Parse a serial number into a typed range.

    Preconditions:
        - ``serial_number`` is a non-empty string.

    Postconditions:
        - ``render_serial(result) == serial_number``.

    Raises:
        SerialNumberFormatError: If neither encoding accepts the string.
    """
    if not serial_number:
        raise SerialNumberFormatError(serial_number, "serial number is empty")

    if len(serial_number) == LEGACY_SERIAL_LENGTH:
        return parse_legacy(serial_number)

    return parse_issuance(serial_number)


def render_serial(serial_range: SerialRange) -> str:
    """Render a range back into its original encoding."""
    return serial_range.render()


def serial_quantity(serial_number: str) -> int:
    """Number of certificate units covered by a serial number."""
    return parse_serial(serial_number).quantity


# =============================================================================
# Splitting
# =============================================================================


def split_range(serial_range: SerialRange, amount: int) -> tuple[SerialRange, SerialRange]:
    """
    Split a range after its first ``amount`` units.

    The balancing half covers ``[start, start + amount - 1]`` and the
    remaining half covers ``[start + amount, end]``.  Both keep the source
    encoding, type tag or issuance id.

    Raises:
        InvalidSplitAmountError: Unless ``0 < amount < quantity``.
        SerialNumberFormatError: A half would render at the legacy width.
    """
    if not 0 < amount < serial_range.quantity:
        raise InvalidSplitAmountError(amount, serial_range.quantity)

    boundary = serial_range.start + amount
    try:
        balancing = replace(serial_range, end=boundary - 1)
        remaining = replace(serial_range, start=boundary)
    except ValueError as exc:
        raise SerialNumberFormatError(serial_range.render(), str(exc)) from exc

    # INVARIANT: SPLIT_CONTIGUITY
    assert balancing.start == serial_range.start
    assert remaining.end == serial_range.end
    assert balancing.end + 1 == remaining.start
    return balancing, remaining


def split_serial(serial_number: str, amount: int) -> tuple[str, str]:
    """Split a serial number string; returns (balancing, remaining) serials."""
    balancing, remaining = split_range(parse_serial(serial_number), amount)
    return balancing.render(), remaining.render()
