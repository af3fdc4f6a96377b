# Overview: Pytest coverage for fixed-point money and percentage helpers.

import pytest

from repairdesk.errors import ValidationError
from repairdesk.money import (
    from_bps,
    from_cents,
    invoice_total,
    line_amounts,
    percent_of,
    to_bps,
    to_cents,
)


class TestToCents:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (97.65, 9765),
            ("97.65", 9765),
            (100, 10000),
            ("1.005", 101),
            (0.125, 13),
            (0, 0),
        ],
    )
    def test_converts_wire_amounts(self, value, expected):
        assert to_cents(value) == expected

    def test_rejects_negative_by_default(self):
        with pytest.raises(ValidationError) as exc:
            to_cents(-1, "openingAmount")
        assert exc.value.errors == [{"field": "openingAmount", "message": "cannot be negative"}]

    def test_allows_negative_when_asked(self):
        assert to_cents("-5.00", allow_negative=True) == -500

    @pytest.mark.parametrize("value", [True, None, "abc", "", float("nan"), float("inf")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_cents(value)

    def test_rejects_absurd_amounts(self):
        with pytest.raises(ValidationError):
            to_cents("100000000.00")


class TestPercentages:

    def test_to_bps(self):
        assert to_bps(8.5) == 850
        assert to_bps("10") == 1000
        assert to_bps(0) == 0
        assert to_bps(100) == 10000

    @pytest.mark.parametrize("value", [-0.01, 100.01, "x"])
    def test_to_bps_out_of_range(self, value):
        with pytest.raises(ValidationError):
            to_bps(value, "discountPercent")

    def test_percent_of_rounds_half_up(self):
        assert percent_of(9000, 850) == 765
        # 0.5 cent rounds away from zero
        assert percent_of(10, 500) == 1
        assert percent_of(0, 850) == 0


class TestDerivedAmounts:

    def test_line_amounts_with_discount(self):
        assert line_amounts(1, 10000, 1000) == (1000, 9000)

    def test_line_amounts_multiple_quantity(self):
        # 3 x 19.99 at 15% = 59.97 - 9.00 (8.9955 rounded)
        assert line_amounts(3, 1999, 1500) == (900, 5097)

    def test_invoice_total_clamps_at_zero(self):
        assert invoice_total(9000, 765, 0) == 9765
        assert invoice_total(0, 0, 500) == 0

    def test_serialization_is_numeric(self):
        assert from_cents(9765) == 97.65
        assert isinstance(from_cents(0), float)
        assert from_cents(None) is None
        assert from_bps(850) == 8.5
