"""Tests for exact multiplier parsing."""

import pytest

from stakesplit.optimizer.ratio import ExactRatio, ParseError


class TestParse:
    def test_decimal_text_is_reduced(self):
        assert ExactRatio.parse("1.8") == ExactRatio(9, 5)

    def test_whole_number(self):
        assert ExactRatio.parse("2") == ExactRatio(2, 1)

    def test_surrounding_whitespace_and_trailing_zero(self):
        assert ExactRatio.parse(" 2.50 ") == ExactRatio(5, 2)

    def test_scientific_notation_expands(self):
        assert ExactRatio.parse("2.5e1") == ExactRatio(25, 1)
        assert ExactRatio.parse("1e-2") == ExactRatio(1, 100)

    def test_json_numbers(self):
        assert ExactRatio.parse(1.8) == ExactRatio(9, 5)
        assert ExactRatio.parse(3) == ExactRatio(3, 1)

    @pytest.mark.parametrize("raw", ["0", "0.0", "-1.5", "abc", "", "1.2.3", "1e400"])
    def test_rejects_invalid_text(self, raw):
        with pytest.raises(ParseError):
            ExactRatio.parse(raw)

    @pytest.mark.parametrize("raw", [True, None, float("inf"), float("nan"), [2]])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(ParseError):
            ExactRatio.parse(raw)


class TestExactRatio:
    def test_unreduced_fraction_rejected(self):
        with pytest.raises(ParseError):
            ExactRatio(2, 4)

    def test_non_positive_rejected(self):
        with pytest.raises(ParseError):
            ExactRatio(0, 1)

    def test_payout_truncates(self):
        assert ExactRatio.parse("1.8").payout(7) == 12  # 12.6

    def test_payout_has_no_float_error(self):
        # 0.29 * 100 is 28.999999999999996 in floating point
        assert ExactRatio.parse("0.29").payout(100) == 29

    def test_ordering_is_exact(self):
        assert ExactRatio.parse("1.8") < ExactRatio.parse("2")
        assert ExactRatio.parse("0.3") > ExactRatio.parse("0.29999999")

    def test_float_and_str(self):
        ratio = ExactRatio.parse("1.8")
        assert float(ratio) == pytest.approx(1.8)
        assert str(ratio) == "9/5"
        assert str(ExactRatio.parse("4")) == "4"
