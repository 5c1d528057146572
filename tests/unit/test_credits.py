"""Tests for rp_common.credits — integer arithmetic for credit amounts."""

from src.rp_common.credits import (
    calculate_insurance_refund,
    calculate_payout,
    credits_to_display,
)


class TestCreditsToDisplay:
    def test_basic(self) -> None:
        assert credits_to_display(150050) == "1,500.50"

    def test_zero(self) -> None:
        assert credits_to_display(0) == "0.00"

    def test_one_hundredth(self) -> None:
        assert credits_to_display(1) == "0.01"

    def test_negative(self) -> None:
        assert credits_to_display(-1200) == "-12.00"

    def test_large(self) -> None:
        assert credits_to_display(123456789) == "1,234,567.89"


class TestCalculatePayout:
    def test_single_winner_takes_pool(self) -> None:
        assert calculate_payout(total_pool=30000, stake=10000, winning_pool=10000) == 30000

    def test_proportional_split(self) -> None:
        # 300 pool, winners staked 100 and 50 -> 200 and 100
        assert calculate_payout(30000, 10000, 15000) == 20000
        assert calculate_payout(30000, 5000, 15000) == 10000

    def test_rounds_down(self) -> None:
        # 100 split three ways by equal stakes
        payout = calculate_payout(10000, 1, 3)
        assert payout == 3333
        assert payout * 3 <= 10000

    def test_zero_winning_pool(self) -> None:
        assert calculate_payout(10000, 100, 0) == 0

    def test_zero_stake(self) -> None:
        assert calculate_payout(10000, 0, 5000) == 0


class TestCalculateInsuranceRefund:
    def test_basic_tier(self) -> None:
        assert calculate_insurance_refund(10000, 25) == 2500

    def test_rounds_half_up(self) -> None:
        # 3 * 50% = 1.5 -> 2
        assert calculate_insurance_refund(3, 50) == 2

    def test_no_percentage(self) -> None:
        assert calculate_insurance_refund(10000, None) == 0
        assert calculate_insurance_refund(10000, 0) == 0

    def test_zero_stake(self) -> None:
        assert calculate_insurance_refund(0, 75) == 0
