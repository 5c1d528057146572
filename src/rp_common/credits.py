"""Integer arithmetic for credit amounts.

Credits are stored as int hundredths (100 == 1.00 credit). No float, no Decimal.
"""


def credits_to_display(amount: int) -> str:
    """Convert hundredths to display string: 150050 -> '1,500.50', -1200 -> '-12.00'."""
    if amount < 0:
        abs_amount = -amount
        return f"-{abs_amount // 100:,}.{abs_amount % 100:02d}"
    return f"{amount // 100:,}.{amount % 100:02d}"


def calculate_payout(total_pool: int, stake: int, winning_pool: int) -> int:
    """Pari-mutuel share of the whole pool for one winning stake.

    payout = total_pool * stake / winning_pool, rounded down so the sum of
    payouts never exceeds the pool.
    """
    if winning_pool <= 0 or stake <= 0:
        return 0
    return (total_pool * stake) // winning_pool


def calculate_insurance_refund(stake: int, refund_percentage: int | None) -> int:
    """Refund for an insured losing stake, rounded half-up."""
    if stake <= 0 or not refund_percentage or refund_percentage <= 0:
        return 0
    return (stake * refund_percentage + 50) // 100
