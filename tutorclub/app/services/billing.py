"""Billing arithmetic shared by tuition, discounts and payroll.

All amounts are whole VND. Percentages go through ``Decimal`` and are rounded
half-up exactly once, where the percentage is taken.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: Decimal | int | float | str) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: Decimal | int | float) -> int:
    """Return ``percent``% of ``amount`` as whole VND."""
    return round_half_up(Decimal(amount) * Decimal(str(percent)) / Decimal("100"))


def format_vnd(amount: int) -> str:
    return f"{amount:,} VND"


@dataclass(frozen=True)
class Carry:
    carry_in_credit: int
    carry_in_debt: int
    carry_out_credit: int
    carry_out_debt: int
    status: str
    message: str


def compute_carry(
    prior_payments: int,
    month_payments: int,
    prior_charges: int,
    total_amount: int,
    prior_adjustments: int = 0,
    month_adjustments: int = 0,
) -> Carry:
    """Fold prior balance, this month's charge and this month's payments.

    ``net = cumulative paid - (prior charges + this month's total)``. A positive
    net is a credit carried into next month, a negative one is debt.
    Adjustments are signed like the ledger: positive adds to what is owed,
    negative (a settlement discount) forgives it.
    """
    carry_in = prior_payments - prior_charges - prior_adjustments
    net = carry_in + month_payments - total_amount - month_adjustments

    if net > 0:
        status = "credit"
        message = f"Credit of {format_vnd(net)} carries over to next month."
    elif net < 0:
        status = "debt"
        message = f"Outstanding balance of {format_vnd(-net)} is due."
    elif total_amount > 0:
        status = "settled"
        message = "This month is fully paid."
    else:
        status = "open"
        message = "Nothing billed this month."

    return Carry(
        carry_in_credit=max(carry_in, 0),
        carry_in_debt=max(-carry_in, 0),
        carry_out_credit=max(net, 0),
        carry_out_debt=max(-net, 0),
        status=status,
        message=message,
    )


def determine_payment_status(carry_out_credit: int, carry_out_debt: int, total_amount: int, month_payments: int) -> str:
    """Status shown to both admins and students for one month."""
    if carry_out_credit > 0:
        return "overpaid"
    if carry_out_debt == 0 and total_amount > 0:
        return "settled"
    if month_payments > 0 and carry_out_debt > 0:
        return "underpaid"
    if carry_out_debt > 0:
        return "unpaid"
    return "open"


def determine_invoice_status(total_amount: int, month_payments: int, carry_out_debt: int) -> str:
    if total_amount > 0 and carry_out_debt <= 0:
        return "paid"
    if month_payments > 0 and carry_out_debt > 0:
        return "partial"
    return "issued"
