"""Ledger aggregation for the monthly reconciliation.

These helpers reduce raw ledger records (installments, SIP executions,
holding purchases, expenses, member transactions) to the per-month totals the
waterfall consumes. Records must already be restricted to one user.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .data_models import (
    ExecutionStatus,
    ExpenseEntry,
    InvestmentPurchase,
    Loan,
    MemberBalance,
    MemberTransaction,
    MemberTransactionType,
    MonthReturns,
    PaidEmiTotals,
    SipExecution,
)
from .utils import in_month

BORROWED_TYPES = {MemberTransactionType.OWE, MemberTransactionType.EXPENSE_PAID_BY_THEM}
LENT_TYPES = {MemberTransactionType.GAVE, MemberTransactionType.EXPENSE_PAID_FOR_THEM}


def paid_emi_totals(loans: Iterable[Loan], month: int, year: int) -> PaidEmiTotals:
    """Sum EMI payments made in the month, split by due month.

    Installments due in the month count as ``current_month``; backlog and
    advance payments made in the month count as ``additional``.
    """
    current = Decimal("0")
    additional = Decimal("0")
    for loan in loans:
        for inst in loan.installments:
            if not inst.paid or not in_month(inst.paid_date, month, year):
                continue
            if in_month(inst.due_date, month, year):
                current += inst.settled_amount
            else:
                additional += inst.settled_amount
    return PaidEmiTotals(current_month=current, additional=additional)


def sip_execution_total(executions: Iterable[SipExecution], month: int, year: int) -> Decimal:
    return sum(
        (
            e.amount
            for e in executions
            if e.status == ExecutionStatus.SUCCESS and in_month(e.execution_date, month, year)
        ),
        Decimal("0"),
    )


def one_time_purchase_total(purchases: Iterable[InvestmentPurchase], month: int, year: int) -> Decimal:
    return sum(
        (p.amount for p in purchases if p.one_time and in_month(p.purchase_date, month, year)),
        Decimal("0"),
    )


def expense_total(expenses: Iterable[ExpenseEntry], month: int, year: int) -> Decimal:
    return sum((e.amount for e in expenses if in_month(e.date, month, year)), Decimal("0"))


def member_balance(transactions: Iterable[MemberTransaction], month: int, year: int) -> MemberBalance:
    """Unsettled member transactions dated in the month, as borrowed vs lent."""
    borrowed = Decimal("0")
    lent = Decimal("0")
    for txn in transactions:
        if txn.settled or not in_month(txn.date, month, year):
            continue
        if txn.transaction_type in BORROWED_TYPES:
            borrowed += txn.amount
        elif txn.transaction_type in LENT_TYPES:
            lent += txn.amount
    return MemberBalance(borrowed=borrowed, lent=lent)


def month_returns(purchases: Iterable[InvestmentPurchase], month: int, year: int) -> MonthReturns:
    """Current value vs cost basis of every purchase dated in the month.

    A purchase without a current price is valued at its buy price.
    """
    invested = Decimal("0")
    current_value = Decimal("0")
    for p in purchases:
        if not in_month(p.purchase_date, month, year):
            continue
        price_now = p.current_price if p.current_price is not None else p.price
        invested += p.quantity * p.price
        current_value += p.quantity * price_now
    returns = current_value - invested
    percent = returns / invested * Decimal(100) if invested > 0 else Decimal("0")
    return MonthReturns(
        invested=invested, current_value=current_value, returns=returns, return_percent=percent
    )
