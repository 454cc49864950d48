"""Conversion between JSON-shaped dicts and the engine's dataclasses.

Both the command-line interface and the web API accept the same payload
shapes: dates as ISO strings, money as strings or numbers (converted through
``str`` so floats do not leak binary noise into ``Decimal``), enums by name.
Results are serialized with money rounded to paise.
"""

from __future__ import annotations

import json
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from .aggregates import (
    expense_total,
    member_balance,
    month_returns,
    one_time_purchase_total,
    paid_emi_totals,
    sip_execution_total,
)
from .data_models import (
    AllocationBucket,
    AllocationType,
    AmortizationEntry,
    Bucket,
    BucketAvailability,
    ExecutionStatus,
    ExpenseBudget,
    ExpenseEntry,
    Frequency,
    IncomeEntry,
    Installment,
    InvestmentPurchase,
    Loan,
    LoanFrequency,
    LoanTerms,
    MemberTransaction,
    MemberTransactionType,
    MonthlyInputs,
    MonthlySummary,
    RecurringCommitment,
    SalaryRecord,
    ScheduleAnchor,
    Sip,
    SipExecution,
    TaxMode,
    TaxRule,
)
from .utils import money, parse_date, parse_optional_date, to_decimal, to_optional_decimal

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError as exc:
        choices = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Invalid {field} '{value}'; expected one of {choices}") from exc


def _required(data: Mapping[str, Any], key: str) -> Any:
    if data.get(key) in (None, ""):
        raise ValueError(f"Missing required field '{key}'")
    return data[key]


_TRUE_WORDS = {"true", "yes", "1"}
_FALSE_WORDS = {"false", "no", "0"}


def parse_flag(data: Mapping[str, Any], key: str, default: bool) -> bool:
    """Read a boolean field; JSON booleans, 0/1 and true/false words are accepted."""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS | _FALSE_WORDS:
        return value.strip().lower() in _TRUE_WORDS
    raise ValueError(f"Field '{key}' must be true or false; got {value!r}")


def parse_anchor(data: Mapping[str, Any]) -> ScheduleAnchor:
    return ScheduleAnchor(month=int(_required(data, "month")), day=int(_required(data, "day")))


def parse_installment(data: Mapping[str, Any]) -> Installment:
    return Installment(
        sequence_number=int(_required(data, "sequence_number")),
        due_date=parse_date(_required(data, "due_date")),
        amount=to_decimal(_required(data, "amount")),
        paid=parse_flag(data, "paid", False),
        paid_amount=to_optional_decimal(data.get("paid_amount")),
        paid_date=parse_optional_date(data.get("paid_date")),
    )


def parse_loan(data: Mapping[str, Any]) -> Loan:
    tenure = data.get("tenure")
    return Loan(
        principal=to_decimal(_required(data, "principal")),
        annual_rate_percent=to_decimal(data.get("annual_rate_percent", 0)),
        frequency=parse_enum(LoanFrequency, data.get("frequency", "MONTHLY"), "frequency"),
        start_date=parse_date(_required(data, "start_date")),
        tenure=int(tenure) if tenure not in (None, "") else None,
        installment_amount=to_optional_decimal(data.get("installment_amount")),
        anchors=tuple(parse_anchor(a) for a in data.get("anchors") or ()),
        installments=tuple(parse_installment(i) for i in data.get("installments") or ()),
        is_active=parse_flag(data, "is_active", True),
        name=str(data.get("name", "")),
    )


def parse_commitment(data: Mapping[str, Any]) -> RecurringCommitment:
    day = data.get("custom_day_of_month")
    return RecurringCommitment(
        amount=to_decimal(_required(data, "amount")),
        frequency=parse_enum(Frequency, data.get("frequency", "MONTHLY"), "frequency"),
        anchor_date=parse_date(_required(data, "anchor_date")),
        custom_day_of_month=int(day) if day not in (None, "") else None,
        end_date=parse_optional_date(data.get("end_date")),
        is_active=parse_flag(data, "is_active", True),
    )


def parse_sip(data: Mapping[str, Any]) -> Sip:
    return Sip(
        commitment=parse_commitment(data),
        bucket=parse_enum(Bucket, _required(data, "bucket"), "bucket"),
        name=str(data.get("name", "")),
    )


def parse_tax_rule(data: Optional[Mapping[str, Any]]) -> Optional[TaxRule]:
    if not data:
        return None
    return TaxRule(
        mode=parse_enum(TaxMode, _required(data, "mode"), "tax mode"),
        percent=to_optional_decimal(data.get("percent")),
        fixed_amount=to_optional_decimal(data.get("fixed_amount")),
    )


def parse_budget(data: Optional[Mapping[str, Any]]) -> Optional[ExpenseBudget]:
    if not data:
        return None
    return ExpenseBudget(
        expected_percent=to_optional_decimal(data.get("expected_percent")),
        expected_amount=to_optional_decimal(data.get("expected_amount")),
        unexpected_percent=to_optional_decimal(data.get("unexpected_percent")),
        unexpected_amount=to_optional_decimal(data.get("unexpected_amount")),
    )


def parse_allocation(data: Mapping[str, Any]) -> AllocationBucket:
    return AllocationBucket(
        bucket=parse_enum(Bucket, _required(data, "bucket"), "bucket"),
        type=parse_enum(AllocationType, data.get("type", "PERCENTAGE"), "allocation type"),
        percent=to_optional_decimal(data.get("percent")),
        fixed_amount=to_optional_decimal(data.get("fixed_amount")),
    )


def parse_monthly_inputs(data: Mapping[str, Any], month: Optional[int] = None, year: Optional[int] = None) -> MonthlyInputs:
    """Build :class:`MonthlyInputs` from a payload of raw ledger records.

    ``month``/``year`` override the payload's own values. Aggregates are
    computed from the ledger lists with :mod:`finflow.aggregates`.
    """
    month = int(month if month is not None else _required(data, "month"))
    year = int(year if year is not None else _required(data, "year"))

    loans = tuple(parse_loan(item) for item in data.get("loans") or ())
    expenses = [
        ExpenseEntry(
            amount=to_decimal(_required(e, "amount")),
            date=parse_date(_required(e, "date")),
            category=str(e.get("category", "")),
        )
        for e in data.get("expenses") or ()
    ]
    executions = [
        SipExecution(
            amount=to_decimal(_required(e, "amount")),
            execution_date=parse_date(_required(e, "execution_date")),
            status=parse_enum(ExecutionStatus, e.get("status", "SUCCESS"), "execution status"),
        )
        for e in data.get("sip_executions") or ()
    ]
    purchases = [
        InvestmentPurchase(
            quantity=to_decimal(_required(p, "quantity")),
            price=to_decimal(_required(p, "price")),
            purchase_date=parse_date(_required(p, "purchase_date")),
            current_price=to_optional_decimal(p.get("current_price")),
            one_time=parse_flag(p, "one_time", True),
        )
        for p in data.get("purchases") or ()
    ]
    transactions = [
        MemberTransaction(
            amount=to_decimal(_required(t, "amount")),
            date=parse_date(_required(t, "date")),
            transaction_type=parse_enum(
                MemberTransactionType, _required(t, "transaction_type"), "transaction type"
            ),
            settled=parse_flag(t, "settled", False),
        )
        for t in data.get("member_transactions") or ()
    ]

    return MonthlyInputs(
        month=month,
        year=year,
        salaries=tuple(
            SalaryRecord(
                monthly=to_decimal(_required(s, "monthly")),
                effective_from=parse_date(_required(s, "effective_from")),
                effective_to=parse_optional_date(s.get("effective_to")),
            )
            for s in data.get("salaries") or ()
        ),
        incomes=tuple(
            IncomeEntry(
                amount=to_decimal(_required(i, "amount")),
                date=parse_date(_required(i, "date")),
                source=str(i.get("source", "")),
            )
            for i in data.get("incomes") or ()
        ),
        tax_rule=parse_tax_rule(data.get("tax_rule")),
        loans=loans,
        sips=tuple(parse_sip(s) for s in data.get("sips") or ()),
        expense_total=expense_total(expenses, month, year),
        budget=parse_budget(data.get("budget")),
        allocations=tuple(parse_allocation(a) for a in data.get("allocations") or ()),
        paid_emis=paid_emi_totals(loans, month, year),
        sip_executed=sip_execution_total(executions, month, year),
        one_time_purchases=one_time_purchase_total(purchases, month, year),
        member_balance=member_balance(transactions, month, year),
        returns=month_returns(purchases, month, year),
    )


def load_json(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _m(value: Decimal) -> float:
    return float(money(value))


def terms_to_dict(terms: LoanTerms) -> Dict[str, Any]:
    return {
        "tenure": terms.tenure,
        "installment_amount": _m(terms.installment_amount),
        "total_payment": _m(terms.total_payment),
        "total_interest": _m(terms.total_interest),
    }


def installments_to_dicts(installments: Iterable[Installment]) -> List[Dict[str, Any]]:
    return [
        {
            "sequence_number": inst.sequence_number,
            "due_date": inst.due_date.isoformat(),
            "amount": _m(inst.amount),
            "paid": inst.paid,
            "paid_amount": _m(inst.paid_amount) if inst.paid_amount is not None else None,
            "paid_date": inst.paid_date.isoformat() if inst.paid_date else None,
        }
        for inst in installments
    ]


def schedule_to_dicts(entries: Iterable[AmortizationEntry]) -> List[Dict[str, Any]]:
    return [
        {
            "period": e.period,
            "date": e.date.isoformat(),
            "starting_balance": _m(e.starting_balance),
            "payment": _m(e.payment),
            "principal": _m(e.principal_payment),
            "interest": _m(e.interest_payment),
            "ending_balance": _m(e.ending_balance),
        }
        for e in entries
    ]


def availability_to_dict(availability: BucketAvailability) -> Dict[str, Any]:
    return {
        "bucket": availability.bucket.value,
        "label": availability.bucket.label,
        "total_allocation": _m(availability.total_allocation),
        "existing_sips": _m(availability.existing_sips),
        "available": _m(availability.available),
    }


def summary_to_dict(summary: MonthlySummary) -> Dict[str, Any]:
    rec = summary.reconciliation
    return {
        "month": summary.month,
        "year": summary.year,
        "stages": [
            {"name": s.name, "deduction": _m(s.deduction), "remaining": _m(s.remaining)}
            for s in summary.stages
        ],
        "gross_income": _m(summary.gross_income),
        "salary": _m(summary.salary),
        "other_income": _m(summary.other_income),
        "tax": _m(summary.tax),
        "tax_percent": _m(summary.tax_percent),
        "after_tax": _m(summary.after_tax),
        "scheduled_emi": _m(summary.scheduled_emi),
        "after_emi": _m(summary.after_emi),
        "planned_sip": _m(summary.planned_sip),
        "after_sip": _m(summary.after_sip),
        "available_for_expenses": _m(summary.expenses.available),
        "expected_budget": _m(summary.expenses.expected_budget),
        "unexpected_budget": _m(summary.expenses.unexpected_budget),
        "is_using_budget": summary.expenses.is_using_budget,
        "available_for_investment": _m(summary.available_for_investment),
        "allocations": [
            {"bucket": line.bucket.value, "type": line.type.value, "amount": _m(line.amount)}
            for line in summary.allocations
        ],
        "allocated_total": _m(summary.allocated_total),
        "unallocated": _m(summary.unallocated),
        "actual_expenses": _m(summary.actual_expenses),
        "planned_surplus": _m(summary.planned_surplus),
        "reconciliation": {
            "emi_paid": _m(rec.emi_paid),
            "sip_executed": _m(rec.sip_executed),
            "one_time_purchases": _m(rec.one_time_purchases),
            "actual_expenses": _m(rec.actual_expenses),
            "borrowed": _m(rec.borrowed),
            "lent": _m(rec.lent),
            "cash_remaining": _m(rec.cash_remaining),
            "additional_transactions": _m(rec.additional_transactions),
        },
        "returns": {
            "invested": _m(summary.returns.invested),
            "current_value": _m(summary.returns.current_value),
            "returns": _m(summary.returns.returns),
            "return_percent": _m(summary.returns.return_percent),
        },
    }
