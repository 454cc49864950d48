from dataclasses import replace
from datetime import date
from decimal import Decimal

from finflow.data_models import (
    AllocationBucket,
    AllocationType,
    Bucket,
    ExpenseBudget,
    Frequency,
    IncomeEntry,
    Installment,
    Loan,
    LoanFrequency,
    MemberBalance,
    MonthlyInputs,
    PaidEmiTotals,
    RecurringCommitment,
    SalaryRecord,
    Sip,
    TaxMode,
    TaxRule,
)
from finflow.loaders import parse_monthly_inputs
from finflow.waterfall import (
    allocation_breakdown,
    available_for_expenses,
    bucket_availability,
    compute_monthly_summary,
    compute_tax,
    emi_due_in_month,
    gross_income,
    reconcile,
    select_salary,
)

D = Decimal


def sip(amount, frequency=Frequency.MONTHLY, bucket=Bucket.MUTUAL_FUND, anchor=date(2024, 1, 10), **kwargs):
    return Sip(RecurringCommitment(D(amount), frequency, anchor, **kwargs), bucket)


def loan_with_installment(due, amount):
    return Loan(
        principal=D("240000"),
        annual_rate_percent=D("0"),
        frequency=LoanFrequency.MONTHLY,
        start_date=date(2024, 1, 5),
        tenure=12,
        installments=(Installment(1, due, D(amount)),),
    )


ALLOCATIONS = (
    AllocationBucket(Bucket.MUTUAL_FUND, AllocationType.PERCENTAGE, percent=D("60")),
    AllocationBucket(Bucket.GOLD, AllocationType.AMOUNT, fixed_amount=D("5000")),
)


def test_hybrid_tax():
    rule = TaxRule(TaxMode.HYBRID, percent=D("5"), fixed_amount=D("2000"))
    tax, percent = compute_tax(rule, D("100000"))
    assert tax == D("7000")
    assert percent == D("7")


def test_percentage_and_fixed_tax():
    assert compute_tax(TaxRule(TaxMode.PERCENTAGE, percent=D("10")), D("50000"))[0] == D("5000")
    assert compute_tax(TaxRule(TaxMode.FIXED, fixed_amount=D("1200")), D("50000"))[0] == D("1200")


def test_no_tax_without_income_or_rule():
    assert compute_tax(TaxRule(TaxMode.FIXED, fixed_amount=D("1200")), D("0")) == (D("0"), D("0"))
    assert compute_tax(None, D("50000")) == (D("0"), D("0"))


def test_latest_salary_in_effect_wins():
    records = [
        SalaryRecord(D("50000"), date(2023, 1, 1), date(2023, 12, 31)),
        SalaryRecord(D("60000"), date(2024, 1, 1)),
    ]
    assert select_salary(records, 12, 2023).monthly == D("50000")
    assert select_salary(records, 3, 2024).monthly == D("60000")
    assert select_salary(records, 6, 2022) is None


def test_gross_income_adds_other_income_in_month():
    salary, other = gross_income(
        [SalaryRecord(D("50000"), date(2024, 1, 1))],
        [IncomeEntry(D("3000"), date(2024, 3, 9)), IncomeEntry(D("800"), date(2024, 4, 1))],
        3,
        2024,
    )
    assert salary == D("50000")
    assert other == D("3000")


def test_scheduled_emis_skip_inactive_loans():
    active = loan_with_installment(date(2024, 3, 5), "20000")
    inactive = replace(active, is_active=False)
    assert emi_due_in_month([active, inactive], 3, 2024) == D("20000")
    assert emi_due_in_month([active], 4, 2024) == D("0")


def test_loan_without_installments_is_expanded():
    loan = Loan(
        principal=D("120000"),
        annual_rate_percent=D("0"),
        frequency=LoanFrequency.MONTHLY,
        start_date=date(2024, 1, 15),
        tenure=12,
    )
    assert emi_due_in_month([loan], 2, 2024) == D("10000")
    assert emi_due_in_month([loan], 1, 2024) == D("0")


def test_budget_percent_and_amount():
    budget = ExpenseBudget(expected_percent=D("50"), unexpected_amount=D("5000"))
    result = available_for_expenses(D("65000"), budget)
    assert result.is_using_budget
    assert result.expected_budget == D("32500")
    assert result.unexpected_budget == D("5000")
    assert result.available == D("37500")


def test_unconfigured_budget_keeps_remaining():
    result = available_for_expenses(D("65000"), ExpenseBudget())
    assert not result.is_using_budget
    assert result.available == D("65000")


def test_allocation_breakdown():
    lines = allocation_breakdown(D("50000"), ALLOCATIONS)
    assert [(line.bucket, line.amount) for line in lines] == [
        (Bucket.MUTUAL_FUND, D("30000")),
        (Bucket.GOLD, D("5000")),
    ]


def test_percentage_allocations_carry_the_deficit():
    lines = allocation_breakdown(D("-1000"), ALLOCATIONS)
    assert [line.amount for line in lines] == [D("-600"), D("5000")]


def test_unallocated_remainder():
    inputs = MonthlyInputs(
        month=3,
        year=2024,
        salaries=(SalaryRecord(D("50000"), date(2024, 1, 1)),),
        allocations=ALLOCATIONS,
    )
    summary = compute_monthly_summary(inputs)
    assert summary.available_for_investment == D("50000")
    assert summary.allocated_total == D("35000")
    assert summary.unallocated == D("15000")


def test_full_month_waterfall():
    inputs = MonthlyInputs(
        month=3,
        year=2024,
        salaries=(SalaryRecord(D("100000"), date(2024, 1, 1)),),
        tax_rule=TaxRule(TaxMode.PERCENTAGE, percent=D("10")),
        loans=(loan_with_installment(date(2024, 3, 5), "20000"),),
        sips=(sip("5000"), sip("12000", Frequency.YEARLY, Bucket.GOLD, date(2023, 6, 1))),
        expense_total=D("15000"),
        paid_emis=PaidEmiTotals(current_month=D("20000")),
        sip_executed=D("5000"),
    )
    summary = compute_monthly_summary(inputs)

    assert summary.gross_income == D("100000")
    assert summary.after_tax == D("90000")
    assert summary.after_emi == D("70000")
    assert summary.after_sip == D("65000")
    assert summary.available_for_investment == D("50000")
    assert summary.planned_surplus == D("50000")
    assert summary.reconciliation.cash_remaining == D("50000")
    assert summary.reconciliation.additional_transactions == D("0")
    assert [s.name for s in summary.stages] == [
        "gross_income",
        "after_tax",
        "after_emi",
        "after_sip",
        "available_for_expenses",
        "available_for_investment",
        "surplus",
    ]
    remaining = [summary.gross_income, summary.after_tax, summary.after_emi, summary.after_sip]
    assert all(a >= b for a, b in zip(remaining, remaining[1:]))


def test_budget_drives_investment_pool():
    inputs = MonthlyInputs(
        month=3,
        year=2024,
        salaries=(SalaryRecord(D("65000"), date(2024, 1, 1)),),
        budget=ExpenseBudget(expected_percent=D("50"), unexpected_amount=D("5000")),
        expense_total=D("30000"),
    )
    summary = compute_monthly_summary(inputs)
    assert summary.expenses.is_using_budget
    assert summary.available_for_investment == D("27500")
    assert summary.planned_surplus == D("35000")


def test_deficit_is_preserved():
    inputs = MonthlyInputs(
        month=3,
        year=2024,
        salaries=(SalaryRecord(D("10000"), date(2024, 1, 1)),),
        loans=(loan_with_installment(date(2024, 3, 5), "20000"),),
        allocations=ALLOCATIONS,
    )
    summary = compute_monthly_summary(inputs)
    assert summary.after_emi == D("-10000")
    assert summary.available_for_investment == D("-10000")
    assert summary.allocations[0].amount == D("-6000")
    assert summary.unallocated == D("-10000") - D("-6000") - D("5000")


def test_reconciliation_identity():
    rec = reconcile(
        gross=D("100000"),
        tax=D("10000"),
        scheduled_emi=D("20000"),
        planned_sip=D("5000"),
        actual_expenses=D("15000"),
        paid_emis=PaidEmiTotals(current_month=D("20000"), additional=D("5000")),
        sip_executed=D("6000"),
        one_time_purchases=D("2000"),
        balance=MemberBalance(borrowed=D("1000"), lent=D("3000")),
    )
    assert rec.emi_paid == D("25000")
    assert rec.cash_remaining == D("100000") - 10000 - 25000 - 6000 - 2000 - 15000 - 1000 + 3000
    assert rec.additional_transactions == D("6000")


def test_no_additional_transactions_when_underspent():
    rec = reconcile(
        gross=D("100000"),
        tax=D("0"),
        scheduled_emi=D("20000"),
        planned_sip=D("5000"),
        actual_expenses=D("0"),
        paid_emis=PaidEmiTotals(),
        sip_executed=D("0"),
        one_time_purchases=D("0"),
        balance=MemberBalance(),
    )
    assert rec.additional_transactions == D("0")
    assert rec.cash_remaining == D("100000")


def test_bucket_availability_subtracts_flat_sip_worth():
    sips = [
        sip("5000"),
        sip("3000", Frequency.QUARTERLY),
        sip("9999", is_active=False),
        sip("12000", Frequency.YEARLY, Bucket.GOLD),
    ]
    availability = bucket_availability(Bucket.MUTUAL_FUND, ALLOCATIONS, sips, D("50000"))
    assert availability.total_allocation == D("30000")
    assert availability.existing_sips == D("6000")
    assert availability.available == D("24000")
    assert bucket_availability(Bucket.CRYPTO, ALLOCATIONS, sips, D("50000")) is None


def test_summary_from_payload(monthly_payload):
    summary = compute_monthly_summary(parse_monthly_inputs(monthly_payload))
    assert summary.gross_income == D("105000")
    assert summary.tax == D("10500")
    assert summary.scheduled_emi == D("10000")
    assert summary.planned_sip == D("5000")
    assert summary.actual_expenses == D("20000")
    assert summary.available_for_investment == D("59500")
    assert summary.unallocated == D("18800")
    rec = summary.reconciliation
    assert rec.emi_paid == D("10000")
    assert rec.sip_executed == D("5000")
    assert rec.one_time_purchases == D("2000")
    assert rec.lent == D("1500")
    assert rec.cash_remaining == D("59000")
    assert summary.returns.returns == D("200")
