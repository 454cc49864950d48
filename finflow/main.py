"""Command-line interface for the finance engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can solve loan EMI parameters, print due-date and
amortization schedules, compute tax and build a month's cash-flow waterfall
from a JSON file of ledger records. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .config import Settings
from .data_models import Bucket, Loan, LoanFrequency, LoanTerms, ScheduleAnchor, TaxMode, TaxRule
from .engine import build_installments, classify_installments, compute_schedule, solve_loan
from .errors import FinflowError
from .formatter import (
    print_availability,
    print_installment_status,
    print_monthly_summary,
    print_schedule,
    print_schedule_summary,
    print_terms,
)
from .loaders import (
    availability_to_dict,
    installments_to_dicts,
    load_json,
    parse_enum,
    parse_monthly_inputs,
    schedule_to_dicts,
    summary_to_dict,
    terms_to_dict,
)
from .logging_config import setup_logging
from .utils import decimal_from_str, money, parse_date
from .waterfall import bucket_availability, compute_monthly_summary, compute_tax

logger = logging.getLogger(__name__)


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000") and shorthand with ``k``/``l``/``m``
    suffixes ("500k" is 500,000, "5l" is five lakh, "2m" is two million).
    Returns a Decimal.
    """
    value = value.strip().lower().replace(",", "")
    factor = 1
    if value.endswith("k"):
        factor = 1_000
        value = value[:-1]
    elif value.endswith("l"):
        factor = 100_000
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_anchor_strings(values: Tuple[str, ...]) -> Tuple[ScheduleAnchor, ...]:
    anchors: List[ScheduleAnchor] = []
    for item in values:
        parts = item.split("-")
        if len(parts) != 2:
            raise click.BadParameter(f"Anchor must be in MM-DD format; got {item}")
        try:
            anchors.append(ScheduleAnchor(month=int(parts[0]), day=int(parts[1])))
        except ValueError:
            raise click.BadParameter(f"Anchor must be in MM-DD format; got {item}")
    return tuple(anchors)


def build_loan_from_options(
    principal: str,
    rate: float,
    tenure: Optional[int],
    installment: Optional[str],
    frequency: str,
    start_date: Optional[str],
    anchor: Tuple[str, ...],
) -> Loan:
    try:
        start = parse_date(start_date) if start_date else date.today()
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    return Loan(
        principal=parse_amount(principal),
        annual_rate_percent=decimal_from_str(str(rate)),
        frequency=LoanFrequency(frequency.upper()),
        start_date=start,
        tenure=tenure,
        installment_amount=parse_amount(installment) if installment else None,
        anchors=parse_anchor_strings(anchor),
    )


def _solve(loan: Loan, settings: Settings) -> LoanTerms:
    try:
        return solve_loan(loan, tenure_tolerance=settings.tenure_tolerance)
    except FinflowError as exc:
        logger.warning("Could not solve loan: %s", exc)
        raise click.ClickException(str(exc))


def export_to_json(path: Path, payload: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def export_to_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    """Export a list of flat dicts to a CSV file."""
    with path.open("w", newline="", encoding="utf-8") as f:
        if not rows:
            return
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


loan_options = [
    click.option("--principal", "-p", "principal", required=True, help="Loan amount (500k, 5l, 2m accepted)"),
    click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
    click.option("--tenure", "-t", "tenure", type=int, help="Number of installments"),
    click.option("--installment", "-e", "installment", help="Installment (EMI) amount"),
    click.option(
        "--frequency",
        "-f",
        "frequency",
        type=click.Choice([f.value for f in LoanFrequency], case_sensitive=False),
        default="MONTHLY",
        help="Payment frequency",
    ),
    click.option("--start-date", "-s", "start_date", help="Loan start date (YYYY-MM-DD); defaults to today"),
    click.option("--anchor", "anchor", multiple=True, help="Yearly payment date in MM-DD format (repeatable)"),
]


def with_loan_options(func):
    for option in reversed(loan_options):
        func = option(func)
    return func


@click.group()
@click.option("--log-level", "log_level", default=None, help="Logging level (DEBUG, INFO, ...)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Personal-finance computations: EMIs, schedules and monthly cash flow."""
    settings = Settings.from_env()
    try:
        setup_logging(settings, log_level)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--log-level")
    ctx.obj = settings


@cli.command()
@with_loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_obj
def emi(
    settings: Settings,
    principal: str,
    rate: float,
    tenure: Optional[int],
    installment: Optional[str],
    frequency: str,
    start_date: Optional[str],
    anchor: Tuple[str, ...],
    output: Optional[str],
) -> None:
    """Solve the missing installment amount or tenure of a loan."""
    loan = build_loan_from_options(principal, rate, tenure, installment, frequency, start_date, anchor)
    terms = _solve(loan, settings)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Loan terms export must use .json extension")
        export_to_json(path, {"terms": terms_to_dict(terms)})
        click.echo(f"Loan terms exported to {path}")
    else:
        print_terms(terms, settings.currency)


@cli.command()
@with_loan_options
@click.option("--dates-only", "dates_only", is_flag=True, help="List due dates without the interest split")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_obj
def schedule(
    settings: Settings,
    principal: str,
    rate: float,
    tenure: Optional[int],
    installment: Optional[str],
    frequency: str,
    start_date: Optional[str],
    anchor: Tuple[str, ...],
    dates_only: bool,
    output: Optional[str],
) -> None:
    """Compute and print the installment schedule of a loan."""
    loan = build_loan_from_options(principal, rate, tenure, installment, frequency, start_date, anchor)
    terms = _solve(loan, settings)
    try:
        if dates_only:
            rows = installments_to_dicts(build_installments(loan, terms))
            entries, summary = [], None
        else:
            entries, summary = compute_schedule(loan, terms)
            rows = schedule_to_dicts(entries)
    except FinflowError as exc:
        logger.warning("Could not expand schedule: %s", exc)
        raise click.ClickException(str(exc))

    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, {"terms": terms_to_dict(terms), "schedule": rows})
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, rows)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    print_terms(terms, settings.currency)
    if dates_only:
        for row in rows[: settings.max_schedule_rows]:
            click.echo(f"{row['sequence_number']:>4d}  {row['due_date']}  {row['amount']:.2f}")
        return
    print_schedule_summary(summary)
    if len(entries) > settings.max_schedule_rows:
        click.echo(
            f"Schedule has {len(entries)} rows; showing first {settings.max_schedule_rows} rows."
        )
    print_schedule(entries[: settings.max_schedule_rows])


@cli.command()
@click.option("--gross", "-g", "gross", required=True, help="Gross monthly income")
@click.option(
    "--mode",
    "mode",
    type=click.Choice([m.value for m in TaxMode], case_sensitive=False),
    required=True,
    help="Tax mode",
)
@click.option("--percent", "percent", type=float, help="Tax percentage (PERCENTAGE/HYBRID)")
@click.option("--fixed", "fixed", help="Fixed tax amount (FIXED/HYBRID)")
@click.pass_obj
def tax(settings: Settings, gross: str, mode: str, percent: Optional[float], fixed: Optional[str]) -> None:
    """Compute the monthly tax deduction for a gross income."""
    rule = TaxRule(
        mode=parse_enum(TaxMode, mode, "tax mode"),
        percent=decimal_from_str(str(percent)) if percent is not None else None,
        fixed_amount=parse_amount(fixed) if fixed else None,
    )
    gross_value = parse_amount(gross)
    amount, effective = compute_tax(rule, gross_value)
    click.echo(f"Tax            : {settings.currency} {money(amount):,.2f} ({money(effective)}%)")
    click.echo(f"Net after tax  : {settings.currency} {money(gross_value - amount):,.2f}")


@cli.command()
@with_loan_options
@click.option("--month", "-m", "month", required=True, type=click.IntRange(1, 12), help="Reference month (1-12)")
@click.option("--year", "-y", "year", required=True, type=int, help="Reference year")
@click.option("--upcoming", "upcoming", type=click.IntRange(0), default=3, help="Upcoming installments to list")
@click.pass_obj
def installments(
    settings: Settings,
    principal: str,
    rate: float,
    tenure: Optional[int],
    installment: Optional[str],
    frequency: str,
    start_date: Optional[str],
    anchor: Tuple[str, ...],
    month: int,
    year: int,
    upcoming: int,
) -> None:
    """List overdue, current-month and upcoming installments for a month."""
    loan = build_loan_from_options(principal, rate, tenure, installment, frequency, start_date, anchor)
    terms = _solve(loan, settings)
    try:
        rows = build_installments(loan, terms)
    except FinflowError as exc:
        logger.warning("Could not expand schedule: %s", exc)
        raise click.ClickException(str(exc))
    overdue, current, later = classify_installments(rows, month, year, upcoming_limit=upcoming)
    print_installment_status(overdue, current, later, settings.currency)


def _load_inputs(path: str, month: Optional[int], year: Optional[int]):
    try:
        return parse_monthly_inputs(load_json(path), month=month, year=year)
    except (ValueError, OSError) as exc:
        logger.warning("Could not load inputs from %s: %s", path, exc)
        raise click.BadParameter(str(exc), param_hint="--inputs")


@cli.command()
@click.option("--inputs", "-i", "inputs_path", required=True, help="JSON file of the month's records")
@click.option("--month", "-m", "month", type=click.IntRange(1, 12), help="Month (1-12); overrides the file")
@click.option("--year", "-y", "year", type=int, help="Year; overrides the file")
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_obj
def summary(
    settings: Settings,
    inputs_path: str,
    month: Optional[int],
    year: Optional[int],
    output: Optional[str],
) -> None:
    """Compute the cash-flow waterfall for one month."""
    inputs = _load_inputs(inputs_path, month, year)
    try:
        result = compute_monthly_summary(inputs)
    except FinflowError as exc:
        logger.warning("Could not compute summary: %s", exc)
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        export_to_json(path, {"summary": summary_to_dict(result)})
        click.echo(f"Summary exported to {path}")
    else:
        print_monthly_summary(result, settings.currency)


@cli.command()
@click.option("--inputs", "-i", "inputs_path", required=True, help="JSON file of the month's records")
@click.option("--bucket", "-b", "bucket", required=True, help="Bucket name, e.g. MUTUAL_FUND")
@click.option("--month", "-m", "month", type=click.IntRange(1, 12), help="Month (1-12); overrides the file")
@click.option("--year", "-y", "year", type=int, help="Year; overrides the file")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")
@click.pass_obj
def bucket(
    settings: Settings,
    inputs_path: str,
    bucket: str,
    month: Optional[int],
    year: Optional[int],
    as_json: bool,
) -> None:
    """Show how much of a bucket's allocation is still free for new investments."""
    try:
        bucket_id = parse_enum(Bucket, bucket, "bucket")
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--bucket")
    inputs = _load_inputs(inputs_path, month, year)
    try:
        pool = compute_monthly_summary(inputs).available_for_investment
    except FinflowError as exc:
        logger.warning("Could not compute summary: %s", exc)
        raise click.ClickException(str(exc))
    availability = bucket_availability(bucket_id, inputs.allocations, inputs.sips, pool)
    if availability is None:
        raise click.ClickException(f"No allocation found for bucket {bucket_id.value}")
    if as_json:
        click.echo(json.dumps(availability_to_dict(availability), indent=2))
    else:
        print_availability(availability, settings.currency)


if __name__ == "__main__":
    cli()
