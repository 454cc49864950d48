import os

from flask import Flask, jsonify, request

from finflow.config import Settings
from finflow.data_models import Bucket, TaxMode, TaxRule
from finflow.engine import build_installments, classify_installments, compute_schedule, solve_loan
from finflow.errors import FinflowError
from finflow.loaders import (
    availability_to_dict,
    installments_to_dicts,
    parse_enum,
    parse_flag,
    parse_loan,
    parse_monthly_inputs,
    schedule_to_dicts,
    summary_to_dict,
    terms_to_dict,
)
from finflow.logging_config import get_logger, setup_logging
from finflow.utils import money, to_decimal, to_optional_decimal
from finflow.waterfall import bucket_availability, compute_monthly_summary, compute_tax

settings = Settings.from_env()
setup_logging(settings)
logger = get_logger(__name__)

app = Flask(__name__)
app.config["FINFLOW_SETTINGS"] = settings
app.json.sort_keys = False


def _settings() -> Settings:
    return app.config["FINFLOW_SETTINGS"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _solve(data: dict):
    loan = parse_loan(data)
    return loan, solve_loan(loan, tenure_tolerance=_settings().tenure_tolerance)


def _limit_rows(rows: list, show_all: bool):
    """Trim a schedule to the configured preview size unless asked for all rows."""
    limit = _settings().max_schedule_rows
    if show_all or len(rows) <= limit:
        return rows, 0
    return rows[:limit], len(rows) - limit


@app.errorhandler(FinflowError)
@app.errorhandler(ValueError)
def handle_bad_input(exc):
    logger.warning("Rejected %s %s: %s", request.method, request.path, exc)
    return jsonify({"error": str(exc)}), 400


@app.get("/health")
def health():
    return jsonify({"status": "ok", "currency": _settings().currency})


@app.post("/api/loans/solve")
def solve():
    _, terms = _solve(_payload())
    return jsonify({"terms": terms_to_dict(terms), "currency": _settings().currency})


@app.post("/api/loans/schedule")
def schedule():
    data = _payload()
    loan, terms = _solve(data)
    show_all = parse_flag(data, "show_full_schedule", False)
    if parse_flag(data, "dates_only", False):
        rows = installments_to_dicts(build_installments(loan, terms))
        rows, truncated = _limit_rows(rows, show_all)
        return jsonify({"terms": terms_to_dict(terms), "installments": rows, "truncated": truncated})

    entries, summary = compute_schedule(loan, terms)
    rows, truncated = _limit_rows(schedule_to_dicts(entries), show_all)
    return jsonify(
        {
            "terms": terms_to_dict(terms),
            "summary": summary,
            "schedule": rows,
            "truncated": truncated,
        }
    )


@app.post("/api/loans/installments")
def installment_status():
    """Overdue, current-month and upcoming installments for a reference month."""
    data = _payload()
    month = int(data.get("month") or 0)
    year = int(data.get("year") or 0)
    loan = parse_loan(data)
    installments = loan.installments
    if not installments:
        terms = solve_loan(loan, tenure_tolerance=_settings().tenure_tolerance)
        installments = build_installments(loan, terms)
    limit = data.get("upcoming_limit", 3)
    overdue, current, upcoming = classify_installments(
        installments, month, year, upcoming_limit=int(limit) if limit is not None else None
    )
    return jsonify(
        {
            "month": month,
            "year": year,
            "overdue": installments_to_dicts(overdue),
            "current": installments_to_dicts(current),
            "upcoming": installments_to_dicts(upcoming),
        }
    )


@app.post("/api/tax/calculate")
def tax():
    data = _payload()
    rule = TaxRule(
        mode=parse_enum(TaxMode, data.get("mode", ""), "tax mode"),
        percent=to_optional_decimal(data.get("percent")),
        fixed_amount=to_optional_decimal(data.get("fixed_amount")),
    )
    gross = to_decimal(data.get("gross", 0))
    amount, effective = compute_tax(rule, gross)
    return jsonify(
        {
            "gross": float(money(gross)),
            "tax": float(money(amount)),
            "tax_percent": float(money(effective)),
            "after_tax": float(money(gross - amount)),
        }
    )


@app.post("/api/monthly-summary")
def monthly_summary():
    inputs = parse_monthly_inputs(_payload())
    result = compute_monthly_summary(inputs)
    return jsonify({"summary": summary_to_dict(result), "currency": _settings().currency})


@app.post("/api/allocations/<bucket>")
def allocation_availability(bucket: str):
    bucket_id = parse_enum(Bucket, bucket, "bucket")
    inputs = parse_monthly_inputs(_payload())
    pool = compute_monthly_summary(inputs).available_for_investment
    availability = bucket_availability(bucket_id, inputs.allocations, inputs.sips, pool)
    if availability is None:
        return jsonify({"error": f"No allocation found for bucket {bucket_id.value}"}), 404
    return jsonify(availability_to_dict(availability))


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5000"))
    logger.info("Starting finflow web API on port %d", port)
    app.run(host="127.0.0.1", port=port, debug=False)
