import pytest

from finflow.loaders import parse_flag, parse_installment, parse_monthly_inputs


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), (False, False), ("false", False), ("True", True), ("no", False), (1, True), (0, False)],
)
def test_parse_flag_reads_booleans_and_words(value, expected):
    assert parse_flag({"paid": value}, "paid", default=not expected) is expected


def test_parse_flag_default_when_missing():
    assert parse_flag({}, "is_active", True) is True
    assert parse_flag({"is_active": None}, "is_active", False) is False


@pytest.mark.parametrize("value", ["maybe", 2, 1.0, [], {}])
def test_parse_flag_rejects_other_values(value):
    with pytest.raises(ValueError):
        parse_flag({"settled": value}, "settled", False)


def test_string_false_keeps_installment_unpaid():
    inst = parse_installment(
        {"sequence_number": 1, "due_date": "2024-03-05", "amount": "1000", "paid": "false"}
    )
    assert inst.paid is False


def test_string_flags_in_ledger_records(monthly_payload):
    monthly_payload["member_transactions"].append(
        {"amount": "700", "date": "2024-03-14", "transaction_type": "OWE", "settled": "true"}
    )
    monthly_payload["purchases"][0]["one_time"] = "false"
    monthly_payload["sips"][0]["is_active"] = "false"
    inputs = parse_monthly_inputs(monthly_payload)
    assert inputs.member_balance.borrowed == 0
    assert inputs.one_time_purchases == 0
    assert inputs.sips[0].commitment.is_active is False
