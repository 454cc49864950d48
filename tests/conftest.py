import pytest


@pytest.fixture()
def monthly_payload():
    """One month of ledger records for a single user (March 2024)."""
    return {
        "month": 3,
        "year": 2024,
        "salaries": [{"monthly": "100000", "effective_from": "2024-01-01"}],
        "incomes": [{"amount": "5000", "date": "2024-03-15", "source": "freelance"}],
        "tax_rule": {"mode": "PERCENTAGE", "percent": "10"},
        "loans": [
            {
                "name": "car",
                "principal": "120000",
                "annual_rate_percent": "0",
                "tenure": 12,
                "start_date": "2024-01-05",
                "installments": [
                    {
                        "sequence_number": 1,
                        "due_date": "2024-02-05",
                        "amount": "10000",
                        "paid": True,
                        "paid_date": "2024-02-05",
                    },
                    {
                        "sequence_number": 2,
                        "due_date": "2024-03-05",
                        "amount": "10000",
                        "paid": True,
                        "paid_date": "2024-03-06",
                    },
                    {"sequence_number": 3, "due_date": "2024-04-05", "amount": "10000"},
                ],
            }
        ],
        "sips": [
            {"amount": "5000", "frequency": "MONTHLY", "anchor_date": "2024-01-10", "bucket": "MUTUAL_FUND"},
            {"amount": "12000", "frequency": "YEARLY", "anchor_date": "2023-06-01", "bucket": "GOLD"},
        ],
        "expenses": [
            {"amount": "20000", "date": "2024-03-02", "category": "rent"},
            {"amount": "999", "date": "2024-02-20", "category": "food"},
        ],
        "allocations": [
            {"bucket": "MUTUAL_FUND", "type": "PERCENTAGE", "percent": "60"},
            {"bucket": "GOLD", "type": "AMOUNT", "fixed_amount": "5000"},
        ],
        "sip_executions": [
            {"amount": "5000", "execution_date": "2024-03-10", "status": "SUCCESS"},
            {"amount": "5000", "execution_date": "2024-03-11", "status": "FAILED"},
        ],
        "purchases": [
            {"quantity": "2", "price": "1000", "purchase_date": "2024-03-20", "current_price": "1100"}
        ],
        "member_transactions": [
            {"amount": "1500", "date": "2024-03-12", "transaction_type": "GAVE"},
        ],
    }
