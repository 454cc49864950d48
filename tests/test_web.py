import pytest

from finflow_web.app import app


@pytest.fixture()
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


LOAN = {"principal": 500000, "annual_rate_percent": 8.5, "tenure": 60, "start_date": "2024-01-01"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_solve_loan(client):
    response = client.post("/api/loans/solve", json=LOAN)
    assert response.status_code == 200
    terms = response.get_json()["terms"]
    assert terms["tenure"] == 60
    assert terms["installment_amount"] == pytest.approx(10258.27, abs=1)


def test_solve_requires_tenure_or_installment(client):
    payload = {k: v for k, v in LOAN.items() if k != "tenure"}
    response = client.post("/api/loans/solve", json=payload)
    assert response.status_code == 400
    assert "Either tenure or installment amount" in response.get_json()["error"]


def test_rejects_non_json_body(client):
    response = client.post("/api/loans/solve", data="principal=1", content_type="text/plain")
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_rejects_missing_field(client):
    response = client.post("/api/loans/solve", json={"principal": 1000, "tenure": 12})
    assert response.status_code == 400
    assert "start_date" in response.get_json()["error"]


def test_schedule_is_truncated_to_preview(client):
    response = client.post("/api/loans/schedule", json={**LOAN, "tenure": 240})
    data = response.get_json()
    assert response.status_code == 200
    assert len(data["schedule"]) == 120
    assert data["truncated"] == 120
    assert data["summary"]["payments"] == 240


def test_full_schedule_on_request(client):
    response = client.post("/api/loans/schedule", json={**LOAN, "tenure": 240, "show_full_schedule": True})
    data = response.get_json()
    assert len(data["schedule"]) == 240
    assert data["truncated"] == 0


def test_schedule_dates_only(client):
    payload = {"principal": 12000, "annual_rate_percent": 0, "tenure": 3, "start_date": "2024-01-31",
               "dates_only": True}
    data = client.post("/api/loans/schedule", json=payload).get_json()
    assert [row["due_date"] for row in data["installments"]] == ["2024-02-29", "2024-03-31", "2024-04-30"]
    assert all(row["amount"] == 4000 for row in data["installments"])


def test_tax_calculation(client):
    response = client.post(
        "/api/tax/calculate", json={"gross": 100000, "mode": "HYBRID", "percent": 5, "fixed_amount": 2000}
    )
    data = response.get_json()
    assert data["tax"] == 7000
    assert data["tax_percent"] == 7
    assert data["after_tax"] == 93000


def test_tax_rejects_unknown_mode(client):
    response = client.post("/api/tax/calculate", json={"gross": 100000, "mode": "FLAT"})
    assert response.status_code == 400


def test_monthly_summary(client, monthly_payload):
    response = client.post("/api/monthly-summary", json=monthly_payload)
    assert response.status_code == 200
    summary = response.get_json()["summary"]
    assert summary["gross_income"] == 105000
    assert summary["available_for_investment"] == 59500
    assert summary["reconciliation"]["cash_remaining"] == 59000
    assert summary["returns"]["return_percent"] == 10
    assert [s["name"] for s in summary["stages"]][0] == "gross_income"


def test_bucket_availability(client, monthly_payload):
    response = client.post("/api/allocations/mutual_fund", json=monthly_payload)
    assert response.status_code == 200
    data = response.get_json()
    assert data["total_allocation"] == 35700
    assert data["existing_sips"] == 5000
    assert data["available"] == 30700


def test_bucket_availability_errors(client, monthly_payload):
    assert client.post("/api/allocations/bonds", json=monthly_payload).status_code == 400
    assert client.post("/api/allocations/crypto", json=monthly_payload).status_code == 404


def test_installment_status_for_reference_month(client):
    payload = {
        "principal": 120000,
        "annual_rate_percent": 0,
        "tenure": 12,
        "start_date": "2024-01-01",
        "month": 5,
        "year": 2024,
        "installments": [
            {"sequence_number": i, "due_date": f"2024-{i + 1:02d}-01", "amount": 10000, "paid": i in (1, 5)}
            for i in range(1, 12)
        ],
    }
    data = client.post("/api/loans/installments", json=payload).get_json()
    assert [row["sequence_number"] for row in data["overdue"]] == [2, 3]
    assert [row["sequence_number"] for row in data["current"]] == [4]
    assert [row["sequence_number"] for row in data["upcoming"]] == [6, 7, 8]


def test_installment_status_builds_schedule_when_missing(client):
    payload = {**LOAN, "month": 2, "year": 2024, "upcoming_limit": None}
    data = client.post("/api/loans/installments", json=payload).get_json()
    assert data["overdue"] == []
    assert [row["due_date"] for row in data["current"]] == ["2024-02-01"]
    assert len(data["upcoming"]) == 59


def test_installment_status_requires_month(client):
    response = client.post("/api/loans/installments", json=LOAN)
    assert response.status_code == 400
