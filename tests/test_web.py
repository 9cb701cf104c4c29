import pytest

from loan_replay_web.app import create_app
from loan_replay_web.plan_store import PlanStore

LOAN = {
    "principal": 1000000,
    "annual_rate_percent": 4.5,
    "term_months": 360,
    "start_date": "2024-01-01",
    "payment_type": "equal-payment",
}


@pytest.fixture
def store(tmp_path):
    return PlanStore(f"sqlite:///{tmp_path / 'plans.sqlite3'}", max_per_user=3)


@pytest.fixture
def client(store):
    app = create_app(store)
    app.config["TESTING"] = True
    return app.test_client()


def _create(client, **overrides):
    response = client.post("/plans", json={"name": "Home", "loan": {**LOAN, **overrides}})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_create_and_fetch_plan(client):
    created = _create(client)
    assert created["summary"]["monthly_payment"] == 5066.85
    assert len(created["schedule"]) == 360

    fetched = client.get(f"/plans/{created['id']}").get_json()
    assert fetched["summary"] == created["summary"]
    assert fetched["operations"] == []

    listing = client.get("/plans").get_json()["plans"]
    assert [p["name"] for p in listing] == ["Home"]


def test_invalid_loan_is_rejected(client):
    response = client.post("/plans", json={"loan": {**LOAN, "principal": -1}})
    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "principal"

    response = client.post("/plans", json={"loan": {"principal": 1000}})
    assert response.status_code == 400


def test_operation_lifecycle(client):
    plan_id = _create(client)["id"]

    response = client.post(
        f"/plans/{plan_id}/operations",
        json={"type": "rate-adjustment", "target_period": 12, "parameters": {"new_rate_percent": 5.5}},
    )
    assert response.status_code == 201
    rate_op = response.get_json()["operation_id"]

    response = client.post(
        f"/plans/{plan_id}/operations",
        json={
            "type": "prepayment",
            "target_period": 24,
            "parameters": {"amount": 100000, "mode": "reduce-term"},
        },
    )
    body = response.get_json()
    assert response.status_code == 201
    assert body["summary"]["total_periods"] < 360
    assert body["operations"][1]["impact"]["total_periods"]["is_positive"] is False
    assert body["history"][-1]["title"] == "Plan 2: Prepayment"

    # reloading replays the stored log
    reloaded = client.get(f"/plans/{plan_id}").get_json()
    assert reloaded["summary"] == body["summary"]
    assert reloaded["schedule"][12]["adjustment_kind"] == "rate"

    reverted = client.post(f"/plans/{plan_id}/operations/{rate_op}/revert").get_json()
    assert [op["id"] for op in reverted["operations"]] == [rate_op]
    assert reverted["summary"]["total_periods"] == 360

    deleted = client.delete(f"/plans/{plan_id}/operations/{rate_op}").get_json()
    assert deleted["operations"] == []
    assert deleted["summary"] == deleted["initial_summary"]


def test_operation_errors(client):
    plan_id = _create(client)["id"]
    response = client.post(
        f"/plans/{plan_id}/operations",
        json={"type": "payment-adjustment", "target_period": 1, "parameters": {"new_payment_amount": 1}},
    )
    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "new_payment_amount"

    response = client.post(f"/plans/{plan_id}/operations", json={"type": "holiday", "target_period": 1})
    assert response.status_code == 400

    response = client.post(f"/plans/{plan_id}/operations", json={"type": "prepayment"})
    assert response.status_code == 400

    assert client.delete(f"/plans/{plan_id}/operations/nope").status_code == 404
    assert client.post(f"/plans/{plan_id}/operations/nope/revert").status_code == 404


def test_plans_are_scoped_to_the_session(client, store):
    plan_id = _create(client)["id"]
    other = create_app(store).test_client()
    assert other.get(f"/plans/{plan_id}").status_code == 404
    assert other.get("/plans").get_json()["plans"] == []


def test_delete_plan_and_trim(client):
    for _ in range(4):
        _create(client)
    listing = client.get("/plans").get_json()["plans"]
    assert len(listing) == 3
    plan_id = listing[-1]["id"]
    assert client.delete(f"/plans/{plan_id}").status_code == 204
    assert client.get(f"/plans/{plan_id}").status_code == 404
    assert client.delete(f"/plans/{plan_id}").status_code == 404


@pytest.mark.parametrize("body", [[1, 2], "loan", 5, {"loan": 5}, {"loan": ["x"]}])
def test_non_object_plan_body_is_rejected(client, body):
    response = client.post("/plans", json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_non_object_operation_body_is_rejected(client):
    plan_id = _create(client)["id"]
    response = client.post(f"/plans/{plan_id}/operations", json=[{"type": "prepayment"}])
    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object"

    response = client.post(
        f"/plans/{plan_id}/operations",
        json={"type": "prepayment", "target_period": 12, "parameters": [100000]},
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "Operation parameters must be a JSON object"
