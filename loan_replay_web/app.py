import logging
import os
from uuid import uuid4

from flask import Flask, jsonify, request, session

from loan_replay.log import configure_logging
from loan_replay.operations import (
    InvalidOperationError,
    OperationNotFoundError,
    PaymentPlan,
    compare_summaries,
    summary_history,
)
from loan_replay.serialization import (
    loan_input_from_dict,
    loan_input_to_dict,
    operation_to_dict,
    parameters_from_dict,
    record_to_dict,
    summary_to_dict,
)
from loan_replay.validation import validate_loan_input
from loan_replay_web.plan_store import create_store_from_env

logger = logging.getLogger(__name__)


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _error(message: str, status: int = 400, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


def _impact_to_dict(impact):
    if impact is None:
        return None
    return {
        "value": float(impact.value),
        "is_positive": impact.is_positive,
        "percentage": float(impact.percentage),
    }


def _plan_payload(plan_id: str, plan) -> dict:
    operations = []
    for op in plan.operations:
        data = operation_to_dict(op)
        data["impact"] = {
            key: _impact_to_dict(value)
            for key, value in compare_summaries(op.before_summary, op.after_summary).items()
        }
        operations.append(data)
    return {
        "id": plan_id,
        "loan": loan_input_to_dict(plan.loan_input),
        "summary": summary_to_dict(plan.summary),
        "initial_summary": summary_to_dict(plan.initial_summary),
        "history": [
            {
                "title": entry.title,
                "operation_id": entry.operation.id if entry.operation else None,
                "summary": summary_to_dict(entry.summary),
                "savings": float(entry.savings) if entry.savings is not None else None,
            }
            for entry in summary_history(plan)
        ],
        "operations": operations,
        "schedule": [record_to_dict(r) for r in plan.schedule],
    }


def create_app(store=None) -> Flask:
    """Build the JSON API around a plan store.

    Without an explicit ``store`` one is created from
    ``LOAN_REPLAY_DATABASE_URL`` (SQLite by default).
    """
    configure_logging()
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    if store is None:
        store = create_store_from_env(
            os.environ.get("LOAN_REPLAY_DATABASE_URL"),
            max_per_user=int(os.environ.get("LOAN_REPLAY_MAX_PLANS", "10")),
        )
    app.config["PLAN_STORE"] = store

    def load_or_404(plan_id: str):
        plan = store.load_plan(_ensure_user_token(), plan_id)
        if plan is None:
            return None, _error(f"Plan {plan_id} not found", 404)
        return plan, None

    @app.get("/plans")
    def list_plans():
        return jsonify({"plans": store.list_plans(_ensure_user_token())})

    @app.post("/plans")
    def create_plan():
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return _error("Request body must be a JSON object")
        loan_data = data.get("loan", data)
        if not isinstance(loan_data, dict):
            return _error("Loan must be a JSON object")
        try:
            loan_input = loan_input_from_dict(loan_data)
        except ValueError as exc:
            return _error(str(exc))
        errors = validate_loan_input(loan_input)
        if errors:
            return _error(
                "Invalid loan input",
                errors=[{"field": e.field, "message": e.message} for e in errors],
            )
        plan_id = uuid4().hex
        name = str(data.get("name", "")).strip() or "Plan"
        store.add_plan(_ensure_user_token(), plan_id, name, loan_input)
        plan = PaymentPlan(loan_input)
        logger.info("Created plan %s", plan_id)
        return jsonify(_plan_payload(plan_id, plan)), 201

    @app.get("/plans/<plan_id>")
    def get_plan(plan_id):
        plan, error = load_or_404(plan_id)
        if error:
            return error
        return jsonify(_plan_payload(plan_id, plan))

    @app.delete("/plans/<plan_id>")
    def delete_plan(plan_id):
        if not store.remove_plan(_ensure_user_token(), plan_id):
            return _error(f"Plan {plan_id} not found", 404)
        return "", 204

    @app.post("/plans/<plan_id>/operations")
    def add_operation(plan_id):
        plan, error = load_or_404(plan_id)
        if error:
            return error
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return _error("Request body must be a JSON object")
        raw_parameters = data.get("parameters") or {}
        if not isinstance(raw_parameters, dict):
            return _error("Operation parameters must be a JSON object")
        try:
            target_period = int(data["target_period"])
            parameters = parameters_from_dict(str(data.get("type", "")), raw_parameters)
            op = plan.add_operation(target_period, parameters)
        except KeyError as exc:
            return _error(f"Missing field: {exc.args[0]}")
        except InvalidOperationError as exc:
            return _error(str(exc), errors=[{"field": e.field, "message": e.message} for e in exc.errors])
        except (TypeError, ValueError) as exc:
            return _error(str(exc))
        store.save_operations(_ensure_user_token(), plan_id, plan.operations)
        payload = _plan_payload(plan_id, plan)
        payload["operation_id"] = op.id
        return jsonify(payload), 201

    @app.delete("/plans/<plan_id>/operations/<op_id>")
    def delete_operation(plan_id, op_id):
        plan, error = load_or_404(plan_id)
        if error:
            return error
        try:
            plan.delete_operation(op_id)
        except OperationNotFoundError:
            return _error(f"Operation {op_id} not found", 404)
        store.save_operations(_ensure_user_token(), plan_id, plan.operations)
        return jsonify(_plan_payload(plan_id, plan))

    @app.post("/plans/<plan_id>/operations/<op_id>/revert")
    def revert_operation(plan_id, op_id):
        plan, error = load_or_404(plan_id)
        if error:
            return error
        try:
            plan.revert_to(op_id)
        except OperationNotFoundError:
            return _error(f"Operation {op_id} not found", 404)
        store.save_operations(_ensure_user_token(), plan_id, plan.operations)
        return jsonify(_plan_payload(plan_id, plan))

    return app


if __name__ == "__main__":
    print("Starting Loan Replay web app...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
