"""
API Routes for the Valuation Service

REST endpoints over the agent's ValuationSession:
- Active valuation: read, edit target, start new
- Comparables: add, edit, delete
- Saved valuations: list, save, delete, load
- Import of comparables from CSV text or a sheet link

Operations that discard data need ``{"confirm": true}`` in the body when
there is something to lose; without it they answer 428.
"""

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from tasador import __version__
from tasador.exceptions import (
    DocumentStoreError,
    ImportParseError,
    NotConnectedError,
    NotFoundError,
    QuotaExceededError,
    TasadorError,
    ValidationError,
)
from tasador.logging_config import get_logger
from tasador.valuation.session import saved_summaries

logger = get_logger(__name__)

# Create blueprint
api = Blueprint("api", __name__, url_prefix="/api")

EXTENSION_KEY = "tasador"

# Most specific first
_STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (QuotaExceededError, 409),
    (ImportParseError, 422),
    (NotConnectedError, 503),
    (DocumentStoreError, 502),
]


def get_runner():
    return current_app.extensions[EXTENSION_KEY]


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _confirm_flag(data: Dict[str, Any]) -> bool:
    return bool(data.get("confirm", False))


def _confirmation_required(message: str):
    return jsonify({
        "status": "confirmation_required",
        "error": message,
    }), 428


def _snapshot_response(status_code: int = 200, **extra):
    runner = get_runner()

    async def snapshot():
        await runner.session.sync()
        return runner.session.snapshot()

    body = {"status": "success", "valuation": runner.run(snapshot)}
    body.update(extra)
    return jsonify(body), status_code


@api.errorhandler(TasadorError)
def handle_tasador_error(error: TasadorError):
    """Map domain errors to HTTP status codes."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            break
    else:
        status_code = 500

    if status_code >= 500:
        logger.error("Request failed: %s", error)
    else:
        logger.warning("Request rejected: %s", error)

    body = {"status": "error", "error": error.message, "type": type(error).__name__}
    field = getattr(error, "field", None)
    if field:
        body["field"] = field
    if getattr(error, "retryable", False):
        body["retryable"] = True
    return jsonify(body), status_code


# Health
@api.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    runner = get_runner()
    session = runner.session
    return jsonify({
        "status": "healthy" if runner.is_running else "unhealthy",
        "version": __version__,
        "agent_id": session.agent_id,
        "connected": session.active.is_connected,
    }), (200 if runner.is_running else 503)


# Active valuation
@api.route("/valuation", methods=["GET"])
def get_valuation():
    """Target, comparables with derived figures, statistics and value range."""
    return _snapshot_response()


@api.route("/valuation/target", methods=["PATCH"])
def update_target():
    """Merge fields into the target property."""
    data = _json_body()
    if not data:
        raise ValidationError("No fields to update")
    client_name = data.pop("clientName", None)

    runner = get_runner()

    async def apply():
        if client_name is not None:
            runner.session.set_client_name(str(client_name))
        if data:
            await runner.session.update_target(data)

    runner.run(apply)
    return _snapshot_response()


@api.route("/valuation/new", methods=["POST"])
def new_valuation():
    """Discard the working set and start a fresh valuation."""
    data = _json_body()
    runner = get_runner()
    started = runner.run(runner.session.new_valuation, confirmed=_confirm_flag(data))
    if not started:
        return _confirmation_required("Unsaved changes would be lost")
    return _snapshot_response()


# Comparables
@api.route("/comparables", methods=["POST"])
def add_comparable():
    """Append a comparable; missing numbers take their defaults."""
    data = _json_body()
    runner = get_runner()
    comparable = runner.run(runner.session.add_comparable, data)
    return _snapshot_response(201, comparable_id=comparable.id)


@api.route("/comparables/<comparable_id>", methods=["PATCH"])
def update_comparable(comparable_id: str):
    """Merge fields into one comparable."""
    data = _json_body()
    if not data:
        raise ValidationError("No fields to update")
    runner = get_runner()
    runner.run(runner.session.update_comparable, comparable_id, data)
    return _snapshot_response()


@api.route("/comparables/<comparable_id>", methods=["DELETE"])
def delete_comparable(comparable_id: str):
    """Remove one comparable (restored if the store rejects the delete)."""
    runner = get_runner()
    runner.run(runner.session.delete_comparable, comparable_id)
    return _snapshot_response()


# Saved valuations
@api.route("/saved", methods=["GET"])
def list_saved():
    """Saved valuations, newest first. Optional ?inmueble=<id> filter."""
    runner = get_runner()
    valuations = runner.run(runner.session.list_saved, request.args.get("inmueble"))
    return jsonify({
        "status": "success",
        "count": len(valuations),
        "saved": saved_summaries(valuations),
    })


@api.route("/saved", methods=["POST"])
def save_valuation():
    """Save the active valuation (updates the bound snapshot if any)."""
    data = _json_body()
    runner = get_runner()
    valuation_id = runner.run(
        runner.session.save,
        data.get("clientName"),
        data.get("inmuebleId"),
    )
    logger.info("Saved valuation %s via API", valuation_id)
    return _snapshot_response(201, valuation_id=valuation_id)


@api.route("/saved/<valuation_id>", methods=["DELETE"])
def delete_saved(valuation_id: str):
    """Delete a saved valuation. Always requires confirmation."""
    data = _json_body()
    runner = get_runner()
    deleted = runner.run(runner.session.delete_saved, valuation_id, confirmed=_confirm_flag(data))
    if not deleted:
        return _confirmation_required("Deleting a saved valuation needs confirmation")
    return jsonify({"status": "success", "deleted": valuation_id})


@api.route("/saved/<valuation_id>/load", methods=["POST"])
def load_saved(valuation_id: str):
    """Replace the active valuation with a saved one."""
    data = _json_body()
    runner = get_runner()
    loaded = runner.run(runner.session.load, valuation_id, confirmed=_confirm_flag(data))
    if loaded is None:
        return _confirmation_required("Unsaved changes would be lost")
    return _snapshot_response()


# Import
@api.route("/import", methods=["POST"])
def import_comparables():
    """Import comparables from ``{"url": ...}`` or ``{"csv": ...}``."""
    data = _json_body()
    runner = get_runner()

    if data.get("url"):
        report = runner.run(runner.session.import_from_sheet, str(data["url"]))
    elif data.get("csv"):
        report = runner.run(runner.session.import_from_table, str(data["csv"]), "request")
    else:
        raise ValidationError("Provide 'url' or 'csv'", field="url")

    return _snapshot_response(201, report=report.to_dict())


def register_routes(app):
    """Register API routes with Flask app."""
    app.register_blueprint(api)
    logger.info("API routes registered")
