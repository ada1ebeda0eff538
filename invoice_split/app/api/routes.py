"""HTTP routes for the Flask API."""

from dataclasses import asdict
from http import HTTPStatus
from typing import Any, Dict, Optional

from flask import Blueprint, Response, current_app, jsonify, request
from pydantic import ValidationError

from invoice_split.core.cache import CalculationCache
from invoice_split.core.ping import get_ping_message, get_service_version
from invoice_split.core.split import calculate_invoice_split
from invoice_split.core.steps import render_calculation_steps
from invoice_split.schemas.ping import PingResponse
from invoice_split.schemas.split import CalculationInput, CalculationResult

EXTENSION_KEY = "invoice_split"

api_bp = Blueprint("api", __name__)


def _cache() -> Optional[CalculationCache]:
    return current_app.extensions[EXTENSION_KEY]["cache"]


def _calculate_from_request() -> CalculationResult:
    raw_payload: Dict[str, Any] = request.get_json(force=True, silent=False)
    calc_input = CalculationInput.model_validate(raw_payload)
    cache = _cache()
    if cache is None:
        return calculate_invoice_split(calc_input)
    return cache.get_or_calculate(calc_input)


def _status_for(result: CalculationResult) -> HTTPStatus:
    return HTTPStatus.OK if result.ok else HTTPStatus.BAD_REQUEST


@api_bp.errorhandler(ValidationError)
def _handle_validation_error(exc: ValidationError):
    """Convert Pydantic validation errors into JSON responses."""
    return jsonify({"detail": exc.errors(include_url=False)}), HTTPStatus.UNPROCESSABLE_ENTITY


@api_bp.get("/ping")
def ping() -> Any:
    """Health-check endpoint."""
    response = PingResponse(message=get_ping_message(), version=get_service_version())
    return jsonify(response.model_dump())


@api_bp.post("/calc/split")
def split() -> Any:
    """Split the posted amounts across calendar periods.

    Input errors the engine detects come back as 400 with the zeroed result,
    so ``calculationSteps.error`` can be shown next to the form.
    """
    result = _calculate_from_request()
    return jsonify(result.model_dump(mode="json")), _status_for(result)


@api_bp.post("/calc/split/steps")
def split_steps() -> Any:
    """Same calculation, rendered as the human-readable step trace."""
    result = _calculate_from_request()
    body = "\n".join(render_calculation_steps(result)) + "\n"
    return Response(body, status=_status_for(result), mimetype="text/plain")


@api_bp.get("/cache/stats")
def cache_stats() -> Any:
    cache = _cache()
    if cache is None:
        return jsonify({"enabled": False})
    return jsonify({"enabled": True, **asdict(cache.stats())})


@api_bp.delete("/cache")
def clear_cache() -> Any:
    cache = _cache()
    if cache is not None:
        cache.clear()
    return "", HTTPStatus.NO_CONTENT
