"""Payment-flow endpoints called directly by the browser checkout.

Every response is ``{"success": ...}``; failures are always HTTP 400 with a
human-readable ``error`` and a stable ``error_kind``.
"""
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from services.notifications import send_confirmation_email
from services.payments import create_order, verify_payment
from services.qr import generate_qr_code
from utils.deps import booking_store, get_email_dispatcher, get_gateway, get_mailer
from utils.errors import ParkError, PersistenceError, ValidationError

functions_bp = Blueprint("functions", __name__)

FUNCTION_PATHS = (
    "/create-razorpay-order",
    "/verify-payment",
    "/generate-qr-code",
    "/send-confirmation-email",
)
CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
_ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _fail(exc: ParkError):
    return jsonify(exc.to_dict()), 400


def edge_function(fn):
    """POST-only JSON handler returning ``(body, status)``."""
    @wraps(fn)
    def wrapper():
        if request.method != "POST":
            return _fail(ValidationError(f"Method {request.method} not allowed"))

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}

        try:
            body, status = fn(data)
        except ParkError as exc:
            current_app.logger.warning("%s failed (%s): %s", request.path, exc.kind, exc.message)
            return _fail(exc)
        except SQLAlchemyError:
            current_app.logger.exception("%s failed on a database call", request.path)
            return _fail(PersistenceError("Database operation failed"))
        return jsonify(body), status
    return wrapper


@functions_bp.route("/create-razorpay-order", methods=_ANY_METHOD)
@edge_function
def create_razorpay_order(data):
    return create_order(booking_store(), get_gateway(), data), 200


@functions_bp.route("/verify-payment", methods=_ANY_METHOD)
@edge_function
def verify(data):
    body, ok = verify_payment(
        booking_store(),
        get_gateway(),
        data,
        on_confirmed=get_email_dispatcher(),
    )
    return body, 200 if ok else 400


@functions_bp.route("/generate-qr-code", methods=_ANY_METHOD)
@edge_function
def qr_code(data):
    return generate_qr_code(booking_store(), data), 200


@functions_bp.route("/send-confirmation-email", methods=_ANY_METHOD)
@edge_function
def confirmation_email(data):
    if not data.get("booking_id"):
        raise ValidationError("Missing booking_id")
    return send_confirmation_email(booking_store(), get_mailer(), data), 200
