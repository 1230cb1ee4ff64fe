from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400
    error_code = "bad_request"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message, "code": self.error_code}


# ---------- validation: rejected before any external call ----------
class ValidationError(AppError):
    error_code = "validation_error"


class MissingGuestInfo(ValidationError):
    error_code = "missing_guest_info"

    def __init__(self, missing=None):
        self.missing = list(missing or [])
        detail = ", ".join(self.missing) if self.missing else "guest_name, guest_email, guest_phone"
        super().__init__(f"Guest bookings require {detail}")


class FeeReconciliationMismatch(ValidationError):
    status_code = 422
    error_code = "fee_reconciliation_mismatch"


class ServiceNotFound(ValidationError):
    error_code = "service_not_found"

    def __init__(self, message="Service not found or missing price"):
        super().__init__(message)


class ProviderNotFound(AppError):
    status_code = 404
    error_code = "provider_not_found"

    def __init__(self, message="Barber not found"):
        super().__init__(message)


class ProviderNotPaymentReady(AppError):
    status_code = 503
    error_code = "provider_not_payment_ready"

    def __init__(self, message="Barber account is not ready to accept payments"):
        super().__init__(message)


class InvalidStatusTransition(AppError):
    status_code = 409
    error_code = "invalid_status_transition"


# ---------- upstream dependencies ----------
class PaymentProcessorError(AppError):
    status_code = 502
    error_code = "payment_processor_unavailable"

    def __init__(self, message="The payment system could not be reached", retryable=False):
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self):
        body = super().to_dict()
        body["retryable"] = self.retryable
        return body


class PaymentDeclined(AppError):
    status_code = 402
    error_code = "payment_declined"

    def __init__(self, message="Your payment method was declined"):
        super().__init__(message)


class BookingPersistenceError(AppError):
    status_code = 500
    error_code = "booking_persistence_failed"

    def __init__(self, message="The booking could not be saved"):
        super().__init__(message)


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        if err.status_code >= 500:
            app.logger.error("%s: %s", type(err).__name__, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify(error="Conflict. Resource already exists."), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify(error="Bad request"), 400

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify(error="Method not allowed"), 405

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify(error="Internal server error"), 500
