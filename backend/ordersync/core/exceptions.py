"""
Error taxonomy of the synchronization engine.

Services raise these; the HTTP layer maps each one to a status code
(see the exception handlers registered in ordersync.main).
"""


class OrderSyncError(Exception):
    """Base error."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class AuthenticationError(OrderSyncError):
    """Missing or invalid caller JWT on a management endpoint."""

    status_code = 401


class AuthorizationError(OrderSyncError):
    """Caller is not allowed to act on the target business."""

    status_code = 403


class SignatureVerificationError(OrderSyncError):
    """Webhook signature missing or mismatched."""

    status_code = 401


class IntegrationNotFoundError(OrderSyncError):
    """No connected integration for the store; the provider may retry later."""

    status_code = 404


class OrderNotFoundError(OrderSyncError):
    status_code = 404


class ValidationError(OrderSyncError):
    """
    Payload or request body is malformed.

    Webhooks acknowledge these with 200 and drop the payload;
    management endpoints answer 400.
    """

    status_code = 400


class ProviderAPIError(OrderSyncError):
    """Outbound call to a provider failed. Recorded on the order, never raised to the UI."""

    status_code = 502

    def __init__(self, message: str = "", status_code: int = None):
        super().__init__(message)
        self.response_status = status_code
