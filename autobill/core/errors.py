from typing import Optional


class AutobillError(Exception):
    """Base class for every error the billing job raises on purpose."""


class ConfigurationError(AutobillError):
    pass


class ConnectivityError(AutobillError):
    pass


class InvoiceDataError(AutobillError):
    """Record data that must not be submitted to the invoicing API."""


class ExternalServiceError(AutobillError):
    retryable = False

    def __init__(self, service: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


class TransientServiceError(ExternalServiceError):
    retryable = True


class AuthenticationRejected(TransientServiceError):
    pass


class RequestRejected(ExternalServiceError):
    """The API refused the request itself; sending it again will not help."""


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ExternalServiceError) and exc.retryable


def error_for_status(service: str, status_code: int, detail: str) -> ExternalServiceError:
    message = f"responded with {status_code}: {detail}"
    if status_code == 401:
        return AuthenticationRejected(service, message, status_code)
    if status_code == 429 or status_code >= 500:
        return TransientServiceError(service, message, status_code)
    return RequestRejected(service, message, status_code)
