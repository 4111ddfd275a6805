"""Error taxonomy for the logo processing pipeline.

Every failure that aborts a request is one of the classes below. The Flask
layer turns any of them into a single ``{"success": false, ...}`` body with
status 500.
"""
import logging

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Failed to process image."


class LogoProcessingError(Exception):
    """Base class for request-terminating pipeline failures"""

    def __init__(self, message=GENERIC_ERROR_MESSAGE, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class MalformedInputError(LogoProcessingError):
    pass


class ConfigurationError(LogoProcessingError):
    pass


class AuthenticationError(LogoProcessingError):
    pass


class QuotaExceededError(LogoProcessingError):
    pass


class RateLimitError(LogoProcessingError):
    pass


class BadRequestError(LogoProcessingError):
    pass


class VectorizationError(LogoProcessingError):
    pass


class UpstreamError(LogoProcessingError):
    def __init__(self, message=GENERIC_ERROR_MESSAGE, details=None, status_code=None):
        super().__init__(message, details)
        self.status_code = status_code


def _response_payload(response):
    """Return the decoded JSON body of a response, or its text when it is not JSON"""
    try:
        return response.json()
    except ValueError:
        text = response.text
        return text[:500] if text else None


def _remote_message(payload):
    """Pull a human-readable message out of a remote error body"""
    if not isinstance(payload, dict):
        return None

    message = payload.get("message")
    if isinstance(message, str) and message:
        return message

    error = payload.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict):
        nested = error.get("message") or error.get("title")
        if nested:
            return nested

    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        return errors[0].get("title")

    return None


def error_from_response(service, response):
    """Map a non-2xx HTTP response from ``service`` onto the error taxonomy.

    402 means the account ran out of credits, 401/403 a rejected credential,
    429 throttling and 400 an input the service could not read. Everything
    else is an UpstreamError carrying the remote message when there is one.
    """
    status = response.status_code
    payload = _response_payload(response)
    logger.error(f"{service} returned HTTP {status}: {payload}")

    if status == 402:
        return QuotaExceededError(
            f"{service} credits exhausted. Please check your account.", details=payload
        )
    if status == 401:
        return AuthenticationError(
            f"{service} authentication failed. Please check your API keys.", details=payload
        )
    if status == 403:
        return AuthenticationError(
            f"{service} API key is invalid or lacks access to this API.", details=payload
        )
    if status == 429:
        return RateLimitError(
            f"{service} rate limit exceeded. Please try again later.", details=payload
        )
    if status == 400:
        return BadRequestError(
            "Bad request. The image may be corrupted or in an unsupported format.",
            details=payload,
        )

    message = _remote_message(payload) or GENERIC_ERROR_MESSAGE
    return UpstreamError(message, details=payload, status_code=status)


def to_response_body(error):
    """Build the JSON error body returned to the caller"""
    body = {"success": False, "error": error.message}
    if error.details is not None:
        body["details"] = error.details
    return body
