"""Classification of cluster API errors."""

import json

from kubernetes.client.exceptions import ApiException

HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_GONE = 410


def _status(err: BaseException) -> int | None:
    if isinstance(err, ApiException):
        return err.status
    return None


def is_not_found(err: BaseException) -> bool:
    return _status(err) == HTTP_NOT_FOUND


def is_forbidden(err: BaseException) -> bool:
    return _status(err) == HTTP_FORBIDDEN


def is_method_not_supported(err: BaseException) -> bool:
    return _status(err) == HTTP_METHOD_NOT_ALLOWED


def is_gone(err: BaseException) -> bool:
    return _status(err) == HTTP_GONE


def is_wait_tolerable(err: BaseException) -> bool:
    """True for errors that make waiting impossible but not deletion/creation.

    If we are forbidden from listing/watching, or the resource does not
    support a verb we need, waiting is skipped instead of failing.
    """
    return is_forbidden(err) or is_method_not_supported(err)


def describe(err: BaseException) -> str:
    """One-line description of an error for user-facing output."""
    if isinstance(err, ApiException):
        message = ''
        if err.body:
            try:
                message = json.loads(err.body).get('message', '')
            except (ValueError, AttributeError):
                message = ''
        reason = message or err.reason or 'API error'
        return f"{reason} ({err.status})" if err.status else reason
    return str(err)
