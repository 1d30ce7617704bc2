"""HTTP error kinds surfaced by authentication and the access resolver.

All are werkzeug HTTPExceptions so the global handler in create_app renders them in
the standard ``{'error': {...}}`` shape. ``error_code`` is stable for clients; the
optional ``reason`` narrows a PermissionDenied for UI messaging.
"""
from __future__ import annotations
from typing import Optional
from werkzeug.exceptions import Unauthorized, Forbidden, NotFound, ServiceUnavailable


class Unauthenticated(Unauthorized):
    error_code = 'unauthenticated'
    description = 'Authentication required'


class AccountBlocked(Forbidden):
    error_code = 'account_blocked'
    description = 'Account is blocked'


class EmailNotVerified(Forbidden):
    error_code = 'email_not_verified'
    description = 'Email address has not been verified'


class ResourceNotFound(NotFound):
    error_code = 'resource_not_found'
    description = 'Resource not found'


class PermissionDenied(Forbidden):
    error_code = 'forbidden'
    description = 'You do not have permission to perform this action'

    def __init__(self, description: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(description=description)
        self.reason = reason


class LookupFailure(ServiceUnavailable):
    error_code = 'lookup_error'
    description = 'Authorization data is temporarily unavailable'


def error_payload(status: int, title: str, detail: str, code: Optional[str] = None, reason: Optional[str] = None):
    body = {'status': status, 'title': title, 'detail': detail}
    if code:
        body['code'] = code
    if reason:
        body['reason'] = reason
    return {'error': body}

__all__ = ['Unauthenticated', 'AccountBlocked', 'EmailNotVerified', 'ResourceNotFound', 'PermissionDenied', 'LookupFailure', 'error_payload']
