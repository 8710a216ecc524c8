"""
Error taxonomy for the QuickBooks integration and the posting pipeline.

Each exception carries the HTTP status a view should answer with when the
error aborts a whole request.
"""


class QuickBooksError(Exception):
    """Base exception for all integration errors"""
    status_code = 500

    def __init__(self, message, error_code=None, context=None):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(message)


class AuthenticationError(QuickBooksError):
    """No credential, or credential expired beyond refresh"""
    status_code = 401


class TransientNetworkError(QuickBooksError):
    """Network failure that persisted through every retry"""
    status_code = 503


class RemoteFault(QuickBooksError):
    """Business-rule rejection returned by QuickBooks"""
    status_code = 502


class ValidationError(QuickBooksError):
    """Input is missing a required field or is malformed"""
    status_code = 400


class UnsupportedKindError(ValidationError):
    """Transaction kind has no posting mapping"""
    pass


class OffsetAccountError(ValidationError):
    """Offset bank account cannot be resolved for a batch"""
    pass


class RealmOwnershipError(QuickBooksError):
    """Company is actively connected by a different user"""
    status_code = 403
