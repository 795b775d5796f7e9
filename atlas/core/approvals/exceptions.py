"""Approval engine exceptions.

Each error carries the HTTP status the API layer answers with.
"""


class ApprovalError(Exception):
    """Base error for approval engine."""
    status_code = 400
    code = 'approval_error'

    def __init__(self, message='', **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ApprovalError):
    """Malformed or missing submission fields."""
    status_code = 400
    code = 'validation_error'


class UnsupportedRequestTypeError(ValidationError):
    """No workflow template exists for the request type."""
    code = 'unsupported_request_type'


class ForbiddenError(ApprovalError):
    """Hierarchy or ownership violation."""
    status_code = 403
    code = 'forbidden'


class NotFoundError(ApprovalError):
    """Unknown request, step, user or role."""
    status_code = 404
    code = 'not_found'


class ConflictError(ApprovalError):
    """Stale state: step or request already processed."""
    status_code = 409
    code = 'already_processed'


class NotUnlockedError(ConflictError):
    """A lower approval level is not approved yet."""
    code = 'not_unlocked'


class NoApproverError(ApprovalError):
    """No step of the chain could be bound to an approver."""
    status_code = 422
    code = 'no_approver'
