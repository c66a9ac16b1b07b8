"""
Typed Exception Hierarchy for the TTL request kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (web handlers, dashboards, batch scripts) must react differently to
"the approver forgot a comment" and "somebody else approved this a second
ago".  Parsing messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        executor.apply(request_id, Action.DENY, actor, comment="")
    except MissingCommentError as e:
        show_inline(e.action)              # re-prompt, nothing changed
    except ConflictError:
        reload_and_retry()                 # someone else moved the request

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TTLKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingCommentError
    |   +-- InvalidCostError
    |   +-- InvalidLinkError
    |   +-- EmptyRequestError
    |
    +-- InvalidTransitionError
    |   +-- UnauthorizedActorError
    |   +-- ItemEditNotAllowedError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- RequestItemNotFoundError
    |   +-- ApproverNotFoundError
    |   +-- BudgetNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- NotificationError
    |   +-- DispatchError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|-----------------------------------
Validation    | MISSING_COMMENT           | Deny/Reapprove with blank comment
              | INVALID_COST              | Cost not numeric or negative
              | INVALID_LINK              | Item link is not an http(s) URL
              | EMPTY_REQUEST             | Send on a request without items
--------------|---------------------------|-----------------------------------
Transition    | INVALID_TRANSITION        | Action not legal from status
              | UNAUTHORIZED_ACTOR        | Actor lacks the required role
              | ITEM_EDIT_NOT_ALLOWED     | Item edit outside editable states
--------------|---------------------------|-----------------------------------
Not found     | REQUEST_NOT_FOUND         | Request id unknown (fatal)
              | REQUEST_ITEM_NOT_FOUND    | Item id unknown
              | APPROVER_NOT_FOUND        | Approver record unknown (fatal)
              | BUDGET_NOT_FOUND          | Budget row unknown
--------------|---------------------------|-----------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT  | Stale request/budget version
--------------|---------------------------|-----------------------------------
Notification  | DISPATCH_FAILED           | Notifier failed (logged only)
--------------|---------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION    | Comment update/delete attempted

A missing Budget during a workflow action is NOT raised: the engine skips
the deduction.  ``BudgetNotFoundError`` is only raised by direct ledger
calls against an unknown budget id.
"""


class TTLKernelError(Exception):
    """
    Base exception for all TTL kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "TTL_KERNEL_ERROR"


# Validation-related exceptions


class ValidationError(TTLKernelError):
    """Input rejected before any state or budget mutation."""

    code: str = "VALIDATION_ERROR"


class MissingCommentError(ValidationError):
    """A comment is mandatory for this action but none was given."""

    code: str = "MISSING_COMMENT"

    def __init__(self, action: str, request_id: str | None = None):
        self.action = action
        self.request_id = request_id
        super().__init__(f"A comment is required to {action} a request")


class InvalidCostError(ValidationError):
    """Cost is not a non-negative number."""

    code: str = "INVALID_COST"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid cost {value!r}: {reason}")


class InvalidLinkError(ValidationError):
    """Link is not a valid http(s) URL."""

    code: str = "INVALID_LINK"

    def __init__(self, link: object):
        self.link = link
        super().__init__(f"Invalid link {link!r}: expected an http(s) URL")


class EmptyRequestError(ValidationError):
    """A request without items cannot be sent for approval."""

    code: str = "EMPTY_REQUEST"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} has no items")


# Transition-related exceptions


class InvalidTransitionError(TTLKernelError):
    """Action is not legal for the request's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, status: str, action: str, reason: str = ""):
        self.request_id = request_id
        self.status = status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} request {request_id} in status {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnauthorizedActorError(InvalidTransitionError):
    """Actor holds none of the roles the action requires."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        request_id: str,
        status: str,
        action: str,
        actor: str,
        required_roles: tuple[str, ...],
    ):
        self.actor = actor
        self.required_roles = required_roles
        super().__init__(
            request_id,
            status,
            action,
            reason=f"{actor} is not one of {', '.join(required_roles)}",
        )


class ItemEditNotAllowedError(InvalidTransitionError):
    """Items may not be changed by this actor in the current status."""

    code: str = "ITEM_EDIT_NOT_ALLOWED"

    def __init__(self, request_id: str, status: str, actor: str):
        self.actor = actor
        super().__init__(
            request_id, status, "edit items", reason=f"not editable by {actor}",
        )


# Lookup-related exceptions


class NotFoundError(TTLKernelError):
    """Referenced record does not exist."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")


class RequestItemNotFoundError(NotFoundError):
    code: str = "REQUEST_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Request item {item_id} not found")


class ApproverNotFoundError(NotFoundError):
    code: str = "APPROVER_NOT_FOUND"

    def __init__(self, approver_id: str):
        self.approver_id = approver_id
        super().__init__(f"Approver record {approver_id} not found")


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} not found")


# Concurrency-related exceptions


class ConcurrencyError(TTLKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Optimistic lock conflict detected.

    The caller must reload fresh state and retry; the failed action left
    no side effects behind.
    """

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, detail: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        message = (
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Notification-related exceptions


class NotificationError(TTLKernelError):
    code: str = "NOTIFICATION_ERROR"


class DispatchError(NotificationError):
    """The external notifier failed.  Logged, never fails a transition."""

    code: str = "DISPATCH_FAILED"

    def __init__(self, email_type: str, request_id: str, reason: str):
        self.email_type = email_type
        self.request_id = request_id
        self.reason = reason
        super().__init__(
            f"Failed to dispatch {email_type} notification for request "
            f"{request_id}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(TTLKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
