"""Domain exceptions.

Every business-rule failure raised by the services derives from
``DraftboardError`` and carries a stable ``code`` plus the HTTP status the API
layer maps it to. Processor transport failures live in
``draftboard.services.processor.exceptions``.
"""


class DraftboardError(Exception):
    """Base exception for business-rule violations."""

    code = "draftboard_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ============================================================================
# Validation
# ============================================================================


class ValidationFailed(DraftboardError):
    """Input rejected before any state change."""

    code = "validation_error"
    status_code = 422


class TierValidationError(ValidationFailed):
    code = "tier_validation_error"


class InvalidAmount(ValidationFailed):
    code = "invalid_amount"


# ============================================================================
# Not found
# ============================================================================


class NotFound(DraftboardError):
    code = "not_found"
    status_code = 404


class BriefNotFound(NotFound):
    code = "brief_not_found"


class TierNotFound(NotFound):
    code = "tier_not_found"


class AssignmentNotFound(NotFound):
    code = "assignment_not_found"


class AccountNotFound(NotFound):
    code = "account_not_found"


class FundingSessionNotFound(NotFound):
    code = "funding_session_not_found"


# ============================================================================
# Preconditions (safe to retry once the precondition holds)
# ============================================================================


class PreconditionFailed(DraftboardError):
    code = "precondition_failed"
    status_code = 409


class AccountNotReady(PreconditionFailed):
    code = "account_not_ready"


class AccountCreationError(PreconditionFailed):
    code = "account_creation_error"


class TierAlreadyAssigned(PreconditionFailed):
    code = "tier_already_assigned"


class SubmissionAlreadyAssigned(PreconditionFailed):
    code = "submission_already_assigned"


class AssignmentLocked(PreconditionFailed):
    code = "assignment_locked"


class AlreadyProcessing(PreconditionFailed):
    code = "already_processing"


class PayoutNotPending(PreconditionFailed):
    code = "payout_not_pending"


class FundingInProgress(PreconditionFailed):
    code = "funding_in_progress"


class BriefAlreadyFunded(PreconditionFailed):
    code = "brief_already_funded"


class BriefNotFunded(PreconditionFailed):
    code = "brief_not_funded"


class BriefLocked(PreconditionFailed):
    code = "brief_locked"


class TiersLocked(PreconditionFailed):
    code = "tiers_locked"


# ============================================================================
# Consistency
# ============================================================================


class AmountMismatch(PreconditionFailed):
    """Confirmed gross differs from the funding session amount.

    Treated as fraud-suspect: funding is not applied and the session is held
    for manual review.
    """

    code = "amount_mismatch"


# ============================================================================
# Balances
# ============================================================================


class InsufficientFunds(DraftboardError):
    code = "insufficient_funds"
    status_code = 402


class InsufficientBalance(InsufficientFunds):
    code = "insufficient_balance"


class InsufficientCredit(InsufficientFunds):
    code = "insufficient_credit"


# ============================================================================
# Webhooks
# ============================================================================


class InvalidSignature(DraftboardError):
    code = "invalid_signature"
    status_code = 400
