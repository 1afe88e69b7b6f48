from .client import ProcessorClient, create_processor_client
from .config import ProcessorConfig
from .exceptions import (
    ProcessorAuthError,
    ProcessorError,
    ProcessorNotFoundError,
    ProcessorRejectedError,
    ProcessorUnavailable,
)
from .models import (
    AccountLink,
    Balance,
    CheckoutSession,
    ConnectedAccount,
    ProcessorEvent,
    Refund,
    Transfer,
)
from .signature import build_signature_header, verify_signature

__all__ = [
    "ProcessorClient",
    "create_processor_client",
    "ProcessorConfig",
    "ProcessorError",
    "ProcessorAuthError",
    "ProcessorNotFoundError",
    "ProcessorRejectedError",
    "ProcessorUnavailable",
    "AccountLink",
    "Balance",
    "CheckoutSession",
    "ConnectedAccount",
    "ProcessorEvent",
    "Refund",
    "Transfer",
    "build_signature_header",
    "verify_signature",
]
