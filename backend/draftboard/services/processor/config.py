from decimal import Decimal

from pydantic import BaseModel


class ProcessorConfig(BaseModel):
    """Configuration for the payment processor API client."""

    base_url: str = "https://api.stripe.com/v1"
    secret_key: str = ""
    webhook_secret: str = ""
    currency: str = "usd"
    timeout_seconds: float = 15.0
    max_connections: int = 50
    max_keepalive_connections: int = 10
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    signature_tolerance_seconds: int = 300
    # When true a successful transfer response is final and marks the payout paid
    transfers_settle_synchronously: bool = False
    force_sandbox: bool = False
    sandbox_balance: Decimal = Decimal("100000.00")

    @property
    def sandbox(self) -> bool:
        """Simulate the processor in memory (forced, or no secret key in development)."""
        return self.force_sandbox or not self.secret_key
