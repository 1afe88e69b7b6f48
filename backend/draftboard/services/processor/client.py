from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

import httpx

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
    Refund,
    Transfer,
    to_minor_units,
)

logger = logging.getLogger(__name__)


def encode_form(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested params into bracketed form fields (``a[b][0]=c``)."""
    fields: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            fields.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    fields.extend(encode_form(item, item_name))
                else:
                    fields.append((item_name, str(item)))
        elif isinstance(value, bool):
            fields.append((name, "true" if value else "false"))
        else:
            fields.append((name, str(value)))
    return fields


class ProcessorClient:
    """Async client for the external payment processor.

    Without a secret key the client runs in sandbox mode and simulates
    accounts, checkout sessions, transfers, refunds and the platform balance
    in memory.
    """

    def __init__(
        self,
        config: ProcessorConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ProcessorConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self._sandbox_accounts: dict[str, ConnectedAccount] = {}
        self._sandbox_sessions: dict[str, CheckoutSession] = {}
        self._sandbox_transfers: dict[str, Transfer] = {}
        self._sandbox_refunds: dict[str, Refund] = {}
        self._sandbox_idempotency: dict[str, Any] = {}
        self._sandbox_balance = self.config.sandbox_balance

        logger.info(f"Initialized ProcessorClient (sandbox={self.sandbox})")

    async def __aenter__(self) -> ProcessorClient:
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            limits=limits,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed ProcessorClient")

    @property
    def sandbox(self) -> bool:
        return self.config.sandbox and self._transport is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "ProcessorClient must be used as async context manager"
            )
        return self._client

    @staticmethod
    def _error_from_response(response: httpx.Response) -> ProcessorError:
        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}
        message = error.get("message") or response.text or "Processor error"
        code = error.get("code")
        status = response.status_code

        if status == 401:
            return ProcessorAuthError("Authentication failed", status_code=401, code=code)
        if status == 404:
            return ProcessorNotFoundError(message, status_code=404, code=code)
        return ProcessorRejectedError(message, status_code=status, code=code)

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.config.secret_key}"}
        if idempotency_key:
            # The same key is replayed on every retry so a retried write is applied once
            headers["Idempotency-Key"] = idempotency_key

        retry_count = 0
        last_error: Exception | str | None = None

        while retry_count < self.config.max_retries:
            try:
                response = await self.client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    data=dict(encode_form(data)) if data else None,
                    headers=headers,
                )

                if response.status_code == 429 or response.status_code >= 500:
                    wait_time = self.config.retry_backoff_seconds * 2 ** retry_count
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        f"Processor returned {response.status_code} for "
                        f"{method} {endpoint}, retrying in {wait_time}s..."
                    )
                    retry_count += 1
                    if retry_count < self.config.max_retries:
                        await asyncio.sleep(wait_time)
                    continue

                if response.status_code >= 400:
                    raise self._error_from_response(response)

                return response.json()

            except httpx.TimeoutException as e:
                last_error = e
                retry_count += 1
                if retry_count < self.config.max_retries:
                    logger.warning(f"Timeout on {method} {endpoint}, retrying ({retry_count})...")
                    await asyncio.sleep(self.config.retry_backoff_seconds)

            except httpx.RequestError as e:
                last_error = e
                logger.error(f"Network error on {method} {endpoint}: {e}")
                break

        raise ProcessorUnavailable(
            f"{method} {endpoint} outcome unknown after {retry_count} attempts: {last_error}"
        )

    # ------------------------------------------------------------------
    # Connected accounts
    # ------------------------------------------------------------------

    async def create_account(
        self,
        country: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> ConnectedAccount:
        if self.sandbox:
            cached = self._sandbox_idempotency.get(idempotency_key or "")
            if cached is not None:
                return cached
            account = ConnectedAccount(
                id=f"acct_sandbox_{uuid4().hex[:12]}",
                country=country,
                requirements_due=["external_account", "individual.verification"],
                metadata=metadata or {},
            )
            self._sandbox_accounts[account.id] = account
            if idempotency_key:
                self._sandbox_idempotency[idempotency_key] = account
            return account

        data = await self._request(
            "POST",
            "accounts",
            data={
                "type": "express",
                "country": country,
                "capabilities": {"transfers": {"requested": True}},
                "metadata": metadata or {},
            },
            idempotency_key=idempotency_key,
        )
        return ConnectedAccount.from_api(data)

    async def retrieve_account(self, account_id: str) -> ConnectedAccount:
        if self.sandbox:
            account = self._sandbox_accounts.get(account_id)
            if account is None:
                raise ProcessorNotFoundError(f"No such account: {account_id}", status_code=404)
            return account.model_copy()

        data = await self._request("GET", f"accounts/{account_id}")
        return ConnectedAccount.from_api(data)

    async def create_account_link(
        self, account_id: str, return_url: str, refresh_url: str
    ) -> AccountLink:
        if self.sandbox:
            if account_id not in self._sandbox_accounts:
                raise ProcessorNotFoundError(f"No such account: {account_id}", status_code=404)
            return AccountLink(url=f"https://connect.sandbox.local/setup/{account_id}")

        data = await self._request(
            "POST",
            "account_links",
            data={
                "account": account_id,
                "return_url": return_url,
                "refresh_url": refresh_url,
                "type": "account_onboarding",
            },
        )
        return AccountLink.from_api(data)

    def sandbox_update_account(self, account_id: str, **fields: Any) -> ConnectedAccount:
        """Change a simulated account's capability flags (sandbox only)."""
        account = self._sandbox_accounts[account_id]
        updated = account.model_copy(update=fields)
        self._sandbox_accounts[account_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Checkout (brief funding)
    # ------------------------------------------------------------------

    async def create_checkout_session(
        self,
        amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str] | None = None,
        currency: str | None = None,
    ) -> CheckoutSession:
        currency = currency or self.config.currency

        if self.sandbox:
            session_id = f"cs_sandbox_{uuid4().hex[:16]}"
            session = CheckoutSession(
                id=session_id,
                url=f"https://checkout.sandbox.local/pay/{session_id}",
                amount_total=amount,
                currency=currency,
                metadata=metadata or {},
            )
            self._sandbox_sessions[session_id] = session
            return session

        data = await self._request(
            "POST",
            "checkout/sessions",
            data={
                "mode": "payment",
                "line_items": [
                    {
                        "price_data": {
                            "currency": currency,
                            "unit_amount": to_minor_units(amount),
                            "product_data": {"name": description},
                        },
                        "quantity": 1,
                    }
                ],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": metadata or {},
                "payment_intent_data": {"metadata": metadata or {}},
            },
        )
        return CheckoutSession.from_api(data)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        if self.sandbox:
            session = self._sandbox_sessions.get(session_id)
            if session is None:
                raise ProcessorNotFoundError(f"No such checkout session: {session_id}", status_code=404)
            return session.model_copy()

        data = await self._request("GET", f"checkout/sessions/{session_id}")
        return CheckoutSession.from_api(data)

    def sandbox_complete_checkout(self, session_id: str) -> CheckoutSession:
        """Mark a simulated checkout paid and credit the platform balance (sandbox only)."""
        session = self._sandbox_sessions[session_id]
        completed = session.model_copy(
            update={
                "status": "complete",
                "payment_status": "paid",
                "payment_intent": f"pi_sandbox_{uuid4().hex[:16]}",
            }
        )
        self._sandbox_sessions[session_id] = completed
        self._sandbox_balance += completed.amount_total
        return completed

    # ------------------------------------------------------------------
    # Transfers (creator payouts)
    # ------------------------------------------------------------------

    async def create_transfer(
        self,
        amount: Decimal,
        destination: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
        currency: str | None = None,
    ) -> Transfer:
        currency = currency or self.config.currency

        if self.sandbox:
            cached = self._sandbox_idempotency.get(idempotency_key)
            if cached is not None:
                return cached

            account = self._sandbox_accounts.get(destination)
            if account is None or not account.payouts_enabled:
                raise ProcessorRejectedError(
                    f"Destination {destination} cannot receive transfers",
                    status_code=400,
                    code="account_invalid",
                )
            if amount > self._sandbox_balance:
                raise ProcessorRejectedError(
                    "Insufficient available funds",
                    status_code=400,
                    code="balance_insufficient",
                )

            self._sandbox_balance -= amount
            transfer = Transfer(
                id=f"tr_sandbox_{uuid4().hex[:16]}",
                amount=amount,
                currency=currency,
                destination=destination,
                status="paid",
                metadata=metadata or {},
            )
            self._sandbox_transfers[transfer.id] = transfer
            self._sandbox_idempotency[idempotency_key] = transfer
            return transfer

        data = await self._request(
            "POST",
            "transfers",
            data={
                "amount": to_minor_units(amount),
                "currency": currency,
                "destination": destination,
                "metadata": metadata or {},
            },
            idempotency_key=idempotency_key,
        )
        return Transfer.from_api(data)

    async def retrieve_transfer(self, transfer_id: str) -> Transfer:
        if self.sandbox:
            transfer = self._sandbox_transfers.get(transfer_id)
            if transfer is None:
                raise ProcessorNotFoundError(f"No such transfer: {transfer_id}", status_code=404)
            return transfer.model_copy()

        data = await self._request("GET", f"transfers/{transfer_id}")
        return Transfer.from_api(data)

    # ------------------------------------------------------------------
    # Refunds and balance
    # ------------------------------------------------------------------

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Decimal,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> Refund:
        if self.sandbox:
            cached = self._sandbox_idempotency.get(idempotency_key)
            if cached is not None:
                return cached
            self._sandbox_balance -= amount
            refund = Refund(
                id=f"re_sandbox_{uuid4().hex[:16]}",
                amount=amount,
                status="succeeded",
                metadata=metadata or {},
            )
            self._sandbox_refunds[refund.id] = refund
            self._sandbox_idempotency[idempotency_key] = refund
            return refund

        data = await self._request(
            "POST",
            "refunds",
            data={
                "payment_intent": payment_intent_id,
                "amount": to_minor_units(amount),
                "metadata": metadata or {},
            },
            idempotency_key=idempotency_key,
        )
        return Refund.from_api(data)

    async def retrieve_balance(self) -> Balance:
        if self.sandbox:
            return Balance(
                available=self._sandbox_balance,
                currency=self.config.currency,
            )

        data = await self._request("GET", "balance")
        return Balance.from_api(data, currency=self.config.currency)


def create_processor_client(
    secret_key: str | None = None,
    config: ProcessorConfig | None = None,
) -> ProcessorClient:
    """Create a ProcessorClient instance."""
    config = config or ProcessorConfig()
    if secret_key:
        config = config.model_copy(update={"secret_key": secret_key})
    return ProcessorClient(config=config)

