"""Service wiring.

Every service receives its collaborators through its constructor; this module
is the single place they are assembled.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftboard.config import Settings
from draftboard.services.brief_service import BriefService
from draftboard.services.credit_ledger_service import CreditLedgerService
from draftboard.services.fee_policy import FeePolicy
from draftboard.services.funding_service import FundingService
from draftboard.services.notification_service import NotificationService
from draftboard.services.payment_account_service import PaymentAccountService
from draftboard.services.payout_service import PayoutService
from draftboard.services.processor import ProcessorClient
from draftboard.services.reward_tier_service import RewardTierService
from draftboard.services.telegram import TelegramAlerter
from draftboard.services.webhook_reconciler import WebhookReconciler
from draftboard.services.winner_assignment_service import WinnerAssignmentService


@dataclass
class Services:
    session_factory: async_sessionmaker[AsyncSession]
    processor: ProcessorClient
    fees: FeePolicy
    notifications: NotificationService
    briefs: BriefService
    accounts: PaymentAccountService
    funding: FundingService
    tiers: RewardTierService
    assignments: WinnerAssignmentService
    payouts: PayoutService
    credit: CreditLedgerService
    webhooks: WebhookReconciler


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    processor: ProcessorClient,
    alerter: TelegramAlerter | None = None,
) -> Services:
    """Assemble the service graph around one session factory and processor client."""
    fees = FeePolicy.from_config(settings.fees)
    notifications = NotificationService(session_factory, alerter)
    accounts = PaymentAccountService(session_factory, processor)
    funding = FundingService(
        session_factory, processor, fees, notifications, settings.funding
    )
    payouts = PayoutService(
        session_factory,
        processor,
        accounts,
        notifications,
        settings.payouts,
        settle_synchronously=settings.processor.transfers_settle_synchronously,
    )
    credit = CreditLedgerService(session_factory, accounts, payouts, settings.credit)
    webhooks = WebhookReconciler(
        session_factory,
        funding,
        accounts,
        payouts,
        notifications,
        settings.processor,
    )

    return Services(
        session_factory=session_factory,
        processor=processor,
        fees=fees,
        notifications=notifications,
        briefs=BriefService(session_factory),
        accounts=accounts,
        funding=funding,
        tiers=RewardTierService(session_factory),
        assignments=WinnerAssignmentService(session_factory, notifications),
        payouts=payouts,
        credit=credit,
        webhooks=webhooks,
    )
