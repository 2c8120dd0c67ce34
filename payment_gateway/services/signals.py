"""Explicit fetch step for the fraud and AML stages"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from payment_gateway.config import Settings, settings as default_settings
from payment_gateway.domain.aml import AmlInput, AmlRules
from payment_gateway.domain.fraud import FraudRules, FraudSignals, counterparty_flags
from payment_gateway.domain.models import PayeeRecord, PaymentRequest
from payment_gateway.infrastructure.clients.watchlist import WatchlistClient
from payment_gateway.infrastructure.database.repositories import TransactionHistoryRepository
from payment_gateway.infrastructure.resilience import fetch_with_retry
from payment_gateway.utils.date_utils import to_local, window_start
from payment_gateway.utils.strings import normalize_name


def fraud_rules_from_settings(config: Settings) -> FraudRules:
    return FraudRules(
        new_payee_amount_minor=config.fraud_new_payee_amount_minor,
        amount_multiplier=config.fraud_amount_multiplier,
        large_amount_minor=config.fraud_large_amount_minor,
        velocity_window_minutes=config.fraud_velocity_window_minutes,
        velocity_max_transactions=config.fraud_velocity_max_transactions,
        unusual_hour_start=config.fraud_unusual_hour_start,
        unusual_hour_end=config.fraud_unusual_hour_end,
        review_threshold=config.fraud_review_threshold,
        block_threshold=config.fraud_block_threshold,
    )


def aml_rules_from_settings(config: Settings) -> AmlRules:
    return AmlRules(
        reporting_threshold_minor=config.aml_reporting_threshold_minor,
        critical_threshold_minor=config.aml_critical_threshold_minor,
        structuring_floor_minor=config.aml_structuring_floor_minor,
        structuring_min_count=config.aml_structuring_min_count,
        structuring_window_hours=config.aml_structuring_window_hours,
        velocity_window_minutes=config.aml_velocity_window_minutes,
        velocity_max_transactions=config.aml_velocity_max_transactions,
        fuzzy_distance_ratio=config.aml_fuzzy_distance_ratio,
    )


class FraudSignalCollector:
    """
    Builds the fraud signal vector from the ledger read model.

    History is read in a worker thread on a session of its own; a timed-out
    read may still be running after the request session has moved on.
    """

    def __init__(self, db: Session, config: Settings | None = None):
        self.session_factory = sessionmaker(bind=db.get_bind(), autoflush=False)
        self.config = config or default_settings

    def _read_history(self, customer_id: str, now: datetime) -> tuple[Optional[int], int]:
        velocity_since = now - timedelta(minutes=self.config.fraud_velocity_window_minutes)
        with self.session_factory() as session:
            history = TransactionHistoryRepository(session)
            amounts = history.recent_debit_amounts(customer_id, self.config.fraud_history_sample_size)
            recent_count = history.count_since(customer_id, velocity_since)
        average = sum(amounts) // len(amounts) if amounts else None
        return average, recent_count

    async def collect(self, request: PaymentRequest, payee: PayeeRecord, now: datetime) -> FraudSignals:
        """
        Raises:
            DependencyUnavailable: History read timed out or kept failing
        """
        average, recent_count = await fetch_with_retry(
            lambda: asyncio.to_thread(self._read_history, request.customer_id, now),
            source="fraud_signals",
            timeout=self.config.http_timeout_seconds,
            max_attempts=self.config.dependency_max_attempts,
            backoff_base=self.config.dependency_backoff_base,
        )
        return FraudSignals(
            amount_minor=request.amount_minor,
            is_new_payee=payee.first_used_at is None,
            average_debit_minor=average,
            recent_transaction_count=recent_count,
            local_hour=to_local(now, self.config.business_timezone).hour,
            counterparty_flags=counterparty_flags(
                normalize_name(payee.name), tuple(self.config.fraud_counterparty_keywords)
            ),
        )


class AmlDataCollector:
    """Fetches the watch list and recent activity the AML screen runs over"""

    def __init__(self, db: Session, watchlist_client: WatchlistClient, config: Settings | None = None):
        self.session_factory = sessionmaker(bind=db.get_bind(), autoflush=False)
        self.watchlist_client = watchlist_client
        self.config = config or default_settings

    def _read_history(self, customer_id: str, now: datetime):
        velocity_since = now - timedelta(minutes=self.config.aml_velocity_window_minutes)
        with self.session_factory() as session:
            history = TransactionHistoryRepository(session)
            debits = history.debits_since(customer_id, window_start(now, self.config.aml_structuring_window_hours))
            return tuple(debits), history.count_since(customer_id, velocity_since)

    async def collect(self, request: PaymentRequest, payee: PayeeRecord, now: datetime) -> AmlInput:
        """
        Raises:
            DependencyUnavailable: Watch list or history read timed out or kept failing
        """
        retry = dict(
            timeout=self.config.http_timeout_seconds,
            max_attempts=self.config.dependency_max_attempts,
            backoff_base=self.config.dependency_backoff_base,
        )
        watchlist = await fetch_with_retry(self.watchlist_client.get_entries, source="watchlist", **retry)
        debits, recent_count = await fetch_with_retry(
            lambda: asyncio.to_thread(self._read_history, request.customer_id, now),
            source="aml_history",
            **retry,
        )
        return AmlInput(
            amount_minor=request.amount_minor,
            counterparty_name=payee.name,
            recent_transaction_count=recent_count,
            window_debits=debits,
            watchlist=tuple(watchlist),
            now=now,
        )
