"""
Service for claiming SimpleFIN access and syncing cash accounts and transactions.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from homeledger.db_helpers import (
    find_or_create_by_natural_key,
    get_aggregator_config,
    upsert_aggregator_config,
)
from homeledger.errors import (
    ConfigCorrupt,
    HomeLedgerError,
    NotConfigured,
    PartialWriteWarning,
    RequestValidationFailed,
)
from homeledger.integrations.base import BankAdapter
from homeledger.integrations.simplefin import SimpleFINAdapter, claim_access_url, decode_setup_token
from homeledger.models import DEFAULT_ACCOUNT_TYPE, DEFAULT_OWNER, CashAccount, Transaction
from homeledger.security.data_encryption import SecretDecryptionError, open_secret, seal_secret

logger = logging.getLogger(__name__)

MODE_CLAIM = "claim"
MODE_BALANCES = "balances"
MODE_TRANSACTIONS = "transactions"
SYNC_MODES = (MODE_BALANCES, MODE_TRANSACTIONS)

DEFAULT_LOOKBACK_DAYS = 30
MAX_LOOKBACK_DAYS = 36500


@dataclass
class SyncResult:
    accounts: int = 0
    transactions: int = 0
    warnings: List[PartialWriteWarning] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)


class SyncService:
    """
    Owns the SimpleFIN session lifecycle for this installation.

    One instance per request; nothing is cached between calls.
    """

    def __init__(
        self,
        db: Session,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            db: SQLAlchemy session
            transport: Optional httpx transport for all SimpleFIN calls (tests mock the bridge with it)
            timeout: Per-request timeout in seconds (default SIMPLEFIN_TIMEOUT_SECONDS)
            clock: Returns the current aware datetime; defaults to UTC now
        """
        self.db = db
        self.transport = transport
        self.timeout = timeout
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logs: List[str] = []

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logs.append(message)
        logger.log(level, f"[SYNC] {message}")

    def _fail(self, exc: HomeLedgerError) -> HomeLedgerError:
        self.db.rollback()
        self._log(f"Failed: {exc.message}", logging.ERROR)
        exc.logs = self.logs + exc.logs
        return exc

    def _warn(self, result: SyncResult, natural_key: Optional[str], reason: str) -> None:
        warning = PartialWriteWarning(natural_key, reason)
        result.warnings.append(warning)
        self._log(f"Skipped {warning}", logging.WARNING)

    # Claim

    def claim(self, setup_token: Optional[str]) -> None:
        """
        Exchange a setup token for an access URL and store it as the installation's config.

        Raises:
            RequestValidationFailed: no token was given (nothing is written)
            InvalidCredential: token is malformed (nothing is written)
            UpstreamClaimFailed / UpstreamTimeout: the bridge refused or did not answer
        """
        try:
            if not setup_token or not setup_token.strip():
                raise RequestValidationFailed("setup_token is required for claim mode")
            claim_url = decode_setup_token(setup_token)
            self._log("Setup token decoded; claiming access URL")

            access_url = claim_access_url(claim_url, transport=self.transport, timeout=self.timeout)
            self._log("Claim succeeded; storing access URL")

            upsert_aggregator_config(self.db, access_url=seal_secret(access_url))
            self.db.commit()
        except HomeLedgerError as exc:
            raise self._fail(exc)

    # Sync

    def _load_access_url(self) -> str:
        config = get_aggregator_config(self.db)
        if config is None or not config.access_url:
            raise NotConfigured("SimpleFIN not configured")

        try:
            access_url = open_secret(config.access_url)
        except SecretDecryptionError as exc:
            raise ConfigCorrupt(f"Stored SimpleFIN access URL cannot be decrypted: {exc}") from exc

        if not access_url:
            raise NotConfigured("SimpleFIN not configured")
        return access_url

    def sync(
        self,
        mode: str = MODE_BALANCES,
        account_id: Optional[str] = None,
        days: Optional[int] = DEFAULT_LOOKBACK_DAYS,
        adapter: Optional[BankAdapter] = None,
    ) -> SyncResult:
        """
        Pull balances (and, in transactions mode, transactions) and merge them locally.

        Args:
            mode: "balances" or "transactions"
            account_id: SimpleFIN account id to restrict a transactions pull to
            days: Lookback window for transactions mode (1..MAX_LOOKBACK_DAYS)
            adapter: Pre-built adapter; by default one is built from the stored access URL

        Returns:
            SyncResult with accounts touched, transactions newly inserted and per-row warnings

        Raises:
            RequestValidationFailed: unknown mode or days out of range
            NotConfigured: no access URL has been claimed yet
            ConfigCorrupt: stored access URL is unreadable
            UpstreamSyncFailed / UpstreamTimeout: the bridge refused or did not answer
        """
        try:
            if mode not in SYNC_MODES:
                raise RequestValidationFailed(f"Unknown sync mode: {mode!r}")
            if days is None:
                days = DEFAULT_LOOKBACK_DAYS
            if isinstance(days, bool) or not isinstance(days, int) or days <= 0 or days > MAX_LOOKBACK_DAYS:
                raise RequestValidationFailed(f"days must be an integer between 1 and {MAX_LOOKBACK_DAYS}")

            owns_adapter = adapter is None
            if owns_adapter:
                adapter = SimpleFINAdapter(self._load_access_url(), transport=self.transport, timeout=self.timeout)

            try:
                result = self._sync_with(adapter, mode, account_id, days)
            finally:
                if owns_adapter:
                    adapter.close()

            upsert_aggregator_config(self.db, last_synced=self.clock())
            self.db.commit()
        except HomeLedgerError as exc:
            raise self._fail(exc)

        self._log(
            f"Sync complete: {result.accounts} account(s), "
            f"{result.transactions} new transaction(s), {len(result.warnings)} warning(s)"
        )
        result.logs = list(self.logs)
        return result

    def _sync_with(self, adapter: BankAdapter, mode: str, account_id: Optional[str], days: int) -> SyncResult:
        start_date = None
        account_filter = None
        if mode == MODE_TRANSACTIONS:
            start_date = self.clock() - timedelta(days=days)
            account_filter = account_id

        account_set = adapter.fetch_accounts(start_date=start_date, account_id=account_filter)
        self._log(f"Fetched {len(account_set.accounts)} account(s) from SimpleFIN ({mode})")
        for message in account_set.errors:
            self._log(f"SimpleFIN reported: {message}", logging.WARNING)

        result = SyncResult()
        for raw_account in account_set.accounts:
            account = self._upsert_account(adapter, raw_account, result)

            if mode != MODE_TRANSACTIONS:
                continue

            raw_transactions = [t for t in raw_account.get("transactions") or [] if isinstance(t, dict)]
            if account is None:
                if raw_transactions:
                    self._warn(
                        result,
                        raw_account.get("id"),
                        f"{len(raw_transactions)} transaction(s) skipped, account is not stored locally",
                    )
                continue

            for raw_transaction in raw_transactions:
                self._insert_transaction(adapter, account, raw_transaction, result)

        return result

    def _upsert_account(self, adapter: BankAdapter, raw: dict, result: SyncResult) -> Optional[CashAccount]:
        """Find-or-create by simplefin_id; on existing rows only the synced fields change."""
        external_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            with self.db.begin_nested():
                data = adapter.normalize_account(raw)
                synced_fields = {
                    "name": data.name,
                    "institution": data.institution,
                    "currency": data.currency,
                    "balance": data.balance,
                    "balance_date": data.balance_date,
                }
                account, created = find_or_create_by_natural_key(
                    self.db,
                    CashAccount,
                    "simplefin_id",
                    data.external_id,
                    defaults={
                        **synced_fields,
                        "owner": DEFAULT_OWNER,
                        "account_type": DEFAULT_ACCOUNT_TYPE,
                        "display_order": 0,
                        "is_active": True,
                    },
                )
                if not created:
                    for column, value in synced_fields.items():
                        setattr(account, column, value)
                    self.db.flush()
        except (ValueError, SQLAlchemyError) as exc:
            self._warn(result, external_id, f"account not stored: {exc}")
            return None

        result.accounts += 1
        logger.debug(f"[SYNC] Account {data.external_id} {'created' if created else 'updated'}")
        return account

    def _insert_transaction(self, adapter: BankAdapter, account: CashAccount, raw: dict, result: SyncResult) -> None:
        """Insert unknown transactions; known ones are left exactly as they are."""
        external_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            with self.db.begin_nested():
                data = adapter.normalize_transaction(raw)
                _transaction, created = find_or_create_by_natural_key(
                    self.db,
                    Transaction,
                    "simplefin_id",
                    data.external_id,
                    defaults={
                        "account_id": account.id,
                        "posted_date": data.posted_date,
                        "amount": data.amount,
                        "description": data.description,
                        "memo": data.memo,
                        "pending": data.pending,
                        "user_override": False,
                    },
                )
        except (ValueError, SQLAlchemyError) as exc:
            self._warn(result, external_id, f"transaction not stored: {exc}")
            return

        if created:
            result.transactions += 1
