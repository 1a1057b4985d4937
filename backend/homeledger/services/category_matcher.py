"""
Service for categorizing uncategorized transactions with a language model.

One invocation takes up to CATEGORIZATION_BATCH_SIZE transactions that have no
category and no human override, asks the oracle for one category per
transaction in a single call, and writes the results back. Category names the
local vocabulary does not know fall back to "Uncategorized".
"""
import json
import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from homeledger.db_helpers import category_id_lookup, list_uncategorized_transactions
from homeledger.errors import ClassificationParseError, HomeLedgerError
from homeledger.integrations.oracle import ClassificationOracle
from homeledger.models import Transaction
from homeledger.services.category_seed import CATEGORY_NAMES, UNCATEGORIZED

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class OracleCategorization(BaseModel):
    """One element of the oracle's JSON array."""
    index: int = Field(validation_alias=AliasChoices("index", "id"))
    category: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)


_CATEGORIZATION_LIST = TypeAdapter(List[OracleCategorization])


@dataclass
class CategorizationResult:
    categorized: int = 0
    logs: List[str] = field(default_factory=list)


def build_prompt(transactions: List[Transaction], vocabulary: Optional[List[str]] = None) -> str:
    """Render the batch as 1-based lines against the closed vocabulary."""
    vocabulary = vocabulary or CATEGORY_NAMES
    lines = []
    for position, txn in enumerate(transactions, start=1):
        description = (txn.description or "").replace('"', "'")
        lines.append(f'{position}. desc="{description}" amount={Decimal(str(txn.amount))}')
    transactions_text = "\n".join(lines)

    return f"""Categorize each transaction into exactly one category from this list:
{", ".join(vocabulary)}

Rules:
- Negative amount = expense, positive amount = income/credit
- Large transfers between accounts = "Transfer"
- Payroll/direct deposit = "Salary"
- Grocery stores = "Groceries"
- Restaurants/food delivery = "Dining Out"
- Gas stations = "Gas"
- Netflix/Spotify/subscriptions = "Subscriptions"
- If unclear = "{UNCATEGORIZED}"

Transactions:
{transactions_text}

Respond ONLY with a JSON array containing one object per transaction, no other text:
[{{"index":1,"category":"category name","confidence":0.95}}]"""


def parse_oracle_response(response_text: str, batch_size: int) -> List[OracleCategorization]:
    """
    Parse the oracle's reply into validated results.

    Markdown code fences are stripped first. The reply must be a JSON array of
    {index, category, confidence} objects with each index in 1..batch_size at
    most once.

    Raises:
        ClassificationParseError: anything else
    """
    cleaned = _CODE_FENCE.sub("", response_text or "").strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ClassificationParseError(f"Oracle response is not valid JSON: {exc}") from exc

    try:
        results = _CATEGORIZATION_LIST.validate_python(payload)
    except ValidationError as exc:
        raise ClassificationParseError(
            f"Oracle response does not match the expected schema: {exc.error_count()} error(s)"
        ) from exc

    seen = set()
    for item in results:
        if not 1 <= item.index <= batch_size:
            raise ClassificationParseError(f"Oracle returned index {item.index} outside 1..{batch_size}")
        if item.index in seen:
            raise ClassificationParseError(f"Oracle returned index {item.index} more than once")
        seen.add(item.index)
    return results


class CategoryMatcher:
    """
    Batch LLM categorization over the transactions table.

    Environment Variables:
    - CATEGORIZATION_BATCH_SIZE: transactions per invocation (default: 50)
    """

    BATCH_SIZE = int(os.getenv("CATEGORIZATION_BATCH_SIZE", "50"))

    def __init__(self, db: Session, oracle: ClassificationOracle, batch_size: Optional[int] = None):
        self.db = db
        self.oracle = oracle
        self.batch_size = batch_size or self.BATCH_SIZE
        self.logs: List[str] = []

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logs.append(message)
        logger.log(level, f"[BATCH LLM] {message}")

    def categorize_uncategorized(self) -> CategorizationResult:
        """
        Categorize one batch of uncategorized transactions.

        Returns:
            CategorizationResult with the number of transactions updated

        Raises:
            OracleUnavailable: the oracle call failed or timed out
            ClassificationParseError: the reply was not valid structured output (nothing is written)
        """
        try:
            categorized = self._categorize_batch()
        except HomeLedgerError as exc:
            self.db.rollback()
            self._log(f"Failed: {exc.message}", logging.ERROR)
            exc.logs = self.logs + exc.logs
            raise

        return CategorizationResult(categorized=categorized, logs=list(self.logs))

    def _categorize_batch(self) -> int:
        transactions = list_uncategorized_transactions(self.db, limit=self.batch_size)
        self._log(f"Found {len(transactions)} uncategorized transactions")
        if not transactions:
            return 0

        prompt = build_prompt(transactions)
        logger.debug(f"[BATCH LLM] Prompt:\n{prompt}")

        self._log(f"Calling {self.oracle.name} oracle")
        response_text = self.oracle.complete(prompt)
        self._log(f"Oracle response: {response_text[:100]}")

        results = parse_oracle_response(response_text, batch_size=len(transactions))
        missing = len(transactions) - len(results)
        if missing:
            self._log(f"Oracle omitted {missing} transaction(s); they stay uncategorized", logging.WARNING)

        category_ids = category_id_lookup(self.db)

        categorized = 0
        for item in results:
            txn = transactions[item.index - 1]
            category_name = item.category if item.category in category_ids else UNCATEGORIZED
            category_id: Optional[UUID] = category_ids.get(category_name)
            if category_id is None:
                self._log(
                    f"No local category for '{item.category}' and no '{UNCATEGORIZED}' fallback; "
                    f"transaction {txn.id} left unchanged",
                    logging.WARNING,
                )
                continue
            if category_name != item.category:
                self._log(f"Unknown category '{item.category}' for index {item.index}; using '{UNCATEGORIZED}'", logging.WARNING)

            if self._apply(txn.id, category_id, category_name, item):
                categorized += 1
            else:
                self._log(f"Transaction {txn.id} has a user override; left unchanged")

        self.db.commit()
        self._log(f"Categorized {categorized} transactions")
        return categorized

    def _apply(self, transaction_id: UUID, category_id: UUID, category_name: str, item: OracleCategorization) -> bool:
        """Conditional write: only rows without a human override are touched."""
        result = self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                or_(Transaction.user_override.is_(None), Transaction.user_override.is_(False)),
            )
            .values(
                category_id=category_id,
                category_name=category_name,
                ai_category=item.category,
                ai_confidence=item.confidence,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
