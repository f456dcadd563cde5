import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.errors import SourceUnavailable
from app.db.source import Window, resolve_window, utcnow
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)

# Initialize DynamoDB resource
dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)

# Get table reference
transactions_table = dynamodb.Table(settings.DYNAMO_TRANSACTIONS_TABLE)


class DynamoTransactionSource:
    """
    TransactionSource backed by a DynamoDB table.

    Items are keyed by ``account_id`` (partition key) and ``transaction_id``
    (sort key). The sort key starts with the ISO timestamp of the
    transaction, e.g. '2025-11-01T12:00:00' or '2025-11-01T12:00:00#a1b2',
    so a time window is a key range query.
    """

    def __init__(self, table=None, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._table = table if table is not None else transactions_table
        self._clock = clock or utcnow

    def get_transactions(self, account_id: str, window: Window) -> List[Transaction]:
        resolved = resolve_window(window, self._clock())
        # '~' sorts after '#' and digits, so suffixed ids at the end timestamp are included
        key_condition = Key("account_id").eq(account_id) & Key("transaction_id").between(
            resolved.start.isoformat(), resolved.end.isoformat() + "~"
        )

        items: List[Dict[str, Any]] = []
        query_kwargs: Dict[str, Any] = {"KeyConditionExpression": key_condition}
        try:
            while True:
                response = self._table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as e:
            message = _error_message(e)
            logger.error(f"get_transactions failed for account {account_id}: {message}")
            raise SourceUnavailable(message) from e

        return [_to_transaction(_from_dynamo(item)) for item in items]

    def get_category_totals(self, account_id: str, time_range: str) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for txn in self.get_transactions(account_id, time_range):
            totals[txn.category] += abs(txn.amount)
        return dict(totals)

    def ping(self) -> None:
        """Raise SourceUnavailable if the table cannot be reached."""
        try:
            self._table.scan(Limit=1)
        except (BotoCoreError, ClientError) as e:
            raise SourceUnavailable(_error_message(e)) from e


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Message", str(e))
    return str(e)


def _to_transaction(item: Dict[str, Any]) -> Transaction:
    timestamp = item.get("timestamp") or item["transaction_id"].split("#", 1)[0]
    return Transaction(
        date=datetime.fromisoformat(timestamp),
        amount=float(item.get("amount", 0)),
        category=item.get("category", "Uncategorized"),
        transaction_id=item.get("transaction_id"),
        description=item.get("description", ""),
    )


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
