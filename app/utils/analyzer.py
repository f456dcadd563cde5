from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from app.core.errors import SourceUnavailable
from app.db.source import TimeWindow, TransactionSource, months_in, utcnow
from app.models.analytics import (
    CategorySpend,
    PredictedSpend,
    SpendingAnalytics,
    TimePattern,
)
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5
PREDICTION_LOOKBACK = "6 months"
LOOKBACK_DAYS = 180
MIN_TRANSACTIONS_FOR_PREDICTION = 3
FREQUENCY_SCALE_DAYS = 30
AMOUNT_REFERENCE = 1000.0
WARNING_THRESHOLD = 0.7


class SpendingAnalyzer:
    """
    Computes spending analytics for one account from a TransactionSource.

    Every call recomputes its results from freshly fetched data; the analyzer
    keeps no state between requests apart from its source and clock.
    """

    def __init__(
        self,
        source: TransactionSource,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._source = source
        self._clock = clock or utcnow

    def _fetch_transactions(self, account_id: str, window) -> List[Transaction]:
        try:
            return list(self._source.get_transactions(account_id, window))
        except SourceUnavailable as exc:
            raise SourceUnavailable(f"failed to get transactions: {exc}") from exc

    def _fetch_category_totals(self, account_id: str, time_range: str) -> Dict[str, float]:
        try:
            return dict(self._source.get_category_totals(account_id, time_range))
        except SourceUnavailable as exc:
            raise SourceUnavailable(f"failed to get category totals: {exc}") from exc

    def analyze_time_patterns(
        self,
        account_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> List[TimePattern]:
        """
        Group transactions by (day-of-week, hour) and report how often and how
        much was spent in each bucket, busiest buckets first.
        """
        transactions = self._fetch_transactions(account_id, TimeWindow(start_date, end_date))

        buckets: Dict[Tuple[str, str], Tuple[float, int]] = {}
        for txn in transactions:
            key = (txn.date.strftime("%A"), txn.date.strftime("%H:00"))
            total, count = buckets.get(key, (0.0, 0))
            buckets[key] = (total + abs(txn.amount), count + 1)

        patterns = [
            TimePattern(
                day_of_week=day,
                time_of_day=hour,
                frequency=count,
                average_spend=total / count,
            )
            for (day, hour), (total, count) in buckets.items()
        ]
        patterns.sort(key=lambda p: (p.frequency, p.average_spend), reverse=True)

        logger.debug(
            f"Account {account_id}: {len(transactions)} transactions in "
            f"{len(patterns)} time buckets"
        )
        return patterns

    @staticmethod
    def rank_categories(category_totals: Dict[str, float]) -> Tuple[List[CategorySpend], float]:
        """
        Returns the top categories by amount and the overall total.

        Percentages are shares of the full total, so they are not rescaled
        after truncating to the top entries.
        """
        total_spent = sum(category_totals.values())

        ranked = sorted(category_totals.items(), key=lambda item: (-item[1], item[0]))
        top = [
            CategorySpend(
                category=category,
                total_spent=amount,
                percentage=(amount / total_spent) * 100 if total_spent else 0.0,
            )
            for category, amount in ranked[:TOP_CATEGORY_LIMIT]
        ]
        return top, total_spent

    def predict_future_spending(self, account_id: str) -> List[PredictedSpend]:
        """
        Score each category on how often and how much it is spent on over the
        last six months and project when it will next occur.
        """
        transactions = self._fetch_transactions(account_id, PREDICTION_LOOKBACK)

        by_category: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            by_category[txn.category].append(txn)

        predictions: List[PredictedSpend] = []
        for category, txns in by_category.items():
            if len(txns) < MIN_TRANSACTIONS_FOR_PREDICTION:
                continue
            predictions.append(self._predict_category(category, txns))

        predictions.sort(key=lambda p: p.likelihood, reverse=True)
        return predictions

    @staticmethod
    def _predict_category(category: str, txns: List[Transaction]) -> PredictedSpend:
        txns = sorted(txns, key=lambda t: t.date)

        gaps = [later.date - earlier.date for earlier, later in zip(txns, txns[1:])]
        avg_interval = sum(gaps, timedelta()) / len(gaps)

        frequency = len(txns) / LOOKBACK_DAYS
        avg_amount = statistics.fmean(abs(t.amount) for t in txns)

        normalized_frequency = min(frequency * FREQUENCY_SCALE_DAYS, 1.0)
        normalized_amount = min(avg_amount / AMOUNT_REFERENCE, 1.0)
        likelihood = (normalized_frequency + normalized_amount) / 2.0

        predicted_date = txns[-1].date + avg_interval

        warning = None
        if likelihood > WARNING_THRESHOLD:
            warning = (
                f"High likelihood ({likelihood * 100:.0f}%) of spending in {category} "
                f"category around {predicted_date.strftime('%b %d')}"
            )

        return PredictedSpend(
            category=category,
            likelihood=likelihood,
            predicted_date=predicted_date,
            warning=warning,
        )

    def get_spending_analytics(self, account_id: str, time_range: str) -> SpendingAnalytics:
        """
        Build the combined analytics for an account.

        Category ranking and the monthly average follow ``time_range``; time
        patterns always cover the last month and predictions the last six.
        """
        logger.info(f"Computing spending analytics for account {account_id} ({time_range})")

        category_totals = self._fetch_category_totals(account_id, time_range)
        top_categories, total_spent = self.rank_categories(category_totals)

        end_date = self._clock()
        start_date = end_date - relativedelta(months=1)
        try:
            patterns = self.analyze_time_patterns(account_id, start_date, end_date)
        except SourceUnavailable as exc:
            raise SourceUnavailable(f"failed to analyze time patterns: {exc}") from exc

        try:
            predictions = self.predict_future_spending(account_id)
        except SourceUnavailable as exc:
            raise SourceUnavailable(f"failed to predict spending: {exc}") from exc

        analytics = SpendingAnalytics(
            top_categories=top_categories,
            spending_patterns=patterns,
            predicted_spending=predictions,
            total_spent=total_spent,
            monthly_average=total_spent / months_in(time_range),
        )
        logger.info(
            f"Analytics ready for account {account_id}: total={total_spent:.2f}, "
            f"{len(patterns)} patterns, {len(predictions)} predictions"
        )
        return analytics
