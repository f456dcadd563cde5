import logging
from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.errors import SourceUnavailable
from app.db.dynamo import DynamoTransactionSource
from app.db.source import to_naive_utc
from app.utils.analyzer import SpendingAnalyzer

router = APIRouter()
logger = logging.getLogger(__name__)


def get_analyzer() -> SpendingAnalyzer:
    return SpendingAnalyzer(DynamoTransactionSource())


@router.get("/{account_id}")
def get_spending_analytics(
    account_id: str,
    time_range: str = Query(default="1 month"),
    analyzer: SpendingAnalyzer = Depends(get_analyzer),
) -> Dict:
    """
    Top categories, time patterns and predictions for an account.
    time_range is one of '1 month', '3 months', '6 months', '1 year'.
    """
    try:
        analytics = analyzer.get_spending_analytics(account_id, time_range)
    except SourceUnavailable as e:
        logger.error(f"Spending analytics failed for account {account_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return analytics.to_dict()


@router.get("/{account_id}/patterns")
def get_time_patterns(
    account_id: str,
    start_date: datetime,
    end_date: datetime,
    analyzer: SpendingAnalyzer = Depends(get_analyzer),
) -> List[Dict]:
    start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    try:
        patterns = analyzer.analyze_time_patterns(account_id, start_date, end_date)
    except SourceUnavailable as e:
        logger.error(f"Time pattern analysis failed for account {account_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return [pattern.to_dict() for pattern in patterns]


@router.get("/{account_id}/predictions")
def get_predictions(
    account_id: str,
    analyzer: SpendingAnalyzer = Depends(get_analyzer),
) -> List[Dict]:
    try:
        predictions = analyzer.predict_future_spending(account_id)
    except SourceUnavailable as e:
        logger.error(f"Spending prediction failed for account {account_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return [prediction.to_dict() for prediction in predictions]
