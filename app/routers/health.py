"""
Health Check Router
Service liveness and DynamoDB reachability
"""
from fastapi import APIRouter
import logging

from app.core.config import settings
from app.core.errors import SourceUnavailable
from app.db.dynamo import DynamoTransactionSource
from app.db.source import utcnow

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": utcnow().isoformat()
    }


@router.get("/status")
def dynamodb_status():
    """
    Check that the transactions table can be reached.
    """
    table_status = {
        "name": settings.DYNAMO_TRANSACTIONS_TABLE,
        "region": settings.DYNAMO_REGION,
        "status": "accessible",
        "error": None,
    }
    try:
        DynamoTransactionSource().ping()
    except SourceUnavailable as e:
        table_status["status"] = "error"
        table_status["error"] = str(e)
        logger.error(f"DynamoDB check failed: {str(e)}")

    return {
        "timestamp": utcnow().isoformat(),
        "services": {"dynamodb": table_status},
        "overall_status": "healthy" if table_status["error"] is None else "degraded",
    }
