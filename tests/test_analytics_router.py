from datetime import datetime

from unittest.mock import MagicMock

from botocore.exceptions import EndpointConnectionError
from fastapi.testclient import TestClient

from app.core.errors import SourceUnavailable
from app.db import dynamo
from app.db.dynamo import DynamoTransactionSource
from app.db.source import TimeWindow
from app.main import app
from app.models.transaction import Transaction
from app.routers.analytics import get_analyzer
from app.utils.analyzer import SpendingAnalyzer

NOW = datetime(2025, 3, 31, 12, 0)

transactions = [
    Transaction(date=datetime(2025, 3, 3, 12, 15), amount=-300.0, category="Groceries"),
    Transaction(date=datetime(2025, 3, 10, 12, 30), amount=-100.0, category="Groceries"),
    Transaction(date=datetime(2025, 3, 17, 12, 45), amount=-200.0, category="Groceries"),
]


class StaticSource:
    def __init__(self):
        self.windows = []

    def get_transactions(self, account_id, window):
        self.windows.append(window)
        return transactions

    def get_category_totals(self, account_id, time_range):
        return {"Groceries": 300.0, "Dining": 200.0}


class BrokenSource:
    def get_transactions(self, account_id, window):
        raise SourceUnavailable("table unavailable")

    def get_category_totals(self, account_id, time_range):
        raise SourceUnavailable("table unavailable")


def client_for(source):
    app.dependency_overrides[get_analyzer] = lambda: SpendingAnalyzer(source, clock=lambda: NOW)
    return TestClient(app)


def teardown_function():
    app.dependency_overrides.clear()


def test_spending_analytics_endpoint():
    response = client_for(StaticSource()).get("/api/analytics/acc-1", params={"time_range": "1 year"})
    assert response.status_code == 200
    body = response.json()
    assert body["top_categories"] == [
        {"category": "Groceries", "total_spent": "300.00", "percentage": "60.00"},
        {"category": "Dining", "total_spent": "200.00", "percentage": "40.00"},
    ]
    assert body["total_spent"] == 500.0
    assert body["monthly_average"] == 41.67
    assert body["spending_patterns"][0] == {
        "day_of_week": "Monday",
        "time_of_day": "12:00",
        "frequency": 3,
        "average_spend": 200.0,
    }
    assert body["predicted_spending"][0]["category"] == "Groceries"
    assert body["predicted_spending"][0]["predicted_date"] == "2025-03-24T13:00:00"
    assert "warning" not in body["predicted_spending"][0]


def test_time_patterns_endpoint_rejects_inverted_window():
    response = client_for(StaticSource()).get(
        "/api/analytics/acc-1/patterns",
        params={"start_date": "2025-03-31T00:00:00", "end_date": "2025-03-01T00:00:00"},
    )
    assert response.status_code == 400


def test_predictions_endpoint():
    response = client_for(StaticSource()).get("/api/analytics/acc-1/predictions")
    assert response.status_code == 200
    assert [p["category"] for p in response.json()] == ["Groceries"]


def test_source_failure_maps_to_503():
    response = client_for(BrokenSource()).get("/api/analytics/acc-1")
    assert response.status_code == 503
    assert response.json()["detail"] == "failed to get category totals: table unavailable"


def test_health():
    response = TestClient(app).get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_time_patterns_endpoint():
    source = StaticSource()
    response = client_for(source).get(
        "/api/analytics/acc-1/patterns",
        params={"start_date": "2025-03-01T00:00:00", "end_date": "2025-03-31T00:00:00"},
    )
    assert response.status_code == 200
    assert response.json() == [
        {"day_of_week": "Monday", "time_of_day": "12:00", "frequency": 3, "average_spend": 200.0}
    ]
    assert source.windows == [TimeWindow(datetime(2025, 3, 1), datetime(2025, 3, 31))]


def test_time_patterns_endpoint_accepts_mixed_timezones():
    source = StaticSource()
    response = client_for(source).get(
        "/api/analytics/acc-1/patterns",
        params={"start_date": "2025-03-01T02:00:00+02:00", "end_date": "2025-03-31T00:00:00Z"},
    )
    assert response.status_code == 200
    assert source.windows == [TimeWindow(datetime(2025, 3, 1), datetime(2025, 3, 31))]


def test_predictions_source_failure_maps_to_503():
    response = client_for(BrokenSource()).get("/api/analytics/acc-1/predictions")
    assert response.status_code == 503
    assert response.json()["detail"] == "failed to get transactions: table unavailable"


def test_unreachable_dynamodb_maps_to_503():
    table = MagicMock()
    table.query.side_effect = EndpointConnectionError(
        endpoint_url="https://dynamodb.eu-west-1.amazonaws.com"
    )
    response = client_for(DynamoTransactionSource(table=table)).get("/api/analytics/acc-1")
    assert response.status_code == 503
    assert response.json()["detail"].startswith(
        "failed to get category totals: Could not connect to the endpoint URL"
    )


def test_status_reports_degraded_when_unreachable(monkeypatch):
    table = MagicMock()
    table.scan.side_effect = EndpointConnectionError(
        endpoint_url="https://dynamodb.eu-west-1.amazonaws.com"
    )
    monkeypatch.setattr(dynamo, "transactions_table", table)

    response = TestClient(app).get("/api/status")
    assert response.status_code == 200
    body = response.json()
    assert body["overall_status"] == "degraded"
    assert body["services"]["dynamodb"]["status"] == "error"
