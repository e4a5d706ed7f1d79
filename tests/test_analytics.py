from datetime import datetime

import pytest

from bizpulse.services.analytics_service import PERIOD_BUCKETS
from bizpulse.schemas import TrendPeriod

from conftest import auth_headers_for, create_product, create_transaction


def _income(client, headers, amount, date, **overrides):
    return create_transaction(client, headers, type="income", category="Sales", amount=amount, date=date,
                              paymentMethod="cash", **overrides)


def test_empty_summary_is_all_zeros(client, auth_headers):
    response = client.get("/api/transactions/summary", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {
        "totalIncome": 0,
        "totalExpenses": 0,
        "totalWithdrawals": 0,
        "netProfit": 0,
        "period": {"start": None, "end": None},
    }


def test_summary_totals_and_net_profit(client, auth_headers):
    _income(client, auth_headers, 500, "2024-03-01T10:00:00Z")
    _income(client, auth_headers, 250.5, "2024-03-02T10:00:00Z")
    create_transaction(client, auth_headers, amount=300)
    create_transaction(client, auth_headers, type="withdrawal", category="Owner", amount=100)

    data = client.get("/api/transactions/summary", headers=auth_headers).json()["data"]
    assert data["totalIncome"] == 750.5
    assert data["totalExpenses"] == 300
    assert data["totalWithdrawals"] == 100
    assert data["netProfit"] == 350.5


def test_summary_respects_date_range_and_echoes_period(client, auth_headers):
    _income(client, auth_headers, 100, "2024-01-15T10:00:00Z")
    _income(client, auth_headers, 200, "2024-02-15T10:00:00Z")

    response = client.get("/api/transactions/summary", headers=auth_headers, params={
        "startDate": "2024-02-01T00:00:00Z", "endDate": "2024-02-29T23:59:59Z",
    })
    data = response.json()["data"]
    assert data["totalIncome"] == 200
    assert data["period"] == {"start": "2024-02-01T00:00:00Z", "end": "2024-02-29T23:59:59Z"}


def test_summary_is_scoped_to_business(client, auth_headers):
    other = auth_headers_for(client, email="other@example.com")
    _income(client, other, 999, "2024-03-01T10:00:00Z")
    assert client.get("/api/transactions/summary", headers=auth_headers).json()["data"]["totalIncome"] == 0


def test_monthly_trend_sums_incomes_in_the_same_month(client, auth_headers):
    _income(client, auth_headers, 100, "2024-03-01T10:00:00Z")
    _income(client, auth_headers, 50, "2024-03-20T10:00:00Z")
    _income(client, auth_headers, 70, "2024-04-02T10:00:00Z")
    create_transaction(client, auth_headers, amount=999, date="2024-03-05T10:00:00Z")

    response = client.get("/api/transactions/sales-trends", headers=auth_headers, params={"period": "monthly"})
    assert response.status_code == 200
    assert response.json()["data"] == [
        {"date": "2024-03", "sales": 150, "transactions": 2},
        {"date": "2024-04", "sales": 70, "transactions": 1},
    ]


def test_daily_and_weekly_trends(client, auth_headers):
    _income(client, auth_headers, 10, "2024-01-06T10:00:00Z")  # Saturday
    _income(client, auth_headers, 20, "2024-01-07T10:00:00Z")  # Sunday
    _income(client, auth_headers, 30, "2024-01-07T18:00:00Z")

    daily = client.get("/api/transactions/sales-trends", headers=auth_headers, params={"period": "daily"}).json()
    assert daily["data"] == [
        {"date": "2024-01-06", "sales": 10, "transactions": 1},
        {"date": "2024-01-07", "sales": 50, "transactions": 2},
    ]

    weekly = client.get("/api/transactions/sales-trends", headers=auth_headers, params={"period": "weekly"}).json()
    assert weekly["data"] == [
        {"date": "2024-W00", "sales": 10, "transactions": 1},
        {"date": "2024-W01", "sales": 50, "transactions": 2},
    ]


def test_unknown_period_is_rejected(client, auth_headers):
    response = client.get("/api/transactions/sales-trends", headers=auth_headers, params={"period": "hourly"})
    assert response.status_code == 400
    assert response.json()["validationErrors"][0]["field"] == "period"

    response = client.get("/api/analytics/cash-flow", headers=auth_headers, params={"period": "yearly"})
    assert response.status_code == 400


def test_malformed_or_reversed_dates_are_rejected(client, auth_headers):
    response = client.get("/api/analytics/expenses", headers=auth_headers, params={"startDate": "03/01/2024"})
    assert response.status_code == 400
    assert response.json()["validationErrors"][0]["field"] == "startDate"

    response = client.get("/api/transactions/summary", headers=auth_headers, params={"endDate": "not-a-date"})
    assert response.json()["validationErrors"][0]["field"] == "endDate"

    response = client.get("/api/analytics/product-performance", headers=auth_headers, params={
        "startDate": "2024-06-01", "endDate": "2024-01-01",
    })
    assert response.status_code == 400


def test_expense_analysis_percentages(client, auth_headers):
    create_transaction(client, auth_headers, category="Rent", amount=300)
    create_transaction(client, auth_headers, category="Marketing", amount=100)
    _income(client, auth_headers, 1000, "2024-03-01T10:00:00Z")

    data = client.get("/api/analytics/expenses", headers=auth_headers).json()["data"]
    assert [row["category"] for row in data] == ["Rent", "Marketing"]
    assert data[0]["amount"] == 300
    assert data[0]["percentage"] == pytest.approx(75.0)
    assert data[1]["percentage"] == pytest.approx(25.0)


def test_single_expense_category_is_one_hundred_percent(client, auth_headers):
    create_transaction(client, auth_headers, category="Rent", amount=100)
    data = client.get("/api/analytics/expenses", headers=auth_headers).json()["data"]
    assert data == [{"category": "Rent", "amount": 100, "percentage": 100}]


def test_expense_analysis_empty(client, auth_headers):
    assert client.get("/api/analytics/expenses", headers=auth_headers).json()["data"] == []


def test_cash_flow_per_month(client, auth_headers):
    _income(client, auth_headers, 500, "2024-02-10T10:00:00Z")
    create_transaction(client, auth_headers, amount=200, date="2024-02-05T10:00:00Z")
    create_transaction(client, auth_headers, type="withdrawal", category="Owner", amount=50, date="2024-02-20T10:00:00Z")
    create_transaction(client, auth_headers, amount=80, date="2024-03-05T10:00:00Z")

    data = client.get("/api/analytics/cash-flow", headers=auth_headers).json()["data"]
    assert data == [
        {"date": "2024-02", "income": 500, "expenses": 200, "withdrawals": 50, "netCashFlow": 250},
        {"date": "2024-03", "income": 0, "expenses": 80, "withdrawals": 0, "netCashFlow": -80},
    ]


def test_product_performance_uses_cost_at_sale(client, auth_headers):
    pizza = create_product(client, auth_headers, name="Pizza", costPrice=4, salePrice=10, stockQuantity=50)
    cola = create_product(client, auth_headers, name="Cola", costPrice=1, salePrice=2.5, stockQuantity=50)

    client.post("/api/transactions", headers=auth_headers, json={
        "type": "income", "category": "Sales", "amount": 25, "date": "2024-03-01T12:00:00Z", "paymentMethod": "cash",
        "products": [
            {"productId": pizza["id"], "quantity": 2, "unitPrice": 10},
            {"productId": cola["id"], "quantity": 2, "unitPrice": 2.5},
        ],
    })
    # Raising the cost later does not rewrite the profit of earlier sales
    client.put(f"/api/products/{pizza['id']}", headers=auth_headers, json={"costPrice": 9})

    data = client.get("/api/analytics/product-performance", headers=auth_headers).json()["data"]
    assert [row["productName"] for row in data] == ["Pizza", "Cola"]
    assert data[0]["unitsSold"] == 2
    assert data[0]["revenue"] == 20
    assert data[0]["profit"] == 12
    assert data[0]["profitMargin"] == pytest.approx(60.0)
    assert data[1]["profit"] == 3
    assert data[1]["productId"] == cola["id"]


def test_product_performance_ignores_expenses_and_deleted_products(client, auth_headers):
    kept = create_product(client, auth_headers, name="Kept", costPrice=1, salePrice=2, stockQuantity=10)
    gone = create_product(client, auth_headers, name="Gone", costPrice=1, salePrice=2, stockQuantity=10)

    for product in (kept, gone):
        client.post("/api/transactions", headers=auth_headers, json={
            "type": "income", "category": "Sales", "amount": 2, "date": "2024-03-01T12:00:00Z", "paymentMethod": "cash",
            "products": [{"productId": product["id"], "quantity": 1, "unitPrice": 2}],
        })
    client.post("/api/transactions", headers=auth_headers, json={
        "type": "expense", "category": "Restock", "amount": 5, "date": "2024-03-01T12:00:00Z",
        "paymentMethod": "cash",
        "products": [{"productId": kept["id"], "quantity": 5, "unitPrice": 1}],
    })
    client.delete(f"/api/products/{gone['id']}", headers=auth_headers)

    data = client.get("/api/analytics/product-performance", headers=auth_headers).json()["data"]
    assert data == [{
        "productId": kept["id"],
        "productName": "Kept",
        "unitsSold": 1,
        "revenue": 2,
        "profit": 1,
        "profitMargin": 50,
    }]


def test_period_buckets():
    moment = datetime(2024, 12, 31, 23, 0)
    assert PERIOD_BUCKETS[TrendPeriod.DAILY](moment) == "2024-12-31"
    assert PERIOD_BUCKETS[TrendPeriod.WEEKLY](moment) == "2024-W52"
    assert PERIOD_BUCKETS[TrendPeriod.MONTHLY](moment) == "2024-12"
