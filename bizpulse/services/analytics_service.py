"""
Analytics Service - Financial Summary, Trends and Profitability
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, case
from sqlalchemy.orm import Session

from bizpulse.core.dates import isoformat
from bizpulse.models import Transaction, TransactionItem, Product, TransactionType
from bizpulse.schemas import TrendPeriod


def _daily_bucket(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _weekly_bucket(value: datetime) -> str:
    # Sunday-start week of the year, week 00 before the first Sunday
    return f"{value.year}-W{int(value.strftime('%U')):02d}"


def _monthly_bucket(value: datetime) -> str:
    return value.strftime("%Y-%m")


PERIOD_BUCKETS = {
    TrendPeriod.DAILY: _daily_bucket,
    TrendPeriod.WEEKLY: _weekly_bucket,
    TrendPeriod.MONTHLY: _monthly_bucket,
}


def _money(value) -> float:
    return round(float(value or 0), 2)


def _percentage(part, total) -> float:
    if not total:
        return 0.0
    return float(part) / float(total) * 100


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def _scoped(self, query, business_id: int, start_date: Optional[datetime], end_date: Optional[datetime]):
        query = query.filter(Transaction.business_id == business_id)
        if start_date:
            query = query.filter(Transaction.date >= start_date)
        if end_date:
            query = query.filter(Transaction.date <= end_date)
        return query

    def _sum_for(self, transaction_type: TransactionType):
        return func.coalesce(func.sum(
            case((Transaction.type == transaction_type.value, Transaction.amount), else_=0)
        ), 0)

    def get_financial_summary(self, business_id: int, start_date: datetime = None,
                              end_date: datetime = None) -> Dict:
        """Income, expense and withdrawal totals; all zero when nothing matches"""
        row = self._scoped(
            self.db.query(
                self._sum_for(TransactionType.INCOME),
                self._sum_for(TransactionType.EXPENSE),
                self._sum_for(TransactionType.WITHDRAWAL),
            ),
            business_id, start_date, end_date
        ).one()

        total_income, total_expenses, total_withdrawals = (Decimal(str(v or 0)) for v in row)
        return {
            "totalIncome": _money(total_income),
            "totalExpenses": _money(total_expenses),
            "totalWithdrawals": _money(total_withdrawals),
            "netProfit": _money(total_income - (total_expenses + total_withdrawals)),
            "period": {
                "start": isoformat(start_date),
                "end": isoformat(end_date),
            },
        }

    def get_sales_trends(self, business_id: int, period: TrendPeriod = TrendPeriod.MONTHLY,
                         start_date: datetime = None, end_date: datetime = None) -> List[Dict]:
        bucket_of = PERIOD_BUCKETS[period]
        rows = self._scoped(
            self.db.query(Transaction.date, Transaction.amount),
            business_id, start_date, end_date
        ).filter(Transaction.type == TransactionType.INCOME.value).all()

        buckets: Dict[str, Dict] = {}
        for date, amount in rows:
            key = bucket_of(date)
            bucket = buckets.setdefault(key, {"date": key, "sales": Decimal("0"), "transactions": 0})
            bucket["sales"] += Decimal(str(amount))
            bucket["transactions"] += 1

        return [
            {"date": b["date"], "sales": _money(b["sales"]), "transactions": b["transactions"]}
            for _, b in sorted(buckets.items())
        ]

    def get_expense_analysis(self, business_id: int, start_date: datetime = None,
                             end_date: datetime = None) -> List[Dict]:
        total_amount = func.sum(Transaction.amount)
        rows = self._scoped(
            self.db.query(Transaction.category, total_amount.label("total")),
            business_id, start_date, end_date
        ).filter(
            Transaction.type == TransactionType.EXPENSE.value
        ).group_by(Transaction.category).order_by(total_amount.desc(), Transaction.category).all()

        grand_total = sum((Decimal(str(row.total or 0)) for row in rows), Decimal("0"))
        return [
            {
                "category": row.category,
                "amount": _money(row.total),
                "percentage": _percentage(Decimal(str(row.total or 0)), grand_total),
            }
            for row in rows
        ]

    def get_cash_flow(self, business_id: int, period: TrendPeriod = TrendPeriod.MONTHLY,
                      start_date: datetime = None, end_date: datetime = None) -> List[Dict]:
        bucket_of = PERIOD_BUCKETS[period]
        rows = self._scoped(
            self.db.query(Transaction.date, Transaction.type, Transaction.amount),
            business_id, start_date, end_date
        ).all()

        columns = {
            TransactionType.INCOME.value: "income",
            TransactionType.EXPENSE.value: "expenses",
            TransactionType.WITHDRAWAL.value: "withdrawals",
        }
        buckets: Dict[str, Dict] = {}
        for date, transaction_type, amount in rows:
            key = bucket_of(date)
            bucket = buckets.setdefault(key, {
                "income": Decimal("0"), "expenses": Decimal("0"), "withdrawals": Decimal("0")
            })
            bucket[columns[transaction_type]] += Decimal(str(amount))

        result = []
        for key, bucket in sorted(buckets.items()):
            result.append({
                "date": key,
                "income": _money(bucket["income"]),
                "expenses": _money(bucket["expenses"]),
                "withdrawals": _money(bucket["withdrawals"]),
                "netCashFlow": _money(bucket["income"] - (bucket["expenses"] + bucket["withdrawals"])),
            })
        return result

    def get_product_performance(self, business_id: int, start_date: datetime = None,
                                end_date: datetime = None) -> List[Dict]:
        """
        Units, revenue and profit per product over income line items.

        Profit uses the cost price captured on each line item. Line items
        whose product has since been deleted are left out.
        """
        units_sold = func.sum(TransactionItem.quantity)
        revenue = func.sum(TransactionItem.total_price)
        profit = func.sum(TransactionItem.total_price - TransactionItem.quantity * TransactionItem.cost_price)

        rows = self._scoped(
            self.db.query(
                Product.id.label("product_id"),
                Product.name.label("product_name"),
                units_sold.label("units_sold"),
                revenue.label("revenue"),
                profit.label("profit"),
            )
            .select_from(TransactionItem)
            .join(Transaction, Transaction.id == TransactionItem.transaction_id)
            .join(Product, Product.id == TransactionItem.product_id),
            business_id, start_date, end_date
        ).filter(
            Transaction.type == TransactionType.INCOME.value,
            Product.business_id == business_id
        ).group_by(Product.id, Product.name).order_by(revenue.desc(), Product.id).all()

        return [
            {
                "productId": row.product_id,
                "productName": row.product_name,
                "unitsSold": int(row.units_sold or 0),
                "revenue": _money(row.revenue),
                "profit": _money(row.profit),
                "profitMargin": _percentage(Decimal(str(row.profit or 0)), Decimal(str(row.revenue or 0))),
            }
            for row in rows
        ]
