"""
Transaction API Routes
"""
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bizpulse.core.database import get_db
from bizpulse.core.dates import isoformat, parse_date_range
from bizpulse.core.responses import api_response, build_pagination
from bizpulse.core.security import get_current_user
from bizpulse.models import Transaction, TransactionType, PaymentMethod
from bizpulse.schemas import TransactionCreate, TransactionUpdate, TokenPayload, TrendPeriod
from bizpulse.services.analytics_service import AnalyticsService
from bizpulse.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def transaction_to_dict(t: Transaction) -> Dict[str, Any]:
    return {
        "id": t.id,
        "businessId": t.business_id,
        "type": t.type,
        "category": t.category,
        "amount": float(t.amount),
        "description": t.description,
        "date": isoformat(t.date),
        "paymentMethod": t.payment_method,
        "reference": t.reference,
        "products": [
            {
                "productId": item.product_id,
                # None once the product has been deleted
                "productName": item.product.name if item.product else None,
                "productSku": item.product.sku if item.product else None,
                "variantName": item.variant_name,
                "quantity": item.quantity,
                "unitPrice": float(item.unit_price),
                "totalPrice": float(item.total_price),
            }
            for item in t.items
        ],
        "tags": t.tags or [],
        "createdAt": isoformat(t.created_at),
        "updatedAt": isoformat(t.updated_at),
    }


@router.get("")
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    sort_by: str = Query("date", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    start, end = parse_date_range(start_date, end_date)
    transactions, total = TransactionService(db).list(
        current_user.business_id, page=page, limit=limit, transaction_type=type,
        category=category, payment_method=payment_method, start_date=start, end_date=end,
        sort_by=sort_by, sort_order=sort_order
    )
    return api_response(
        data=[transaction_to_dict(t) for t in transactions],
        pagination=build_pagination(page, limit, total)
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    transaction_data: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Record a transaction; income line items take stock"""
    service = TransactionService(db)
    transaction = service.create(transaction_data, current_user.business_id)
    db.commit()
    transaction = service.get_or_404(transaction.id, current_user.business_id)
    return api_response(
        data=transaction_to_dict(transaction),
        message="Transaction created successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.get("/summary")
async def get_financial_summary(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    start, end = parse_date_range(start_date, end_date)
    summary = AnalyticsService(db).get_financial_summary(current_user.business_id, start, end)
    return api_response(data=summary)


@router.get("/sales-trends")
async def get_sales_trends(
    period: TrendPeriod = TrendPeriod.MONTHLY,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    start, end = parse_date_range(start_date, end_date)
    trends = AnalyticsService(db).get_sales_trends(current_user.business_id, period, start, end)
    return api_response(data=trends)


@router.get("/categories")
async def list_transaction_categories(
    type: Optional[TransactionType] = None,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    categories = TransactionService(db).get_categories(current_user.business_id, type)
    return api_response(data=categories)


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    transaction = TransactionService(db).get_or_404(transaction_id, current_user.business_id)
    return api_response(data=transaction_to_dict(transaction))


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: int,
    transaction_data: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    service = TransactionService(db)
    service.update(transaction_id, current_user.business_id, transaction_data)
    db.commit()
    transaction = service.get_or_404(transaction_id, current_user.business_id)
    return api_response(data=transaction_to_dict(transaction), message="Transaction updated successfully")


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Delete a transaction; income line items give their stock back"""
    TransactionService(db).delete(transaction_id, current_user.business_id)
    db.commit()
    return api_response(message="Transaction deleted successfully")
