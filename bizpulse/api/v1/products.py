"""
Product API Routes - Catalog and Stock
"""
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bizpulse.core.database import get_db
from bizpulse.core.dates import isoformat
from bizpulse.core.responses import api_response, build_pagination
from bizpulse.core.security import get_current_user
from bizpulse.models import Product
from bizpulse.schemas import ProductCreate, ProductUpdate, StockUpdateRequest, TokenPayload
from bizpulse.services.inventory_service import ProductService, InventoryService

router = APIRouter(prefix="/products", tags=["Products"])


def product_to_dict(p: Product) -> Dict[str, Any]:
    return {
        "id": p.id,
        "businessId": p.business_id,
        "name": p.name,
        "description": p.description,
        "category": p.category,
        "costPrice": float(p.cost_price),
        "salePrice": float(p.sale_price),
        "margin": p.margin,
        "sku": p.sku,
        "variants": [
            {
                "name": v.name,
                "costPrice": float(v.cost_price),
                "salePrice": float(v.sale_price),
                "sku": v.sku,
                "stockQuantity": v.stock_quantity,
            }
            for v in p.variants
        ],
        "stockQuantity": p.stock_quantity,
        "lowStockThreshold": p.low_stock_threshold,
        "isActive": p.is_active,
        "isLowStock": p.is_low_stock,
        "createdAt": isoformat(p.created_at),
        "updatedAt": isoformat(p.updated_at),
    }


@router.get("")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    products, total = ProductService(db).list(
        current_user.business_id, page=page, limit=limit, category=category, search=search,
        is_active=is_active, sort_by=sort_by, sort_order=sort_order
    )
    return api_response(
        data=[product_to_dict(p) for p in products],
        pagination=build_pagination(page, limit, total)
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    product = ProductService(db).create(product_data, current_user.business_id)
    db.commit()
    db.refresh(product)
    return api_response(
        data=product_to_dict(product),
        message="Product created successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.get("/categories")
async def list_product_categories(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Distinct categories of active products"""
    return api_response(data=ProductService(db).get_categories(current_user.business_id))


@router.get("/low-stock")
async def list_low_stock_products(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    products = InventoryService(db).get_low_stock(current_user.business_id)
    return api_response(data=[product_to_dict(p) for p in products])


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    product = ProductService(db).get_or_404(product_id, current_user.business_id)
    return api_response(data=product_to_dict(product))


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    product = ProductService(db).update(product_id, current_user.business_id, product_data)
    db.commit()
    db.refresh(product)
    return api_response(data=product_to_dict(product), message="Product updated successfully")


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    ProductService(db).delete(product_id, current_user.business_id)
    db.commit()
    return api_response(message="Product deleted successfully")


@router.patch("/{product_id}/stock")
async def update_stock(
    product_id: int,
    stock_data: StockUpdateRequest,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Add to, subtract from (floored at zero) or set the stock level"""
    product = InventoryService(db).adjust_stock(
        product_id, current_user.business_id, stock_data.quantity, stock_data.operation
    )
    db.commit()
    db.refresh(product)
    return api_response(data=product_to_dict(product), message="Stock updated successfully")
