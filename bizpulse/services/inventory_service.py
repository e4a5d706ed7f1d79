"""
Inventory Service - Products and Stock Management

Stock only moves through InventoryService: sales reserve it, deleted sales
release it, and the stock endpoint adjusts it. Every movement is a single
conditional UPDATE so concurrent sales cannot push stock below zero.
"""
import logging
from typing import Optional, List, Dict, Tuple, Iterable

from sqlalchemy import update, case, or_
from sqlalchemy.orm import Session, selectinload

from bizpulse.core.exceptions import (
    NotFoundException, ValidationException, DuplicateResourceException, InsufficientStockException
)
from bizpulse.models import Product, ProductVariant
from bizpulse.schemas import ProductCreate, ProductUpdate, StockOperation

logger = logging.getLogger(__name__)

PRODUCT_SORT_FIELDS = {
    "createdAt": Product.created_at,
    "name": Product.name,
    "category": Product.category,
    "salePrice": Product.sale_price,
    "costPrice": Product.cost_price,
    "stockQuantity": Product.stock_quantity,
}


def _variants_from_schema(variants) -> List[ProductVariant]:
    return [
        ProductVariant(
            name=v.name,
            cost_price=v.cost_price,
            sale_price=v.sale_price,
            sku=v.sku,
            stock_quantity=v.stock_quantity
        )
        for v in variants
    ]


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, product_id: int, business_id: int) -> Optional[Product]:
        return self.db.query(Product).options(selectinload(Product.variants)).filter(
            Product.id == product_id,
            Product.business_id == business_id
        ).first()

    def get_or_404(self, product_id: int, business_id: int) -> Product:
        product = self.get_by_id(product_id, business_id)
        if not product:
            raise NotFoundException("Product not found")
        return product

    def is_sku_unique(self, sku: str, business_id: int, exclude_product_id: int = None) -> bool:
        """Check if SKU is unique within the business"""
        if not sku:
            return True
        query = self.db.query(Product).filter(
            Product.sku == sku,
            Product.business_id == business_id
        )
        if exclude_product_id:
            query = query.filter(Product.id != exclude_product_id)
        return query.first() is None

    def list(self, business_id: int, page: int = 1, limit: int = 10, category: str = None,
             search: str = None, is_active: bool = None, sort_by: str = "createdAt",
             sort_order: str = "desc") -> Tuple[List[Product], int]:
        query = self.db.query(Product).filter(Product.business_id == business_id)

        if category:
            query = query.filter(Product.category == category)
        if is_active is not None:
            query = query.filter(Product.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern)
            ))

        column = PRODUCT_SORT_FIELDS.get(sort_by)
        if column is None:
            raise ValidationException(f"Cannot sort products by '{sort_by}'", field="sortBy", value=sort_by)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        products = query.options(selectinload(Product.variants)).order_by(order, Product.id.desc())\
            .offset((page - 1) * limit).limit(limit).all()
        return products, total

    def get_categories(self, business_id: int) -> List[str]:
        rows = self.db.query(Product.category).filter(
            Product.business_id == business_id,
            Product.is_active == True
        ).distinct().order_by(Product.category).all()
        return [row[0] for row in rows]

    def create(self, product_data: ProductCreate, business_id: int) -> Product:
        if product_data.sku and not self.is_sku_unique(product_data.sku, business_id):
            raise DuplicateResourceException(f"Product with SKU '{product_data.sku}' already exists in this business")

        product = Product(
            business_id=business_id,
            name=product_data.name,
            description=product_data.description,
            category=product_data.category,
            cost_price=product_data.cost_price,
            sale_price=product_data.sale_price,
            sku=product_data.sku or None,
            stock_quantity=product_data.stock_quantity,
            low_stock_threshold=product_data.low_stock_threshold,
            is_active=product_data.is_active,
            variants=_variants_from_schema(product_data.variants)
        )
        self.db.add(product)
        self.db.flush()
        return product

    def update(self, product_id: int, business_id: int, product_data: ProductUpdate) -> Product:
        product = self.get_or_404(product_id, business_id)
        update_data = product_data.model_dump(exclude_unset=True, exclude={"variants"})

        # Prices are checked on the merged record before anything is written
        cost_price = update_data.get("cost_price") if update_data.get("cost_price") is not None else product.cost_price
        sale_price = update_data.get("sale_price") if update_data.get("sale_price") is not None else product.sale_price
        if sale_price < cost_price:
            raise ValidationException(
                "Sale price must be greater than or equal to cost price",
                field="salePrice", value=float(sale_price)
            )

        if update_data.get("sku"):
            if not self.is_sku_unique(update_data["sku"], business_id, exclude_product_id=product_id):
                raise DuplicateResourceException(f"Product with SKU '{update_data['sku']}' already exists in this business")

        for key, value in update_data.items():
            if key == "sku":
                value = value or None
            elif value is None and key != "description":
                continue
            setattr(product, key, value)

        if product_data.variants is not None:
            product.variants = _variants_from_schema(product_data.variants)

        self.db.flush()
        return product

    def delete(self, product_id: int, business_id: int):
        """Hard delete; line items that reference the product keep their history"""
        product = self.get_or_404(product_id, business_id)
        self.db.delete(product)
        self.db.flush()


def _add(quantity: int):
    return Product.stock_quantity + quantity


def _subtract(quantity: int):
    # Floored at zero
    return case((Product.stock_quantity > quantity, Product.stock_quantity - quantity), else_=0)


def _set(quantity: int):
    return quantity


STOCK_OPERATIONS = {
    StockOperation.ADD: _add,
    StockOperation.SUBTRACT: _subtract,
    StockOperation.SET: _set,
}


class InventoryService:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, product_id: int, business_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.id == product_id,
            Product.business_id == business_id
        ).first()

    def _move_stock(self, product_id: int, business_id: int, new_value, *conditions) -> int:
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.business_id == business_id, *conditions)
            .values(stock_quantity=new_value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def reserve_items(self, business_id: int, items: Iterable) -> Dict[int, Product]:
        """
        Decrement stock for each sold line item.

        Raises NotFoundException for a product outside the business and
        InsufficientStockException when stock is short. The caller's session
        is rolled back on either, undoing the earlier decrements.
        """
        products = {}
        for item in items:
            product = self._find(item.product_id, business_id)
            if not product:
                raise NotFoundException(f"Product with ID {item.product_id} not found")

            moved = self._move_stock(
                item.product_id, business_id,
                Product.stock_quantity - item.quantity,
                Product.stock_quantity >= item.quantity
            )
            if not moved:
                raise InsufficientStockException(f"Insufficient stock for product {product.name}")

            logger.info(f"Reserved {item.quantity} of product {item.product_id} (business {business_id})")
            products[product.id] = product
        return products

    def ensure_products_exist(self, business_id: int, items: Iterable) -> Dict[int, Product]:
        """Look up line-item products without moving stock"""
        products = {}
        for item in items:
            product = self._find(item.product_id, business_id)
            if not product:
                raise NotFoundException(f"Product with ID {item.product_id} not found")
            products[product.id] = product
        return products

    def release_items(self, business_id: int, items: Iterable):
        """Give stock back for each line item; products that no longer exist are skipped"""
        for item in items:
            moved = self._move_stock(item.product_id, business_id, Product.stock_quantity + item.quantity)
            if moved:
                logger.info(f"Released {item.quantity} of product {item.product_id} (business {business_id})")
            else:
                logger.debug(f"Product {item.product_id} no longer exists, skipping stock release")

    def adjust_stock(self, product_id: int, business_id: int, quantity: int,
                     operation: StockOperation = StockOperation.SET) -> Product:
        builder = STOCK_OPERATIONS.get(operation, _set)
        if not self._move_stock(product_id, business_id, builder(quantity)):
            raise NotFoundException("Product not found")

        product = self._find(product_id, business_id)
        self.db.refresh(product)
        logger.info(f"Stock of product {product_id} {operation.value} {quantity} -> {product.stock_quantity}")
        return product

    def get_low_stock(self, business_id: int) -> List[Product]:
        """Active products at or below their low-stock threshold, lowest stock first"""
        return self.db.query(Product).options(selectinload(Product.variants)).filter(
            Product.business_id == business_id,
            Product.is_active == True,
            Product.stock_quantity <= Product.low_stock_threshold
        ).order_by(Product.stock_quantity.asc(), Product.id.asc()).all()

