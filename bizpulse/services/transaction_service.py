"""
Transaction Service - Income, expense and withdrawal records
"""
import logging
from decimal import Decimal
from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy.orm import Session, selectinload

from bizpulse.core.dates import to_naive_utc
from bizpulse.core.exceptions import NotFoundException, ValidationException, AmountMismatchException
from bizpulse.models import Transaction, TransactionItem, TransactionType, PaymentMethod
from bizpulse.schemas import TransactionCreate, TransactionUpdate, TransactionItemCreate
from bizpulse.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")

TRANSACTION_SORT_FIELDS = {
    "date": Transaction.date,
    "amount": Transaction.amount,
    "category": Transaction.category,
    "type": Transaction.type,
    "createdAt": Transaction.created_at,
}


def check_amount_matches_items(amount: Decimal, items: List) -> None:
    """A transaction with line items must total sum(quantity * unitPrice) within 0.01"""
    if not items:
        return
    expected = sum((Decimal(item.quantity) * Decimal(item.unit_price) for item in items), Decimal("0"))
    if abs(Decimal(amount) - expected) > AMOUNT_TOLERANCE:
        raise AmountMismatchException(
            f"Amount must match sum of products (expected {expected:.2f}, got {Decimal(amount):.2f})"
        )


class TransactionService:
    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

        # What each transaction type does to stock when its line items are written or removed
        self._apply_handlers = {
            TransactionType.INCOME: self.inventory.reserve_items,
            TransactionType.EXPENSE: self.inventory.ensure_products_exist,
            TransactionType.WITHDRAWAL: self.inventory.ensure_products_exist,
        }
        self._revert_handlers = {
            TransactionType.INCOME: self.inventory.release_items,
        }
        # Stored line items re-used under a new type; only a sale needs their products to still exist
        self._reapply_handlers = {
            TransactionType.INCOME: self._reserve_stored_items,
        }

    def _apply_items(self, business_id: int, transaction_type: TransactionType, items: List):
        if not items:
            return {}
        return self._apply_handlers[transaction_type](business_id, items)

    def _revert_items(self, business_id: int, transaction_type: TransactionType, items: List):
        handler = self._revert_handlers.get(transaction_type)
        if handler and items:
            handler(business_id, items)

    def _reapply_items(self, business_id: int, transaction_type: TransactionType, items: List):
        handler = self._reapply_handlers.get(transaction_type)
        if handler and items:
            handler(business_id, items)

    def _reserve_stored_items(self, business_id: int, items: List):
        for item in items:
            if item.product is None:
                raise NotFoundException(
                    f"Product with ID {item.product_id} no longer exists; "
                    f"send new products to record this transaction as income"
                )
        self.inventory.reserve_items(business_id, items)

    @staticmethod
    def _build_items(items: List[TransactionItemCreate], products: dict) -> List[TransactionItem]:
        result = []
        for item in items:
            product = products.get(item.product_id)
            result.append(TransactionItem(
                product_id=item.product_id,
                variant_name=item.variant_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.line_total,
                cost_price=product.cost_price if product is not None else Decimal("0.00")
            ))
        return result

    def get_by_id(self, transaction_id: int, business_id: int) -> Optional[Transaction]:
        return self.db.query(Transaction).options(
            selectinload(Transaction.items).selectinload(TransactionItem.product)
        ).filter(
            Transaction.id == transaction_id,
            Transaction.business_id == business_id
        ).first()

    def get_or_404(self, transaction_id: int, business_id: int) -> Transaction:
        transaction = self.get_by_id(transaction_id, business_id)
        if not transaction:
            raise NotFoundException("Transaction not found")
        return transaction

    def list(self, business_id: int, page: int = 1, limit: int = 10,
             transaction_type: Optional[TransactionType] = None, category: str = None,
             payment_method: Optional[PaymentMethod] = None, start_date: datetime = None,
             end_date: datetime = None, sort_by: str = "date",
             sort_order: str = "desc") -> Tuple[List[Transaction], int]:
        query = self.db.query(Transaction).filter(Transaction.business_id == business_id)

        if transaction_type:
            query = query.filter(Transaction.type == transaction_type.value)
        if category:
            query = query.filter(Transaction.category == category)
        if payment_method:
            query = query.filter(Transaction.payment_method == payment_method.value)
        if start_date:
            query = query.filter(Transaction.date >= start_date)
        if end_date:
            query = query.filter(Transaction.date <= end_date)

        column = TRANSACTION_SORT_FIELDS.get(sort_by)
        if column is None:
            raise ValidationException(f"Cannot sort transactions by '{sort_by}'", field="sortBy", value=sort_by)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        transactions = query.options(
            selectinload(Transaction.items).selectinload(TransactionItem.product)
        ).order_by(order, Transaction.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return transactions, total

    def get_categories(self, business_id: int, transaction_type: Optional[TransactionType] = None) -> List[str]:
        query = self.db.query(Transaction.category).filter(Transaction.business_id == business_id)
        if transaction_type:
            query = query.filter(Transaction.type == transaction_type.value)
        return [row[0] for row in query.distinct().order_by(Transaction.category).all()]

    def create(self, transaction_data: TransactionCreate, business_id: int) -> Transaction:
        """
        Record a transaction. Income line items take stock first; the
        transaction row is inserted in the same database transaction, so a
        failure on any line leaves every product untouched once rolled back.
        """
        check_amount_matches_items(transaction_data.amount, transaction_data.products)

        products = self._apply_items(business_id, transaction_data.type, transaction_data.products)

        transaction = Transaction(
            business_id=business_id,
            type=transaction_data.type.value,
            category=transaction_data.category,
            amount=transaction_data.amount,
            description=transaction_data.description,
            date=to_naive_utc(transaction_data.date),
            payment_method=transaction_data.payment_method.value,
            reference=transaction_data.reference,
            tags=list(transaction_data.tags),
            items=self._build_items(transaction_data.products, products)
        )
        self.db.add(transaction)
        self.db.flush()
        logger.info(f"Created {transaction.type} transaction {transaction.id} for business {business_id}")
        return transaction

    def update(self, transaction_id: int, business_id: int, transaction_data: TransactionUpdate) -> Transaction:
        """
        Partial update. When the type or the line items change, the previous
        stock effect is reverted and the new one applied.
        """
        transaction = self.get_or_404(transaction_id, business_id)
        update_data = transaction_data.model_dump(exclude_unset=True, exclude={"products"})

        old_type = TransactionType(transaction.type)
        new_type = transaction_data.type or old_type
        items_changed = transaction_data.products is not None or new_type != old_type
        new_items = transaction_data.products if transaction_data.products is not None else transaction.items
        new_amount = transaction_data.amount if transaction_data.amount is not None else transaction.amount

        check_amount_matches_items(new_amount, new_items)

        if items_changed:
            self._revert_items(business_id, old_type, transaction.items)
            if transaction_data.products is not None:
                products = self._apply_items(business_id, new_type, transaction_data.products)
                transaction.items = self._build_items(transaction_data.products, products)
            else:
                self._reapply_items(business_id, new_type, transaction.items)

        for key, value in update_data.items():
            if value is None and key not in ("description", "reference"):
                continue
            if key == "date":
                value = to_naive_utc(value)
            elif key in ("type", "payment_method"):
                value = value.value
            elif key == "tags":
                value = list(value)
            setattr(transaction, key, value)

        self.db.flush()
        # Line items may point at rows whose stock just moved
        self.db.expire_all()
        return self.get_or_404(transaction_id, business_id)

    def delete(self, transaction_id: int, business_id: int):
        """Delete a transaction; income line items give their stock back"""
        transaction = self.get_or_404(transaction_id, business_id)
        self._revert_items(business_id, TransactionType(transaction.type), transaction.items)
        self.db.delete(transaction)
        self.db.flush()
        logger.info(f"Deleted transaction {transaction_id} for business {business_id}")
