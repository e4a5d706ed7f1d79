"""
SQLAlchemy Models for BizPulse
"""
from datetime import datetime
from decimal import Decimal
import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric, JSON,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from bizpulse.core.database import Base


# ==================== ENUMS ====================

class BusinessCategory(str, enum.Enum):
    RESTAURANT = "restaurant"
    RETAIL = "retail"
    SERVICE = "service"
    MANUFACTURING = "manufacturing"
    OTHER = "other"


class TransactionType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"
    WITHDRAWAL = "withdrawal"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    OTHER = "other"


def calculate_margin(sale_price, cost_price) -> float:
    """Gross margin as a percentage of the sale price"""
    sale = float(sale_price or 0)
    cost = float(cost_price or 0)
    if sale == 0:
        return 0.0
    return (sale - cost) / sale * 100


# ==================== CORE MODELS ====================

class User(Base):
    """User account"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    hashed_password = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business", back_populates="user", uselist=False)


class Business(Base):
    """Business owned by exactly one user"""
    __tablename__ = 'businesses'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(20), nullable=False)
    address = Column(String(200), nullable=True)
    phone = Column(String(20), nullable=True)
    tax_id = Column(String(50), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    timezone = Column(String(64), nullable=False, default="America/New_York")
    logo_url = Column(String(500), nullable=True)
    settings = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="business")
    products = relationship("Product", back_populates="business", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="business", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_businesses_category', 'category'),
    )


# ==================== INVENTORY ====================

class Product(Base):
    """Catalog product"""
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=False)
    cost_price = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    sale_price = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    sku = Column(String(50), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business", back_populates="products")
    variants = relationship(
        "ProductVariant", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductVariant.id"
    )

    __table_args__ = (
        # NULL skus never collide, so the constraint only binds products that have one
        UniqueConstraint('business_id', 'sku', name='uq_product_business_sku'),
        Index('ix_products_business_id', 'business_id'),
        Index('ix_products_category', 'category'),
        Index('ix_products_stock_quantity', 'stock_quantity'),
    )

    @property
    def margin(self) -> float:
        return calculate_margin(self.sale_price, self.cost_price)

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)


class ProductVariant(Base):
    """Size/flavour variant of a product"""
    __tablename__ = 'product_variants'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(50), nullable=False)
    cost_price = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    sale_price = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    sku = Column(String(50), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="variants")


# ==================== TRANSACTIONS ====================

class Transaction(Base):
    """Income, expense or withdrawal record"""
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    category = Column(String(50), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    description = Column(String(200), nullable=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow)
    payment_method = Column(String(20), nullable=False)
    reference = Column(String(100), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business", back_populates="transactions")
    items = relationship(
        "TransactionItem", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionItem.id"
    )

    __table_args__ = (
        Index('ix_transactions_business_date', 'business_id', 'date'),
        Index('ix_transactions_business_type_date', 'business_id', 'type', 'date'),
        Index('ix_transactions_category', 'category'),
        Index('ix_transactions_payment_method', 'payment_method'),
    )


class TransactionItem(Base):
    """Product line item sold or bought in a transaction"""
    __tablename__ = 'transaction_items'

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False)
    # Weak reference: deleting a product keeps the historical line item
    product_id = Column(Integer, nullable=False, index=True)
    variant_name = Column(String(50), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    total_price = Column(Numeric(15, 2), nullable=False)
    # Product cost when the line was recorded
    cost_price = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))

    transaction = relationship("Transaction", back_populates="items")
    product = relationship(
        "Product",
        primaryjoin="TransactionItem.product_id == Product.id",
        foreign_keys="TransactionItem.product_id",
        viewonly=True,
    )
