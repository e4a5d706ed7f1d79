"""
Pydantic Schemas for API Validation

Clients speak camelCase; every schema also accepts the snake_case field names.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from bizpulse.models import BusinessCategory, TransactionType, PaymentMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ==================== ENUMS ====================

class CurrencyEnum(str, Enum):
    USD = "USD"
    EUR = "EUR"
    MXN = "MXN"
    COP = "COP"
    PEN = "PEN"
    CLP = "CLP"
    ARG = "ARG"


class StockOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class TrendPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


# ==================== AUTH SCHEMAS ====================

class TokenPayload(CamelModel):
    """Claims carried by the bearer token"""
    user_id: int
    business_id: int
    email: str
    is_admin: bool = False


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# ==================== BUSINESS SCHEMAS ====================

class BusinessSettings(CamelModel):
    low_stock_alert: bool = True
    low_stock_threshold: int = Field(default=10, ge=0)
    default_tax_rate: float = Field(default=0, ge=0, le=100)
    fiscal_year_start: int = Field(default=1, ge=1, le=12)
    language: Literal["es", "en"] = "es"
    theme: Literal["light", "dark"] = "light"


class BusinessSettingsUpdate(CamelModel):
    low_stock_alert: Optional[bool] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    default_tax_rate: Optional[float] = Field(None, ge=0, le=100)
    fiscal_year_start: Optional[int] = Field(None, ge=1, le=12)
    language: Optional[Literal["es", "en"]] = None
    theme: Optional[Literal["light", "dark"]] = None


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{value}'")
    return value


class BusinessCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: BusinessCategory
    address: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    tax_id: Optional[str] = Field(None, max_length=50)
    currency: CurrencyEnum = CurrencyEnum.USD
    timezone: str = Field(default="America/New_York", min_length=1)
    settings: BusinessSettings = Field(default_factory=BusinessSettings)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value):
        return _check_timezone(value)


class BusinessUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[BusinessCategory] = None
    address: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    tax_id: Optional[str] = Field(None, max_length=50)
    currency: Optional[CurrencyEnum] = None
    timezone: Optional[str] = None
    settings: Optional[BusinessSettingsUpdate] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value):
        return _check_timezone(value)


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    business: BusinessCreate


class ProfileUpdateRequest(CamelModel):
    business: BusinessUpdate = Field(default_factory=BusinessUpdate)


# ==================== PRODUCT SCHEMAS ====================

class ProductVariantSchema(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    cost_price: Decimal = Field(..., ge=0)
    sale_price: Decimal = Field(..., ge=0)
    sku: Optional[str] = Field(None, max_length=50)
    stock_quantity: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_prices(self):
        if self.sale_price < self.cost_price:
            raise ValueError("Sale price must be greater than or equal to cost price")
        return self


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field(..., min_length=1, max_length=50)
    cost_price: Decimal = Field(..., ge=0)
    sale_price: Decimal = Field(..., ge=0)
    sku: Optional[str] = Field(None, max_length=50)
    variants: List[ProductVariantSchema] = Field(default_factory=list)
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def check_prices(self):
        if self.sale_price < self.cost_price:
            raise ValueError("Sale price must be greater than or equal to cost price")
        return self


class ProductUpdate(CamelModel):
    """Stock is not updatable here; see StockUpdateRequest"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=50)
    variants: Optional[List[ProductVariantSchema]] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class StockUpdateRequest(CamelModel):
    quantity: int = Field(..., ge=0)
    operation: StockOperation = StockOperation.SET


# ==================== TRANSACTION SCHEMAS ====================

class TransactionItemCreate(CamelModel):
    product_id: int
    variant_name: Optional[str] = Field(None, max_length=50)
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)

    @property
    def line_total(self) -> Decimal:
        if self.total_price is not None:
            return self.total_price
        return self.unit_price * self.quantity


class TransactionCreate(CamelModel):
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=200)
    date: datetime
    payment_method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    products: List[TransactionItemCreate] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list, max_length=10)


class TransactionUpdate(CamelModel):
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=200)
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    reference: Optional[str] = Field(None, max_length=100)
    products: Optional[List[TransactionItemCreate]] = None
    tags: Optional[List[str]] = Field(None, max_length=10)
