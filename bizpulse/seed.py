"""
Demo Data Seeding Script
Replaces the demo account with a restaurant, its menu and ninety days of activity
"""
import random
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from bizpulse.core.config import settings
from bizpulse.core.database import Database
from bizpulse.models import (
    User, Business, Product, Transaction, TransactionItem,
    TransactionType, PaymentMethod, BusinessCategory
)
from bizpulse.schemas import BusinessSettings
from bizpulse.services.user_service import UserService

DEMO_EMAIL = "demo@bizpulse.app"
DEMO_PASSWORD = "demo1234"

DEMO_PRODUCTS = [
    ("Margherita Pizza", "Pizzas", "4.50", "10.00", 100),
    ("Pepperoni Pizza", "Pizzas", "5.50", "12.00", 100),
    ("Classic Burger", "Burgers", "3.00", "8.00", 80),
    ("French Fries", "Sides", "1.00", "3.50", 200),
    ("Onion Rings", "Sides", "1.20", "4.00", 150),
    ("Caesar Salad", "Salads", "3.50", "7.50", 50),
    ("Cola", "Drinks", "0.80", "2.50", 300),
    ("Mineral Water", "Drinks", "0.50", "2.00", 300),
    ("Draft Beer", "Drinks", "1.20", "3.00", 150),
    ("Orange Juice", "Drinks", "1.00", "3.00", 100),
    ("Tiramisu", "Desserts", "2.50", "6.00", 40),
    ("Cheesecake", "Desserts", "2.80", "6.50", 40),
    ("Espresso", "Coffee", "0.70", "2.00", 200),
    ("BBQ Wings (6)", "Starters", "3.00", "7.00", 100),
    ("Cheese Nachos", "Starters", "2.50", "6.00", 90),
]

MONTHLY_EXPENSES = [
    ("Utilities", 350),
    ("Rent", 1200),
    ("Salaries", 2500),
    ("Marketing", 200),
]


def _clear_demo_account(db: Session):
    user = db.query(User).filter(User.email == DEMO_EMAIL).first()
    if not user:
        return
    if user.business:
        db.delete(user.business)
    db.delete(user)
    db.flush()
    print("  Removed previous demo account and its data")


def seed_database(db: Session, days: int = 90, rng: random.Random = None) -> Business:
    """
    Create the demo user, business, products and transactions.

    Historical sales are written directly, without moving stock, so the
    catalog keeps its starting quantities.
    """
    rng = rng or random.Random()
    _clear_demo_account(db)

    user = UserService(db).create(DEMO_EMAIL, DEMO_PASSWORD)
    business = Business(
        user_id=user.id,
        name="Demo Restaurant",
        category=BusinessCategory.RESTAURANT.value,
        currency="USD",
        timezone="America/New_York",
        settings=BusinessSettings().model_dump(by_alias=True)
    )
    db.add(business)
    db.flush()
    print(f"✓ Created demo user {DEMO_EMAIL} and business '{business.name}'")

    products = []
    for name, category, cost, sale, stock in DEMO_PRODUCTS:
        products.append(Product(
            business_id=business.id,
            name=name,
            category=category,
            cost_price=Decimal(cost),
            sale_price=Decimal(sale),
            stock_quantity=stock
        ))
    db.add_all(products)
    db.flush()
    print(f"✓ Created {len(products)} products")

    today = datetime.utcnow().replace(microsecond=0)
    transactions = []

    # Two to five sales a day, one to three lines each
    for day in range(days):
        date = today - timedelta(days=day)
        for _ in range(rng.randint(2, 5)):
            items = []
            for _ in range(rng.randint(1, 3)):
                product = rng.choice(products)
                quantity = rng.randint(1, 3)
                items.append(TransactionItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.sale_price,
                    total_price=product.sale_price * quantity,
                    cost_price=product.cost_price
                ))
            transactions.append(Transaction(
                business_id=business.id,
                type=TransactionType.INCOME.value,
                category="Product Sales",
                amount=sum(item.total_price for item in items),
                date=date,
                payment_method=PaymentMethod.CASH.value,
                tags=[],
                items=items
            ))

    # Fixed expenses paid on the 5th of each of the last three months
    for months_back in range(3):
        year, month = today.year, today.month - months_back
        while month < 1:
            month += 12
            year -= 1
        for category, base_amount in MONTHLY_EXPENSES:
            variation = Decimal(str(round(rng.uniform(-25, 25), 2)))
            transactions.append(Transaction(
                business_id=business.id,
                type=TransactionType.EXPENSE.value,
                category=category,
                amount=Decimal(base_amount) + variation,
                date=datetime(year, month, 5, 12, 0),
                payment_method=PaymentMethod.BANK_TRANSFER.value,
                tags=[]
            ))

    db.add_all(transactions)
    db.flush()
    print(f"✓ Created {len(transactions)} transactions")
    return business


def main():
    database = Database(settings.database_url, pool_size=settings.DB_POOL_SIZE,
                        connect_timeout=settings.DB_CONNECT_TIMEOUT)
    database.connect()
    db = database.session()
    try:
        seed_database(db)
        db.commit()
        print(f"Demo data ready. Log in as {DEMO_EMAIL} / {DEMO_PASSWORD}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        database.disconnect()


if __name__ == "__main__":
    main()
