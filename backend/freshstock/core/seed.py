import logging

from sqlalchemy.orm import Session

from freshstock.core.database import SessionLocal, init_db
from freshstock.core.security import hash_password
from freshstock.models.business import Business, BusinessMember
from freshstock.models.product import Product
from freshstock.models.user import User

logger = logging.getLogger(__name__)

# Change these creds anytime (dev defaults)
DEMO_USERS = [
    {"username": "owner", "name": "Owner", "role": "owner", "password": "owner123"},
    {"username": "viewer", "name": "Viewer", "role": "viewer", "password": "viewer123"},
]

FARM_FRESH = {"supplier_name": "Farm Fresh Co", "supplier_email": "orders@farmfresh.example"}
DAIRY_BEST = {"supplier_name": "Dairy Best", "supplier_email": "sales@dairybest.example"}

DEMO_PRODUCTS = [
    dict(sku="FRU-APL", name="Apples", category="fruits", unit="kg", current_stock=4,
         min_stock_level=10, max_stock_level=80, cost_price=1.2, selling_price=2.0,
         reorder_quantity=40, **FARM_FRESH),
    dict(sku="VEG-CAR", name="Carrots", category="vegetables", unit="kg", current_stock=0,
         min_stock_level=8, max_stock_level=60, cost_price=0.6, selling_price=1.1,
         reorder_quantity=30, **FARM_FRESH),
    dict(sku="DAI-MLK", name="Whole Milk", category="dairy", unit="liter", current_stock=25,
         min_stock_level=12, max_stock_level=100, cost_price=0.9, selling_price=1.5,
         reorder_quantity=48, **DAIRY_BEST),
    dict(sku="DAI-YOG", name="Greek Yogurt", category="dairy", unit="piece", current_stock=6,
         min_stock_level=10, max_stock_level=50, cost_price=1.4, selling_price=2.6,
         reorder_quantity=24, **DAIRY_BEST),
]


def seed_demo_data(db: Session) -> bool:
    """Create one demo business with users and products. Returns False if data already exists."""
    if db.query(Business).count() > 0:
        return False

    business = Business(name="Corner Grocery")
    db.add(business)
    db.flush()

    for u in DEMO_USERS:
        user = User(
            username=u["username"],
            name=u["name"],
            role=u["role"],
            email=f"{u['username']}@corner-grocery.example",
            password_hash=hash_password(u["password"]),
            business_id=business.id,
        )
        db.add(user)
        db.flush()
        db.add(BusinessMember(business_id=business.id, user_id=user.id, role=u["role"]))

    for p in DEMO_PRODUCTS:
        db.add(Product(business_id=business.id, **p))

    db.commit()
    logger.info(f"Seeded business {business.name} with {len(DEMO_USERS)} users and {len(DEMO_PRODUCTS)} products")
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()

    db = SessionLocal()
    try:
        if seed_demo_data(db):
            print("✅ Database seeded")
            print(" - owner  / owner123")
            print(" - viewer / viewer123")
        else:
            print("Database already has data, nothing to do")
    finally:
        db.close()
