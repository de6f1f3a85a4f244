from typing import Literal, Optional

from sqlalchemy.orm import Session

from freshstock.models.product import Product

StockStatus = Literal["out_of_stock", "low_stock", "overstock", "in_stock"]


def compute_stock_status(current_stock: int, min_stock_level: int, max_stock_level: int) -> StockStatus:
    # order matters: low_stock wins over overstock when min >= max
    if current_stock <= 0:
        return "out_of_stock"
    if current_stock <= min_stock_level:
        return "low_stock"
    if current_stock >= max_stock_level:
        return "overstock"
    return "in_stock"


def compute_profit_margin(selling_price: float, cost_price: float) -> Optional[float]:
    if not cost_price:
        return None
    return round((selling_price - cost_price) / cost_price * 100, 2)


def needs_reorder(p: Product) -> bool:
    return (p.current_stock or 0) <= (p.min_stock_level or 0)


def compute_stock_fields(p: Product) -> dict:
    return {
        "stock_status": compute_stock_status(
            p.current_stock or 0, p.min_stock_level or 0, p.max_stock_level or 0
        ),
        "profit_margin": compute_profit_margin(p.selling_price or 0.0, p.cost_price or 0.0),
    }


def low_stock_query(db: Session, business_id: Optional[int] = None):
    q = db.query(Product).filter(
        Product.is_active == True,  # noqa: E712
        Product.current_stock <= Product.min_stock_level,
    )
    if business_id is not None:
        q = q.filter(Product.business_id == business_id)
    return q


def products_needing_reorder(db: Session, business_id: Optional[int] = None) -> list[dict]:
    products = low_stock_query(db, business_id).order_by(Product.current_stock.asc(), Product.id).all()

    return [
        {
            "product": p,
            "stock_status": "out_of_stock" if p.current_stock <= 0 else "low_stock",
            "suggested_reorder_quantity": p.reorder_quantity,
            "estimated_cost": round(p.cost_price * p.reorder_quantity, 2),
        }
        for p in products
    ]


def stock_analytics(db: Session, business_id: Optional[int] = None) -> dict:
    q = db.query(Product).filter(Product.is_active == True)  # noqa: E712
    if business_id is not None:
        q = q.filter(Product.business_id == business_id)

    overview = {
        "total_products": 0,
        "low_stock_products": 0,
        "out_of_stock_products": 0,
        "overstock_products": 0,
        "total_inventory_value": 0.0,
        "total_items": 0,
    }
    categories: dict[str, dict] = {}

    for p in q.all():
        current = p.current_stock or 0
        value = current * (p.cost_price or 0.0)

        overview["total_products"] += 1
        overview["total_items"] += current
        overview["total_inventory_value"] += value
        # counted independently, a product can be both low and overstocked
        if current <= 0:
            overview["out_of_stock_products"] += 1
        if current <= (p.min_stock_level or 0):
            overview["low_stock_products"] += 1
        if current >= (p.max_stock_level or 0):
            overview["overstock_products"] += 1

        agg = categories.setdefault(
            p.category or "other",
            {"count": 0, "total_stock": 0, "total_value": 0.0, "low_stock_count": 0},
        )
        agg["count"] += 1
        agg["total_stock"] += current
        agg["total_value"] += value
        if current <= (p.min_stock_level or 0):
            agg["low_stock_count"] += 1

    overview["total_inventory_value"] = round(overview["total_inventory_value"], 2)
    category_stats = sorted(
        ({"category": name, **stats} for name, stats in categories.items()),
        key=lambda c: c["count"],
        reverse=True,
    )

    return {"overview": overview, "category_stats": category_stats}
