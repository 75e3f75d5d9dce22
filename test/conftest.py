import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_product(pid: int = 1, price: str = "10.00", stock: int = 5, name: str | None = None):
    from retailpos.domain.models import Product

    return Product(
        id=pid,
        sku=f"SKU-{pid}",
        name=name or f"Product {pid}",
        unit_price=Decimal(price),
        current_stock=stock,
    )


def make_promotion(pid: int = 1, type: str = "percentage", value: str = "20", **kwargs):
    from retailpos.domain.models import Promotion

    return Promotion(id=pid, name=f"Promo {pid}", type=type, value=Decimal(value), **kwargs)
