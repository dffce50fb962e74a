# medalarm/engine/inventory.py

from dataclasses import dataclass
from typing import Optional

from .dose import Medicine

LOW_STOCK_DAYS = 2
LOW_STOCK_QUANTITY = 5


@dataclass(frozen=True)
class InventoryProjection:
    doses_per_day: int
    total_quantity: Optional[int]
    days_remaining: Optional[int]
    low_stock: bool
    out_of_stock: bool

    @property
    def tracking(self):
        return self.total_quantity is not None

    def describe(self):
        if not self.tracking:
            return "tracking inactive"
        if self.out_of_stock:
            return "out of stock"
        if self.low_stock:
            return f"low stock: {self.days_remaining} day(s) left"
        return f"{self.days_remaining} day(s) left"


def project(medicine: Medicine) -> InventoryProjection:
    """Supply projection for one medicine; derived on demand, never stored."""
    doses_per_day = max(len(medicine.times), 1)
    qty = medicine.total_quantity

    if qty is None:
        return InventoryProjection(doses_per_day, None, None, False, False)

    days = qty // doses_per_day
    return InventoryProjection(
        doses_per_day=doses_per_day,
        total_quantity=qty,
        days_remaining=days,
        low_stock=days < LOW_STOCK_DAYS or qty < LOW_STOCK_QUANTITY,
        out_of_stock=qty == 0,
    )
