"""
Value object carrying a vehicle's attributes between states.

The same snapshot is written to a stock row, an invoice item or a return
line, so restoring a sold unit puts back exactly what was sold.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from dealerdb.utils.identifiers import normalize_vehicle_number

SNAPSHOT_FIELDS = (
    "chassis_no",
    "engine_no",
    "model_name",
    "colour",
    "price",
    "hsn",
    "gst",
    "category",
    "purchase_date",
    "purchase_id",
)


@dataclass(frozen=True)
class UnitSnapshot:
    chassis_no: str
    engine_no: str
    model_name: str
    colour: str = "N/A"
    price: Decimal = Decimal("0")
    hsn: Optional[str] = None
    gst: Optional[Decimal] = None
    category: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_id: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "chassis_no", normalize_vehicle_number(self.chassis_no))
        object.__setattr__(self, "engine_no", normalize_vehicle_number(self.engine_no))
        object.__setattr__(self, "colour", (self.colour or "").strip() or "N/A")
        object.__setattr__(self, "price", Decimal(str(self.price if self.price is not None else 0)))
        if self.gst is not None:
            object.__setattr__(self, "gst", Decimal(str(self.gst)))

    @classmethod
    def from_row(cls, row: Any) -> "UnitSnapshot":
        return cls(**{name: getattr(row, name, None) for name in SNAPSHOT_FIELDS})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UnitSnapshot":
        return cls(**{name: data.get(name) for name in SNAPSHOT_FIELDS if name in data})

    def with_changes(self, **changes: Any) -> "UnitSnapshot":
        return replace(self, **changes)

    def column_values(self) -> dict:
        return asdict(self)

    def as_json(self) -> dict:
        data = asdict(self)
        data["price"] = str(self.price)
        data["gst"] = str(self.gst) if self.gst is not None else None
        data["purchase_date"] = self.purchase_date.isoformat() if self.purchase_date else None
        return data
