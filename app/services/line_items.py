"""
Invoice line items for the quote document.

The section order (Prestation, Matériaux, Main-d'œuvre) matches every
quote PDF issued so far and must not change.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..schemas.quotes import MaterialLine


SECTION_SERVICE = "Prestation"
SECTION_MATERIALS = "Matériaux"
SECTION_LABOR = "Main-d'œuvre"


@dataclass
class LineItem:
    label: str
    quantity: str = ""
    unit_price: float = 0.0
    total: float = 0.0
    is_section: bool = False


def section_line(label: str) -> LineItem:
    return LineItem(label=label, is_section=True)


def format_hours(hours: float) -> str:
    """Hours as typed back in labels: 1.5 -> "1.5", 2.0 -> "2"."""
    return f"{hours:g}"


def build_line_items(
    service_name: str,
    service_price: float,
    hours: float,
    labor_rate: float,
    materials: Optional[Sequence[MaterialLine]] = None,
    materials_total: float = 0.0,
) -> List[LineItem]:
    items: List[LineItem] = [
        section_line(SECTION_SERVICE),
        LineItem(label=service_name, quantity="1", unit_price=service_price, total=service_price),
    ]

    if materials:
        rows = [
            LineItem(label=m.name or "Matériau", quantity="1", unit_price=m.price, total=m.price)
            for m in materials
        ]
        if sum(row.total for row in rows) != 0:
            items.append(section_line(SECTION_MATERIALS))
            items.extend(rows)
    elif materials_total:
        items.append(section_line(SECTION_MATERIALS))
        items.append(LineItem(label="Matériaux", quantity="1", unit_price=materials_total, total=materials_total))

    hours = float(hours)
    items.append(section_line(SECTION_LABOR))
    items.append(
        LineItem(
            label=f"Main-d'œuvre ({format_hours(hours)}h)",
            quantity=f"{hours:.2f}",
            unit_price=labor_rate,
            total=labor_rate * hours,
        )
    )
    return items


def materials_subtotal(items: Sequence[LineItem]) -> float:
    """Sum of priced rows inside the Matériaux section."""
    total = 0.0
    current = None
    for item in items:
        if item.is_section:
            current = item.label
            continue
        if current == SECTION_MATERIALS:
            total += item.total
    return total
