from app.schemas.quotes import MaterialLine
from app.services.line_items import build_line_items, materials_subtotal


def labels(items):
    return [(i.label, i.is_section) for i in items]


def test_sections_come_before_their_rows():
    items = build_line_items("Recherche de fuite", 120, 1.5, 65, materials_total=30)
    assert labels(items) == [
        ("Prestation", True),
        ("Recherche de fuite", False),
        ("Matériaux", True),
        ("Matériaux", False),
        ("Main-d'œuvre", True),
        ("Main-d'œuvre (1.5h)", False),
    ]
    labor = items[-1]
    assert labor.quantity == "1.50"
    assert labor.unit_price == 65
    assert labor.total == 97.5


def test_named_materials_are_listed_individually():
    materials = [MaterialLine(name="Pipe", price=30), MaterialLine(name="Valve", price=20)]
    items = build_line_items("Pose lavabo", 80, 1, 65, materials=materials, materials_total=50)
    assert [i.label for i in items if not i.is_section] == ["Pose lavabo", "Pipe", "Valve", "Main-d'œuvre (1h)"]
    assert materials_subtotal(items) == 50


def test_named_materials_summing_to_zero_omit_the_section():
    items = build_line_items("Pose lavabo", 80, 1, 65, materials=[MaterialLine(name="Offert", price=0)])
    assert "Matériaux" not in [i.label for i in items]


def test_no_materials_section_without_materials():
    items = build_line_items("Pose lavabo", 80, 2, 65)
    assert [i.label for i in items if i.is_section] == ["Prestation", "Main-d'œuvre"]
    assert materials_subtotal(items) == 0


def test_section_rows_carry_no_amount():
    items = build_line_items("Pose lavabo", 80, 2, 65, materials_total=12)
    assert all(i.total == 0 and i.quantity == "" for i in items if i.is_section)
