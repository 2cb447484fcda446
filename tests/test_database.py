"""Tests for stock bar and cutting plan persistence."""

import pytest
from sqlalchemy.exc import IntegrityError

from cutting_plan import build_plan_document
from cutting_stock import generate_cutting_plan


def _document(order_id="o-1", material_name="Steel 1020", description=None):
    items = [{"length": 2000, "quantity": 3, "code": "A-1"}]
    plan = generate_cutting_plan(6000, 3, items)
    return build_plan_document(
        plan, stock_length=6000, kerf=3, items=items, weight_per_meter=2.0,
        metadata={
            "order_id": order_id,
            "material_name": material_name,
            "material_description": description,
        },
    )


class TestStockBars:

    def test_create_and_get(self, db) -> None:
        bar = db.create_stock_bar(material="Steel 1020", length=6000, quantity=4, weight_per_meter=2.5)

        loaded = db.get_stock_bar_by_id(bar.id)
        assert loaded.material == "Steel 1020"
        assert loaded.length == 6000
        assert loaded.is_active is True
        assert loaded.bar_weight() == pytest.approx(15.0)

    def test_soft_delete_hides_from_active(self, db) -> None:
        bar = db.create_stock_bar(material="Steel 1020", length=6000)

        assert db.delete_stock_bar(bar.id) is True
        assert db.get_all_stock_bars() == []
        assert len(db.get_all_stock_bars(active_only=False)) == 1

    def test_hard_delete(self, db) -> None:
        bar = db.create_stock_bar(material="Steel 1020", length=6000)

        assert db.delete_stock_bar(bar.id, soft_delete=False) is True
        assert db.get_stock_bar_by_id(bar.id) is None
        assert db.delete_stock_bar(bar.id) is False

    def test_filter_by_material(self, db) -> None:
        db.create_stock_bar(material="Steel 1020", length=6000)
        db.create_stock_bar(material="Aluminium 6063", length=6000)

        bars = db.get_stock_bars_by_material("Aluminium 6063")
        assert [b.material for b in bars] == ["Aluminium 6063"]

    def test_update(self, db) -> None:
        bar = db.create_stock_bar(material="Steel 1020", length=6000)

        updated = db.update_stock_bar(bar.id, location="Rack C-2", unknown_field="x")
        assert updated.location == "Rack C-2"
        assert db.update_stock_bar(9999, location="x") is None

    def test_decrease_quantity_deactivates_at_zero(self, db) -> None:
        bar = db.create_stock_bar(material="Steel 1020", length=6000, quantity=3)

        assert db.decrease_stock_quantity(bar.id, 2).quantity == 1
        emptied = db.decrease_stock_quantity(bar.id, 5)
        assert emptied.quantity == 0
        assert emptied.is_active is False

    def test_sample_data(self, db) -> None:
        db.populate_sample_data()

        assert len(db.get_all_stock_bars()) == 4


class TestCuttingPlans:

    def test_codes_are_sequential(self, db) -> None:
        first = db.save_cutting_plan(_document())
        second = db.save_cutting_plan(_document(order_id="o-2"))

        assert first.traceability_code == "PC-001"
        assert second.traceability_code == "PC-002"
        assert db.get_next_traceability_code() == "PC-003"

    def test_deleted_plans_keep_their_numbers(self, db) -> None:
        first = db.save_cutting_plan(_document())
        db.delete_cutting_plan(first.id)

        assert db.save_cutting_plan(_document()).traceability_code == "PC-002"

    def test_taken_code_is_recomputed(self, db, monkeypatch) -> None:
        db.save_cutting_plan(_document())
        real_next = db.next_traceability_code
        calls = []

        def stale_first(codes):
            calls.append(codes)
            return "PC-001" if len(calls) == 1 else real_next(codes)

        monkeypatch.setattr(db, "next_traceability_code", stale_first)

        assert db.save_cutting_plan(_document(order_id="o-2")).traceability_code == "PC-002"
        assert len(calls) == 2

    def test_gives_up_after_repeated_conflicts(self, db, monkeypatch) -> None:
        db.save_cutting_plan(_document())
        monkeypatch.setattr(db, "next_traceability_code", lambda codes: "PC-001")

        with pytest.raises(IntegrityError):
            db.save_cutting_plan(_document(order_id="o-2"))
        assert len(db.get_cutting_plans()) == 1

    def test_summary_columns(self, db) -> None:
        record = db.save_cutting_plan(_document())

        assert record.total_bars == 2
        assert record.total_scrap_length == 5997
        assert record.total_material_weight == pytest.approx(24.0)

    def test_plan_to_dict_round_trip(self, db) -> None:
        document = _document()
        record = db.save_cutting_plan(document)

        data = db.plan_to_dict(db.get_cutting_plan_by_id(record.id))
        assert data["patterns"] == document["patterns"]
        assert data["summary"] == document["summary"]
        assert data["items"] == document["items"]
        assert len(data["layout"]) == 2

    def test_list_newest_first_without_deleted(self, db) -> None:
        first = db.save_cutting_plan(_document(order_id="o-1"))
        second = db.save_cutting_plan(_document(order_id="o-2"))
        third = db.save_cutting_plan(_document(order_id="o-3"))
        db.delete_cutting_plan(second.id)

        assert [p.id for p in db.get_cutting_plans()] == [third.id, first.id]

    def test_search(self, db) -> None:
        db.save_cutting_plan(_document(material_name="Steel 1020", description="Flat bar 50x6"))
        db.save_cutting_plan(_document(material_name="Aluminium 6063", description="Angle 30x30"))

        assert [p.material_name for p in db.get_cutting_plans(search="steel")] == ["Steel 1020"]
        assert [p.material_name for p in db.get_cutting_plans(search="angle")] == ["Aluminium 6063"]
        assert len(db.get_cutting_plans(search="PC-00")) == 2

    def test_find_active_plans(self, db) -> None:
        record = db.save_cutting_plan(_document(order_id="o-1", material_name="Steel 1020"))

        assert len(db.find_active_plans("o-1", "Steel 1020")) == 1
        assert db.find_active_plans("o-1", "Aluminium 6063") == []
        db.delete_cutting_plan(record.id)
        assert db.find_active_plans("o-1", "Steel 1020") == []

    def test_delete_plan(self, db) -> None:
        record = db.save_cutting_plan(_document())

        assert db.delete_cutting_plan(record.id) is True
        assert db.delete_cutting_plan(record.id) is False
        assert db.get_cutting_plan_by_id(record.id) is None
        assert db.get_cutting_plan_by_id(record.id, include_deleted=True).deleted is True

    def test_delete_all(self, db) -> None:
        db.save_cutting_plan(_document(order_id="o-1"))
        db.save_cutting_plan(_document(order_id="o-2"))

        assert db.delete_all_cutting_plans() == 2
        assert db.get_cutting_plans() == []
        assert db.delete_all_cutting_plans() == 0
