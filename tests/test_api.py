"""Tests for the HTTP API."""

import pytest


SCENARIO = {
    "stock_length": 6000,
    "kerf": 3,
    "items": [{"length": 2000, "quantity": 3, "code": "A-1"}],
}


def _save_payload(**overrides):
    payload = dict(SCENARIO, order_id="o-1", order_number="1001", material_name="Steel 1020")
    payload.update(overrides)
    return payload


class TestCalculate:

    def test_plan(self, client) -> None:
        response = client.post("/cutting-plans/calculate", json=SCENARIO)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["summary"]["totalBars"] == 2
        assert data["patterns"][0]["patternString"] == "2 x 2000mm"
        assert data["patterns"][0]["leftover"] == 1997
        assert len(data["layout"]) == 2

    @pytest.mark.parametrize("stock_length", [0, -10, None])
    def test_invalid_stock_length(self, client, stock_length) -> None:
        response = client.post("/cutting-plans/calculate", json=dict(SCENARIO, stock_length=stock_length))

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "invalid_input"

    def test_empty_items(self, client) -> None:
        response = client.post("/cutting-plans/calculate", json=dict(SCENARIO, items=[]))

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "invalid input: missing stock length or items"

    def test_no_valid_items(self, client) -> None:
        payload = dict(SCENARIO, items=[{"length": 7000, "quantity": 1}])
        response = client.post("/cutting-plans/calculate", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["reason"] == "no_valid_items"
        assert detail["skipped"][0]["reason"] == "exceeds_stock"

    def test_bar_cap(self, client) -> None:
        response = client.post("/cutting-plans/calculate", json=dict(SCENARIO, max_bars=1))

        assert response.status_code == 422
        assert "more than 1 bars" in response.json()["detail"]["message"]

    def test_huge_quantity_rejected_before_planning(self, client) -> None:
        payload = dict(SCENARIO, items=[{"length": 1, "quantity": 3e6}])
        response = client.post("/cutting-plans/calculate", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["reason"] == "invalid_input"
        assert detail["message"] == "invalid input: more than 1000000 pieces"

    def test_bar_lower_bound(self, client) -> None:
        payload = dict(SCENARIO, items=[{"length": 1, "quantity": 900000}])
        response = client.post("/cutting-plans/calculate", json=payload)

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "invalid input: plan needs more than 100 bars"

    def test_skipped_items_reported(self, client) -> None:
        payload = dict(SCENARIO, items=[{"length": 2000, "quantity": 1}, {"length": 100, "quantity": 0}])
        data = client.post("/cutting-plans/calculate", json=payload).json()

        assert data["summary"]["totalBars"] == 1
        assert data["skipped"][0]["reason"] == "invalid_quantity"


class TestSavedPlans:

    def test_save_assigns_code(self, client) -> None:
        response = client.post("/cutting-plans", json=_save_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["traceability_code"] == "PC-001"
        assert data["summary"]["totalBars"] == 2
        assert data["order_number"] == "1001"

    def test_duplicate_rejected_unless_allowed(self, client) -> None:
        client.post("/cutting-plans", json=_save_payload())

        assert client.post("/cutting-plans", json=_save_payload()).status_code == 409
        response = client.post("/cutting-plans", json=_save_payload(allow_duplicate=True))
        assert response.status_code == 201
        assert response.json()["traceability_code"] == "PC-002"

    def test_plans_without_order_are_not_duplicates(self, client) -> None:
        payload = dict(SCENARIO, material_name="Steel 1020")

        first = client.post("/cutting-plans", json=payload)
        second = client.post("/cutting-plans", json=payload)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["traceability_code"] == "PC-002"

    def test_rejected_plan_not_saved(self, client) -> None:
        response = client.post("/cutting-plans", json=_save_payload(stock_length=0))

        assert response.status_code == 422
        assert client.get("/cutting-plans").json()["plans"] == []

    def test_save_from_stock_bar(self, client) -> None:
        bar = client.post("/stock-bars", json={
            "material": "Steel 1020", "length": 6000, "quantity": 5, "weight_per_meter": 2.0,
        }).json()

        payload = _save_payload(stock_length=None, material_name=None,
                                stock_bar_id=bar["id"], consume_stock=True)
        data = client.post("/cutting-plans", json=payload).json()

        assert data["bar_length"] == 6000
        assert data["material_name"] == "Steel 1020"
        assert data["total_material_weight"] == pytest.approx(24.0)
        assert client.get(f"/stock-bars/{bar['id']}").json()["quantity"] == 3

    def test_unknown_stock_bar(self, client) -> None:
        response = client.post("/cutting-plans", json=_save_payload(stock_bar_id=999))

        assert response.status_code == 404

    def test_list_get_search(self, client) -> None:
        saved = client.post("/cutting-plans", json=_save_payload()).json()
        client.post("/cutting-plans", json=_save_payload(order_id="o-2", material_name="Aluminium 6063"))

        assert len(client.get("/cutting-plans").json()["plans"]) == 2
        found = client.get("/cutting-plans", params={"search": "alumin"}).json()["plans"]
        assert [p["material_name"] for p in found] == ["Aluminium 6063"]
        assert client.get(f"/cutting-plans/{saved['id']}").json()["traceability_code"] == "PC-001"

    def test_delete(self, client) -> None:
        saved = client.post("/cutting-plans", json=_save_payload()).json()

        assert client.delete(f"/cutting-plans/{saved['id']}").json() == {"success": True}
        assert client.get(f"/cutting-plans/{saved['id']}").status_code == 404
        assert client.delete(f"/cutting-plans/{saved['id']}").status_code == 404

    def test_delete_all(self, client) -> None:
        client.post("/cutting-plans", json=_save_payload())
        client.post("/cutting-plans", json=_save_payload(order_id="o-2"))

        assert client.delete("/cutting-plans").json() == {"success": True, "deleted": 2}
        assert client.get("/cutting-plans").json()["plans"] == []


class TestStockBars:

    def test_crud(self, client) -> None:
        created = client.post("/stock-bars", json={"material": "Steel 1020", "length": 6000})
        assert created.status_code == 201
        bar_id = created.json()["id"]

        assert client.get(f"/stock-bars/{bar_id}").json()["length"] == 6000
        assert len(client.get("/stock-bars").json()["stock_bars"]) == 1

        assert client.delete(f"/stock-bars/{bar_id}").json() == {"success": True}
        assert client.get("/stock-bars").json()["stock_bars"] == []
        listed = client.get("/stock-bars", params={"active_only": False}).json()["stock_bars"]
        assert listed[0]["is_active"] is False

    def test_missing(self, client) -> None:
        assert client.get("/stock-bars/42").status_code == 404
        assert client.delete("/stock-bars/42").status_code == 404

    def test_non_positive_length(self, client) -> None:
        assert client.post("/stock-bars", json={"material": "Steel", "length": 0}).status_code == 422


class TestFindBestBar:

    def test_highest_yield_wins(self, client) -> None:
        client.post("/stock-bars", json={"material": "Steel 1020", "length": 6000, "quantity": 10})
        exact = client.post("/stock-bars", json={"material": "Steel 1020", "length": 4003, "quantity": 10}).json()

        payload = {"items": [{"length": 2000, "quantity": 2}], "kerf": 3}
        data = client.post("/find-best-bar", json=payload).json()

        assert data["stock_bar"]["id"] == exact["id"]
        assert data["summary"]["totalYieldPercentage"] == pytest.approx(100.0)
        assert data["in_stock"] is True

    def test_material_filter(self, client) -> None:
        client.post("/stock-bars", json={"material": "Steel 1020", "length": 4003, "quantity": 10})
        alu = client.post("/stock-bars", json={"material": "Aluminium 6063", "length": 6000, "quantity": 10}).json()

        payload = {"items": [{"length": 2000, "quantity": 2}], "kerf": 3, "material": "Aluminium 6063"}
        data = client.post("/find-best-bar", json=payload).json()

        assert data["stock_bar"]["id"] == alu["id"]

    def test_empty_stock(self, client) -> None:
        payload = {"items": [{"length": 2000, "quantity": 2}], "kerf": 3}

        assert client.post("/find-best-bar", json=payload).status_code == 404

    def test_no_bar_fits(self, client) -> None:
        client.post("/stock-bars", json={"material": "Steel 1020", "length": 1000, "quantity": 10})

        payload = {"items": [{"length": 2000, "quantity": 2}], "kerf": 3}
        response = client.post("/find-best-bar", json=payload)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "no_valid_items"
