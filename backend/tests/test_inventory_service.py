"""
Inventory ledger tests.

Verifies:
- apply_delta moves counters and appends exactly one movement
- stock may go negative
- opening stock is booked as a movement
- counters can be rebuilt from the movement log
"""

import pytest

from backoffice.extensions import db
from backoffice.models import Product, StockMovement, OrderLine
from backoffice.models.inventory import MOVEMENT_IMPORT, MOVEMENT_EXPORT
from backoffice.services import inventory_service
from backoffice.services.concurrency import unit_of_work
from backoffice.validation import ValidationError, NotFoundError, ConflictError


def _movements(code):
    return (
        db.session.query(StockMovement)
        .filter_by(product_code=code)
        .order_by(StockMovement.id.asc())
        .all()
    )


# =============================================================================
# APPLY DELTA
# =============================================================================


class TestApplyDelta:

    def test_export_moves_counters_and_logs(self, db_session, product):
        with unit_of_work():
            inventory_service.apply_delta("P1", MOVEMENT_EXPORT, 5, "Export for order O1")

        p = inventory_service.get_product_by_code("P1")
        assert p.old_stock == 50
        assert p.new_stock == 45
        assert p.exported == 5
        assert p.imported == 50

        last = _movements("P1")[-1]
        assert (last.type, last.quantity, last.note) == ("export", 5, "Export for order O1")

    def test_import_moves_counters(self, db_session, product):
        with unit_of_work():
            inventory_service.apply_delta("P1", MOVEMENT_IMPORT, 7, "Goods received")

        p = inventory_service.get_product_by_code("P1")
        assert p.old_stock == 50
        assert p.new_stock == 57
        assert p.imported == 57

    def test_stock_may_go_negative(self, db_session, product):
        with unit_of_work():
            inventory_service.apply_delta("P1", MOVEMENT_EXPORT, 80, "Oversold")

        assert inventory_service.get_product_by_code("P1").new_stock == -30

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            with unit_of_work():
                inventory_service.apply_delta("NOPE", MOVEMENT_EXPORT, 1)

    @pytest.mark.parametrize("direction,quantity", [
        ("sideways", 1),
        (MOVEMENT_EXPORT, 0),
        (MOVEMENT_EXPORT, -3),
        (MOVEMENT_IMPORT, True),
    ])
    def test_rejects_bad_input(self, db_session, product, direction, quantity):
        with pytest.raises(ValidationError):
            inventory_service.apply_delta("P1", direction, quantity)

    def test_rollback_discards_counters_and_movement(self, db_session, product):
        with pytest.raises(RuntimeError):
            with unit_of_work():
                inventory_service.apply_delta("P1", MOVEMENT_EXPORT, 5, "doomed")
                raise RuntimeError("abort")

        assert inventory_service.get_product_by_code("P1").new_stock == 50
        assert len(_movements("P1")) == 1


# =============================================================================
# PRODUCT MAINTENANCE
# =============================================================================


class TestProducts:

    def test_opening_stock_is_a_movement(self, db_session, product):
        movements = _movements("P1")
        assert len(movements) == 1
        assert movements[0].type == MOVEMENT_IMPORT
        assert movements[0].quantity == 50
        assert movements[0].note == inventory_service.OPENING_STOCK_NOTE

    def test_zero_opening_stock_writes_no_movement(self, db_session):
        inventory_service.create_product({"code": "P9", "name": "Empty"})
        assert _movements("P9") == []
        assert inventory_service.get_product_by_code("P9").new_stock == 0

    def test_duplicate_code_conflicts(self, db_session, product):
        with pytest.raises(ConflictError):
            inventory_service.create_product({"code": "P1", "name": "Again"})

    def test_update_changes_prices_only(self, db_session, product):
        updated = inventory_service.update_product(product.id, {"name": "Renamed", "cost_price": 70})
        assert updated.name == "Renamed"
        assert updated.cost_price == 70
        assert updated.new_stock == 50

    def test_update_cannot_touch_stock(self, db_session, product):
        with pytest.raises(ValidationError):
            inventory_service.update_product(product.id, {"new_stock": 10})

    def test_delete_refused_while_referenced(self, db_session, product, customer):
        from backoffice.services import order_service
        order_service.create_order({
            "order_code": "O1",
            "customer_id": customer.id,
            "items": [{"product_code": "P1", "quantity": 1, "price": 100}],
        })

        with pytest.raises(ConflictError):
            inventory_service.delete_product(product.id)
        assert db.session.query(OrderLine).count() == 1

    def test_delete_unreferenced(self, db_session, product):
        inventory_service.delete_product(product.id)
        assert db.session.get(Product, product.id) is None


# =============================================================================
# STANDALONE MOVEMENTS AND READS
# =============================================================================


class TestStockReads:

    def test_record_stock_movement_commits(self, db_session, product):
        p = inventory_service.record_stock_movement(
            product_code="P1", direction=MOVEMENT_EXPORT, quantity="4", note="Damaged"
        )
        assert p.new_stock == 46
        db.session.expire_all()
        assert inventory_service.get_product_by_code("P1").new_stock == 46

    def test_stock_levels_aggregate_movements(self, db_session, product, second_product):
        inventory_service.record_stock_movement(product_code="P1", direction=MOVEMENT_EXPORT, quantity=8)

        levels = {row["product_code"]: row for row in inventory_service.get_stock_levels()}
        assert levels["P1"]["total_import"] == 50
        assert levels["P1"]["total_export"] == 8
        assert levels["P1"]["stock"] == 42
        assert levels["P1"]["product_name"] == "Product One"
        assert levels["P2"]["stock"] == 30

    def test_history_is_newest_first(self, db_session, product):
        inventory_service.record_stock_movement(product_code="P1", direction=MOVEMENT_EXPORT, quantity=1)
        history = inventory_service.get_movement_history("P1")
        assert [m.type for m in history] == ["export", "import"]

    def test_stock_report_buckets(self, app, db_session, product):
        inventory_service.create_product({"code": "LOW", "name": "Low", "cost_price": 5, "new_stock": 3})
        inventory_service.create_product({"code": "OUT", "name": "Out"})

        report = inventory_service.get_stock_report()
        assert [p["code"] for p in report["low_stock"]] == ["LOW"]
        assert [p["code"] for p in report["out_of_stock"]] == ["OUT"]
        assert report["summary"]["in_stock_count"] == 1
        assert report["summary"]["total_cost_value"] == 50 * 60 + 3 * 5


# =============================================================================
# SELF-HEALING
# =============================================================================


class TestReconcileCounters:

    def test_no_drift_when_consistent(self, db_session, product):
        assert inventory_service.reconcile_product_counters() == []

    def test_rebuilds_drifted_counters(self, db_session, product):
        p = inventory_service.get_product_by_code("P1")
        p.new_stock = 999
        p.exported = 3
        db.session.commit()

        drift = inventory_service.reconcile_product_counters("P1", dry_run=True)
        assert drift[0]["ledger"] == {"imported": 50, "exported": 0, "new_stock": 50}
        assert inventory_service.get_product_by_code("P1").new_stock == 999

        inventory_service.reconcile_product_counters("P1")
        db.session.expire_all()
        p = inventory_service.get_product_by_code("P1")
        assert (p.imported, p.exported, p.new_stock) == (50, 0, 50)

    def test_unknown_code(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.reconcile_product_counters("NOPE")
