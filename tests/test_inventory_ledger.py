"""Unit tests for the InventoryLedger (reserve / release / audit trail)."""

import pytest

from common.exceptions import InsufficientStockError, NotFoundError, ValidationError
from modules.inventory.models import MovementReason, StockMovement
from modules.inventory.service import inventory_ledger


class TestReserve:

    def test_reserve_decrements_stock(self, db, make_product, stock_of):
        product = make_product(stock=5)

        left = inventory_ledger.reserve(db, product.id, 3, reference="cart:user:1")
        db.commit()

        assert left == 2
        assert stock_of(product.id) == 2

    def test_reserve_exact_stock_reaches_zero(self, db, make_product, stock_of):
        product = make_product(stock=2)

        inventory_ledger.reserve(db, product.id, 2)
        db.commit()

        assert stock_of(product.id) == 0

    def test_reserve_more_than_stock_is_refused(self, db, make_product, stock_of):
        product = make_product(name="Blush Tulle Gown", stock=1)

        with pytest.raises(InsufficientStockError) as exc:
            inventory_ledger.reserve(db, product.id, 2)

        assert exc.value.available == 1
        assert exc.value.product_name == "Blush Tulle Gown"
        db.rollback()
        assert stock_of(product.id) == 1

    def test_reserve_unknown_product(self, db):
        with pytest.raises(NotFoundError):
            inventory_ledger.reserve(db, 9999, 1)

    def test_reserve_rejects_non_positive_quantity(self, db, make_product):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            inventory_ledger.reserve(db, product.id, 0)

    def test_stock_never_negative_over_many_reservations(self, db, make_product, stock_of):
        product = make_product(stock=7)

        refused = 0
        for qty in [3, 3, 3, 1, 2]:
            try:
                inventory_ledger.reserve(db, product.id, qty)
                db.commit()
            except InsufficientStockError:
                db.rollback()
                refused += 1
            assert stock_of(product.id) >= 0

        assert stock_of(product.id) == 0
        assert refused == 2

    def test_reserve_writes_movement(self, db, make_product):
        product = make_product(stock=4)

        inventory_ledger.reserve(db, product.id, 3, reason=MovementReason.CART_ADD, reference="cart:guest:abc")
        db.commit()

        movements = inventory_ledger.movements(db, product.id)
        assert len(movements) == 1
        assert movements[0].delta == -3
        assert movements[0].stock_after == 1
        assert movements[0].reason == "cart_add"
        assert movements[0].reference == "cart:guest:abc"


class TestRelease:

    def test_release_increments_stock(self, db, make_product, stock_of):
        product = make_product(stock=1)

        applied = inventory_ledger.release(db, product.id, 2, reference="order:1")
        db.commit()

        assert applied is True
        assert stock_of(product.id) == 3

    def test_release_with_same_key_applies_once(self, db, make_product, stock_of):
        product = make_product(stock=0)

        first = inventory_ledger.release(db, product.id, 2, idempotency_key="order:1:epoch:0:item:1")
        db.commit()
        second = inventory_ledger.release(db, product.id, 2, idempotency_key="order:1:epoch:0:item:1")
        db.commit()

        assert first is True
        assert second is False
        assert stock_of(product.id) == 2
        assert db.query(StockMovement).filter(StockMovement.product_id == product.id).count() == 1

    def test_release_zero_is_noop(self, db, make_product, stock_of):
        product = make_product(stock=3)
        assert inventory_ledger.release(db, product.id, 0) is False
        assert stock_of(product.id) == 3

    def test_release_unknown_product(self, db):
        with pytest.raises(NotFoundError):
            inventory_ledger.release(db, 9999, 1)
