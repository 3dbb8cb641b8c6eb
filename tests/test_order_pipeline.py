"""Checkout: selected cart lines → order, stock re-validation, idempotency."""

from decimal import Decimal

import pytest

from common.exceptions import EmptySelectionError, StockConflictError
from modules.cart.service import cart_service
from modules.inventory.models import StockMovement
from modules.order.models import Order, OrderStatusLog
from modules.order.service import order_service


def _cart_lines(db, owner_key):
    db.expire_all()
    cart = cart_service.get_cart(db, owner_key)
    return list(cart.items) if cart else []


class TestPlaceOrder:

    def test_selected_line_becomes_order(self, db, make_product, customer, shipping, stock_of):
        gown = make_product(name="P1", price="1000.00", stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 2)
        db.commit()

        order, created = order_service.place_order(db, customer, shipping)
        db.commit()

        assert created is True
        assert order.total_price == Decimal("2000.00")
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.expected_delivery_date is None
        assert order.user_id == 1
        assert order.shipping_address["city"] == "Bath"
        assert len(order.items) == 1
        assert order.items[0].product_name == "P1"
        assert order.items[0].size == "M"
        assert order.items[0].quantity == 2
        assert _cart_lines(db, customer.owner_key) == []
        # held at add time, nothing more taken at checkout
        assert stock_of(gown.id) == 3

    def test_unselected_lines_stay_in_cart(self, db, make_product, customer, shipping):
        gown = make_product(name="Gown", price="1000.00", stock=5)
        veil = make_product(name="Veil", price="200.00", stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        cart_service.add_item(db, customer.owner_key, veil.id, None, 1)
        cart_service.toggle_selection(db, customer.owner_key, veil.id, None)
        db.commit()

        order, _ = order_service.place_order(db, customer, shipping)
        db.commit()

        assert order.total_price == Decimal("1000.00")
        assert [it.product_id for it in order.items] == [gown.id]
        remaining = _cart_lines(db, customer.owner_key)
        assert [line.product_id for line in remaining] == [veil.id]

    def test_initial_status_log(self, db, make_product, customer, shipping):
        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        db.commit()

        order, _ = order_service.place_order(db, customer, shipping)
        db.commit()

        logs = db.query(OrderStatusLog).filter(OrderStatusLog.order_id == order.id).all()
        assert len(logs) == 1
        assert logs[0].old_status is None
        assert logs[0].new_status == "pending"
        assert logs[0].changed_by == "customer"

    def test_empty_selection(self, db, make_product, customer, shipping):
        with pytest.raises(EmptySelectionError):
            order_service.place_order(db, customer, shipping)

        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        cart_service.toggle_selection(db, customer.owner_key, gown.id, "M")
        db.commit()

        with pytest.raises(EmptySelectionError):
            order_service.place_order(db, customer, shipping)
        assert db.query(Order).count() == 0


class TestStockRevalidation:

    def test_raised_quantity_is_topped_up(self, db, make_product, customer, shipping, stock_of):
        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        cart_service.update_quantity(db, customer.owner_key, gown.id, "M", 3)
        db.commit()

        order, _ = order_service.place_order(db, customer, shipping)
        db.commit()

        assert order.items[0].quantity == 3
        assert stock_of(gown.id) == 2
        topups = db.query(StockMovement).filter(StockMovement.reason == "checkout_topup").all()
        assert [m.delta for m in topups] == [-2]

    def test_conflict_names_every_short_product(self, db, make_product, customer, shipping, stock_of):
        gown = make_product(name="Gown", stock=2)
        veil = make_product(name="Veil", stock=1)
        belt = make_product(name="Belt", stock=10)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        cart_service.add_item(db, customer.owner_key, veil.id, None, 1)
        cart_service.add_item(db, customer.owner_key, belt.id, None, 1)
        cart_service.update_quantity(db, customer.owner_key, gown.id, "M", 5)
        cart_service.update_quantity(db, customer.owner_key, veil.id, None, 4)
        cart_service.update_quantity(db, customer.owner_key, belt.id, None, 3)
        db.commit()

        with pytest.raises(StockConflictError) as exc:
            order_service.place_order(db, customer, shipping)

        conflicts = {c["name"]: c for c in exc.value.conflicts}
        assert set(conflicts) == {"Gown", "Veil"}
        assert conflicts["Gown"]["requested"] == 5
        assert conflicts["Gown"]["available"] == 2
        assert conflicts["Veil"]["available"] == 1

        # whole attempt rolled back: no order, cart untouched, belt top-up undone
        assert db.query(Order).count() == 0
        assert len(_cart_lines(db, customer.owner_key)) == 3
        assert stock_of(belt.id) == 9
        assert stock_of(gown.id) == 1
        assert stock_of(veil.id) == 0

    def test_stock_never_negative_across_checkouts(self, db, make_product, customer, other_customer, shipping, stock_of):
        gown = make_product(stock=3)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 2)
        cart_service.add_item(db, other_customer.owner_key, gown.id, "M", 1)
        cart_service.update_quantity(db, other_customer.owner_key, gown.id, "M", 2)
        db.commit()

        order_service.place_order(db, customer, shipping)
        db.commit()
        with pytest.raises(StockConflictError):
            order_service.place_order(db, other_customer, shipping)

        assert stock_of(gown.id) == 0


class TestIdempotency:

    def test_same_key_replays_order(self, db, make_product, customer, shipping, stock_of):
        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        db.commit()

        first, created_first = order_service.place_order(db, customer, shipping, idempotency_key="abc-1")
        db.commit()
        second, created_second = order_service.place_order(db, customer, shipping, idempotency_key="abc-1")
        db.commit()

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert db.query(Order).count() == 1
        assert stock_of(gown.id) == 4

    def test_key_is_scoped_to_owner(self, db, make_product, customer, other_customer, shipping):
        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        cart_service.add_item(db, other_customer.owner_key, gown.id, "M", 1)
        db.commit()

        first, _ = order_service.place_order(db, customer, shipping, idempotency_key="same")
        db.commit()
        second, created = order_service.place_order(db, other_customer, shipping, idempotency_key="same")
        db.commit()

        assert created is True
        assert second.id != first.id

    def test_no_key_means_repeat_orders_are_distinct(self, db, make_product, customer, shipping):
        gown = make_product(stock=5)
        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        db.commit()
        first, _ = order_service.place_order(db, customer, shipping)
        db.commit()

        cart_service.add_item(db, customer.owner_key, gown.id, "M", 1)
        db.commit()
        second, created = order_service.place_order(db, customer, shipping)
        db.commit()

        assert created is True
        assert second.id != first.id
        assert first.idempotency_key is None
