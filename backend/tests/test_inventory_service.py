import threading
from decimal import Decimal

import pytest
from sqlalchemy import select

from database import Database, init_db, transaction
from models.inventory import InventoryMovement, MovementType
from models.product import Product
from services import inventory_service
from utils.errors import InsufficientStock, NotFound, ValidationError


def _movements(session, product_id):
    return session.execute(
        select(InventoryMovement).where(InventoryMovement.product_id == product_id).order_by(InventoryMovement.id)
    ).scalars().all()


def test_reserve_all_then_fail_then_release(db_session, products, stock_of):
    _, gadget = products

    with transaction(db_session):
        assert inventory_service.reserve(db_session, gadget.id, 5, order_id=1) == 0
    assert stock_of(gadget.id) == 0

    with pytest.raises(InsufficientStock) as exc_info:
        with transaction(db_session):
            inventory_service.reserve(db_session, gadget.id, 1, order_id=2)
    assert exc_info.value.product_id == gadget.id
    assert stock_of(gadget.id) == 0

    with transaction(db_session):
        assert inventory_service.release(db_session, gadget.id, 5, order_id=1) == 5
    assert stock_of(gadget.id) == 5


def test_failed_reserve_records_no_movement(db_session, products):
    _, gadget = products
    with pytest.raises(InsufficientStock):
        with transaction(db_session):
            inventory_service.reserve(db_session, gadget.id, 6)
    assert _movements(db_session, gadget.id) == []


def test_reserve_and_release_record_movements(db_session, products, admin):
    widget, _ = products
    with transaction(db_session):
        inventory_service.reserve(db_session, widget.id, 3, order_id=7, actor_id=admin.id)
        inventory_service.release(db_session, widget.id, 3, order_id=7, actor_id=admin.id)

    rows = _movements(db_session, widget.id)
    assert [(m.type, m.quantity) for m in rows] == [(MovementType.RESERVE, 3), (MovementType.RELEASE, 3)]
    assert rows[0].meta == {"order_id": 7, "actor_id": admin.id}


@pytest.mark.parametrize("quantity", [0, -2])
def test_reserve_rejects_non_positive_quantity(db_session, products, stock_of, quantity):
    widget, _ = products
    with pytest.raises(ValidationError):
        inventory_service.reserve(db_session, widget.id, quantity)
    with pytest.raises(ValidationError):
        inventory_service.release(db_session, widget.id, quantity)
    assert stock_of(widget.id) == 10


def test_unknown_product_is_not_found(db_session, products):
    with pytest.raises(NotFound):
        with transaction(db_session):
            inventory_service.reserve(db_session, 999, 1)
    with pytest.raises(NotFound):
        with transaction(db_session):
            inventory_service.adjust(db_session, 999, 1)


def test_adjust_applies_signed_delta_with_reason(db_session, products, stock_of):
    widget, _ = products
    with transaction(db_session):
        assert inventory_service.adjust(db_session, widget.id, 4, reason="delivery") == 14
    with transaction(db_session):
        assert inventory_service.adjust(db_session, widget.id, -14, reason="stocktake") == 0

    rows = _movements(db_session, widget.id)
    assert [m.quantity for m in rows] == [4, -14]
    assert rows[1].meta == {"reason": "stocktake"}
    assert stock_of(widget.id) == 0


def test_adjust_below_zero_is_rejected_and_rolled_back(db_session, products, stock_of):
    _, gadget = products
    with pytest.raises(ValidationError) as exc_info:
        with transaction(db_session):
            inventory_service.adjust(db_session, gadget.id, -6)
    assert exc_info.value.field == "quantity"
    assert stock_of(gadget.id) == 5
    assert _movements(db_session, gadget.id) == []


def test_adjust_rejects_zero(db_session, products):
    widget, _ = products
    with pytest.raises(ValidationError):
        inventory_service.adjust(db_session, widget.id, 0)


def test_movement_failure_does_not_undo_stock_change(db_session, products, stock_of):
    widget, _ = products
    with transaction(db_session):
        inventory_service.adjust(db_session, widget.id, 1)
        # Dangling product id violates the foreign key inside the savepoint
        assert inventory_service.record_movement(
            db_session, product_id=424242, movement_type=MovementType.ADJUST, quantity=1
        ) is None
    assert stock_of(widget.id) == 11


def test_list_movements_newest_first_and_filtered(db_session, products):
    widget, gadget = products
    with transaction(db_session):
        inventory_service.adjust(db_session, widget.id, 1, reason="first")
        inventory_service.adjust(db_session, gadget.id, 1, reason="other product")
        inventory_service.adjust(db_session, widget.id, 2, reason="second")

    total, rows = inventory_service.list_movements(db_session, product_id=widget.id)
    assert total == 2
    assert [m.meta["reason"] for m in rows] == ["second", "first"]

    total, rows = inventory_service.list_movements(db_session, page=1, page_size=1)
    assert total == 3
    assert len(rows) == 1


def test_concurrent_reserves_never_oversell(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'concurrency.db'}")
    init_db(database)
    try:
        with database.session() as session:
            product = Product(name="Scarce", price=Decimal("1.00"), stock=5)
            session.add(product)
            session.commit()
            product_id = product.id

        workers = 12
        barrier = threading.Barrier(workers)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            session = database.session()
            try:
                barrier.wait()
                try:
                    with transaction(session):
                        inventory_service.reserve(session, product_id, 1)
                    result = "ok"
                except InsufficientStock:
                    result = "short"
            finally:
                session.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 5
        assert outcomes.count("short") == workers - 5
        with database.session() as session:
            assert session.get(Product, product_id).stock == 0
            reserved = session.execute(
                select(InventoryMovement).where(InventoryMovement.type == MovementType.RESERVE)
            ).scalars().all()
            assert len(reserved) == 5
    finally:
        database.dispose()
