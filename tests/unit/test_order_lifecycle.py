import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
    WindowExpiredError,
)
from app.crud.variant import VariantStockCRUD
from app.db.enums import OrderStatus
from app.schemas.order import CustomerIn, ManualOrderLine


async def _stock(db_session, variant_id) -> int:
    return await VariantStockCRUD(db_session).read(variant_id)


@pytest.mark.asyncio
async def test_full_lifecycle_keeps_stock_consistent(db_session, lifecycle, catalog, place_order, clock):
    v1 = catalog["v1"]

    order_id = await place_order({v1: 3})
    assert await _stock(db_session, v1) == 7

    order = await lifecycle.transition(order_id, OrderStatus.CONFIRMED)
    assert order.status == OrderStatus.CONFIRMED
    assert order.confirmed_at is not None
    assert await _stock(db_session, v1) == 7

    order = await lifecycle.transition(order_id, OrderStatus.CANCELLED)
    assert order.status == OrderStatus.CANCELLED
    assert await _stock(db_session, v1) == 10

    order = await lifecycle.transition(order_id, OrderStatus.CONFIRMED)
    assert order.status == OrderStatus.CONFIRMED
    assert await _stock(db_session, v1) == 7


@pytest.mark.asyncio
async def test_repeated_transition_is_rejected_without_double_effect(db_session, lifecycle, catalog, place_order):
    order_id = await place_order({catalog["v1"]: 2})

    await lifecycle.transition(order_id, OrderStatus.CANCELLED)
    assert await _stock(db_session, catalog["v1"]) == 10

    with pytest.raises(InvalidTransitionError):
        await lifecycle.transition(order_id, OrderStatus.CANCELLED)

    assert await _stock(db_session, catalog["v1"]) == 10


@pytest.mark.asyncio
async def test_cancel_then_reconfirm_restores_exact_level(db_session, lifecycle, catalog, place_order):
    order_id = await place_order({catalog["v1"]: 4, catalog["v2"]: 2})
    await lifecycle.transition(order_id, OrderStatus.CONFIRMED)
    before = (await _stock(db_session, catalog["v1"]), await _stock(db_session, catalog["v2"]))

    await lifecycle.transition(order_id, OrderStatus.CANCELLED)
    await lifecycle.transition(order_id, OrderStatus.CONFIRMED)

    after = (await _stock(db_session, catalog["v1"]), await _stock(db_session, catalog["v2"]))
    assert after == before == (6, 1)


@pytest.mark.parametrize(
    "path, target",
    [
        ([], OrderStatus.SHIPPED),
        ([], OrderStatus.DELIVERED),
        ([OrderStatus.CONFIRMED, OrderStatus.SHIPPED], OrderStatus.PENDING),
        ([OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED], OrderStatus.CANCELLED),
        ([OrderStatus.CANCELLED], OrderStatus.DELIVERED),
    ],
)
@pytest.mark.asyncio
async def test_unreachable_targets_are_rejected(db_session, lifecycle, catalog, place_order, path, target):
    order_id = await place_order({catalog["v1"]: 1})
    for status in path:
        await lifecycle.transition(order_id, status)
    stock_before = await _stock(db_session, catalog["v1"])

    with pytest.raises(InvalidTransitionError):
        await lifecycle.transition(order_id, target)

    assert await _stock(db_session, catalog["v1"]) == stock_before


@pytest.mark.asyncio
async def test_transition_of_missing_order(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.transition(uuid.uuid4(), OrderStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_transition_publishes_event(lifecycle, catalog, place_order, mock_notification_service):
    order_id = await place_order({catalog["v1"]: 1})

    await lifecycle.transition(order_id, OrderStatus.CONFIRMED)

    mock_notification_service.order_created.assert_awaited_once()
    mock_notification_service.order_transitioned.assert_awaited_once()
    kwargs = mock_notification_service.order_transitioned.await_args.kwargs
    assert kwargs["order_id"] == order_id
    assert kwargs["from_status"] == OrderStatus.PENDING
    assert kwargs["to_status"] == OrderStatus.CONFIRMED


# MANUAL ORDERS

@pytest.mark.asyncio
async def test_manual_order_snapshots_catalog(lifecycle, catalog, customer):
    order = await lifecycle.place_manual_order(
        customer,
        [ManualOrderLine(variant_id=catalog["v1"], quantity=2)],
    )

    assert order.status == OrderStatus.PENDING
    assert order.order_number == 1
    assert order.total_price == Decimal("5000.00")
    assert order.delivery_price == Decimal("600.00")
    [line] = order.items
    assert line.product_name == "Linen Dress"
    assert line.selected_size == "M"
    assert line.selected_color == "Black"
    assert line.product_id == catalog["product_id"]


@pytest.mark.asyncio
async def test_manual_order_exceeding_stock_fails_without_side_effect(db_session, lifecycle, catalog, customer):
    with pytest.raises(ValidationError):
        await lifecycle.place_manual_order(
            customer,
            [
                ManualOrderLine(variant_id=catalog["v2"], quantity=2),
                ManualOrderLine(variant_id=catalog["v2"], quantity=2),
            ],
        )

    assert await _stock(db_session, catalog["v2"]) == 3
    assert await lifecycle.visible_orders() == []


@pytest.mark.asyncio
async def test_manual_order_can_take_the_last_unit(db_session, place_order, catalog):
    await place_order({catalog["v2"]: 3})

    assert await _stock(db_session, catalog["v2"]) == 0


@pytest.mark.asyncio
async def test_manual_order_loses_race_for_last_units(db_session, lifecycle, catalog, customer, monkeypatch):
    real_read = lifecycle.stock.read

    async def read_then_sold_elsewhere(variant_id):
        available = await real_read(variant_id)
        if variant_id == catalog["v2"]:
            # Another order commits 2 of the 3 units right after our check
            await VariantStockCRUD(db_session).adjust(catalog["v2"], -2)
            await db_session.commit()
        return available

    monkeypatch.setattr(lifecycle.stock, "read", read_then_sold_elsewhere)

    with pytest.raises(ValidationError):
        await lifecycle.place_manual_order(
            customer,
            [
                ManualOrderLine(variant_id=catalog["v1"], quantity=2),
                ManualOrderLine(variant_id=catalog["v2"], quantity=3),
            ],
        )

    # Only the competing sale went through; V1 was not touched either
    assert await _stock(db_session, catalog["v2"]) == 1
    assert await _stock(db_session, catalog["v1"]) == 10
    assert await lifecycle.visible_orders() == []


@pytest.mark.asyncio
async def test_manual_order_rejects_unknown_wilaya_and_variant(lifecycle, catalog, customer):
    stranger = CustomerIn(**{**customer.model_dump(), "wilaya_id": uuid.uuid4()})
    with pytest.raises(ValidationError):
        await lifecycle.place_manual_order(
            stranger, [ManualOrderLine(variant_id=catalog["v1"], quantity=1)]
        )

    with pytest.raises(ValidationError):
        await lifecycle.place_manual_order(
            customer, [ManualOrderLine(variant_id=uuid.uuid4(), quantity=1)]
        )

    with pytest.raises(ValidationError):
        await lifecycle.place_manual_order(customer, [])


# UNDO CONFIRMATION

@pytest.mark.asyncio
async def test_undo_confirmation_within_window(db_session, lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 3})
    await lifecycle.transition(order_id, OrderStatus.CONFIRMED)

    clock.advance(hours=23)
    order = await lifecycle.undo_confirmation(order_id)

    assert order.status == OrderStatus.PENDING
    assert await _stock(db_session, catalog["v1"]) == 7


@pytest.mark.asyncio
async def test_undo_confirmation_after_window(lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 1})
    await lifecycle.transition(order_id, OrderStatus.CONFIRMED)

    clock.advance(hours=24, seconds=1)

    with pytest.raises(WindowExpiredError):
        await lifecycle.undo_confirmation(order_id)


@pytest.mark.asyncio
async def test_undo_requires_confirmed_order(lifecycle, catalog, place_order):
    order_id = await place_order({catalog["v1"]: 1})

    with pytest.raises(InvalidTransitionError):
        await lifecycle.undo_confirmation(order_id)


# ARCHIVE RULE

@pytest.mark.asyncio
async def test_stale_confirmed_orders_leave_the_working_view(lifecycle, catalog, place_order, set_confirmed, clock):
    old = await place_order({catalog["v1"]: 1})
    recent = await place_order({catalog["v1"]: 1})
    await set_confirmed(old, clock() - timedelta(days=6))
    await set_confirmed(recent, clock() - timedelta(days=4))

    visible = await lifecycle.visible_orders(status=OrderStatus.CONFIRMED)
    assert [o.id for o in visible] == [recent]

    everything = await lifecycle.visible_orders(status=OrderStatus.CONFIRMED, include_archived=True)
    assert {o.id for o in everything} == {old, recent}


@pytest.mark.asyncio
async def test_archive_rule_only_hides_confirmed(lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 1})
    clock.advance(days=30)

    assert [o.id for o in await lifecycle.visible_orders()] == [order_id]


# DELETION

@pytest.mark.asyncio
async def test_delete_order_does_not_restore_stock(db_session, lifecycle, catalog, place_order):
    order_id = await place_order({catalog["v1"]: 3})

    await lifecycle.delete_order(order_id)

    assert await _stock(db_session, catalog["v1"]) == 7
    with pytest.raises(NotFoundError):
        await lifecycle.get_order(order_id)
    with pytest.raises(NotFoundError):
        await lifecycle.delete_order(order_id)


# INTERRUPTED TRANSITIONS

@pytest.mark.asyncio
async def test_failed_commit_keeps_marker_and_leaves_stock_untouched(
    db_session, lifecycle, catalog, place_order, monkeypatch
):
    monkeypatch.setattr(settings, "storage_retry_backoff_seconds", 0)
    order_id = await place_order({catalog["v1"]: 3})
    real_set_status = lifecycle.order_crud.set_status
    monkeypatch.setattr(
        lifecycle.order_crud,
        "set_status",
        AsyncMock(side_effect=StorageUnavailableError("connection reset")),
    )

    with pytest.raises(StorageUnavailableError):
        await lifecycle.transition(order_id, OrderStatus.CANCELLED)

    order = await lifecycle.get_order(order_id)
    assert order.status == OrderStatus.PENDING
    assert order.reconciliation_target == OrderStatus.CANCELLED
    assert await _stock(db_session, catalog["v1"]) == 7

    # Re-running the same transition finishes it exactly once
    monkeypatch.setattr(lifecycle.order_crud, "set_status", real_set_status)
    order = await lifecycle.transition(order_id, OrderStatus.CANCELLED)

    assert order.status == OrderStatus.CANCELLED
    assert order.reconciliation_target is None
    assert await _stock(db_session, catalog["v1"]) == 10


@pytest.mark.asyncio
async def test_pending_marker_for_other_target_conflicts(db_session, lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 1})
    await lifecycle.order_crud.mark_reconciliation_pending(
        order_id, OrderStatus.PENDING, OrderStatus.CANCELLED, at=clock()
    )
    await db_session.commit()

    with pytest.raises(ConflictError):
        await lifecycle.transition(order_id, OrderStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_repair_finishes_interrupted_transitions_once(db_session, lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 3})
    # Crash right after the marker was committed
    await lifecycle.order_crud.mark_reconciliation_pending(
        order_id, OrderStatus.PENDING, OrderStatus.CANCELLED, at=clock()
    )
    await db_session.commit()
    assert await _stock(db_session, catalog["v1"]) == 7

    clock.advance(minutes=5)
    assert await lifecycle.repair_pending(older_than_seconds=60) == 1

    order = await lifecycle.get_order(order_id)
    assert order.status == OrderStatus.CANCELLED
    assert order.reconciliation_target is None
    assert await _stock(db_session, catalog["v1"]) == 10

    assert await lifecycle.repair_pending(older_than_seconds=60) == 0
    assert await _stock(db_session, catalog["v1"]) == 10


@pytest.mark.asyncio
async def test_repair_skips_fresh_markers(db_session, lifecycle, catalog, place_order, clock):
    order_id = await place_order({catalog["v1"]: 3})
    await lifecycle.order_crud.mark_reconciliation_pending(
        order_id, OrderStatus.PENDING, OrderStatus.CONFIRMED, at=clock()
    )
    await db_session.commit()

    assert await lifecycle.repair_pending(older_than_seconds=60) == 0
    assert (await lifecycle.get_order(order_id)).reconciliation_target == OrderStatus.CONFIRMED


@pytest.mark.asyncio
async def test_repair_threshold_defaults_to_settings(db_session, lifecycle, catalog, place_order, clock, monkeypatch):
    monkeypatch.setattr(settings, "repair_older_than_seconds", 0)
    order_id = await place_order({catalog["v1"]: 3})
    await lifecycle.order_crud.mark_reconciliation_pending(
        order_id, OrderStatus.PENDING, OrderStatus.CANCELLED, at=clock()
    )
    await db_session.commit()

    assert await lifecycle.repair_pending() == 1
    assert await _stock(db_session, catalog["v1"]) == 10


# CONFLICTS

@pytest.mark.asyncio
async def test_transition_retries_once_after_conflict(db_session, lifecycle, catalog, place_order, monkeypatch):
    order_id = await place_order({catalog["v1"]: 3})
    real_mark = lifecycle.order_crud.mark_reconciliation_pending
    mark = AsyncMock(side_effect=[ConflictError("status changed underneath"), None])

    async def mark_with_one_lost_race(*args, **kwargs):
        await mark(*args, **kwargs)
        return await real_mark(*args, **kwargs)

    monkeypatch.setattr(lifecycle.order_crud, "mark_reconciliation_pending", mark_with_one_lost_race)

    order = await lifecycle.transition(order_id, OrderStatus.CANCELLED)

    assert mark.await_count == 2
    assert order.status == OrderStatus.CANCELLED
    assert await _stock(db_session, catalog["v1"]) == 10


@pytest.mark.asyncio
async def test_second_conflict_reaches_caller(db_session, lifecycle, catalog, place_order, monkeypatch):
    order_id = await place_order({catalog["v1"]: 3})
    mark = AsyncMock(side_effect=ConflictError("status changed underneath"))
    monkeypatch.setattr(lifecycle.order_crud, "mark_reconciliation_pending", mark)

    with pytest.raises(ConflictError):
        await lifecycle.transition(order_id, OrderStatus.CANCELLED)

    assert mark.await_count == 2
    order = await lifecycle.get_order(order_id)
    assert order.status == OrderStatus.PENDING
    assert order.reconciliation_target is None
    assert await _stock(db_session, catalog["v1"]) == 7
