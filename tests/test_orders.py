from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from coin_wallet.errors import ConflictError, NotFoundError, ValidationError
from coin_wallet.ledger import read_balance
from coin_wallet.models import APPROVED, PENDING, REJECTED, Order, User
from coin_wallet.orders import (
    approve_order,
    list_orders,
    list_orders_for_user,
    reject_order,
    submit_order,
)

from conftest import PNG


def _submit(db, user, amount="200", upi="asha@paytm", screenshot=PNG, pack="Pack A"):
    return submit_order(db, user.id, pack, amount, "228", upi, screenshot, "image/png")


def test_submit_creates_pending_order_without_touching_balance(db, make_user):
    u = make_user()
    order = _submit(db, u)

    assert order.status == PENDING
    assert order.user_id == u.id
    assert Decimal(order.amount) == Decimal("200")
    assert order.payment_screenshot.startswith("data:image/png;base64,")
    assert read_balance(db, u.id) == Decimal("0")


@pytest.mark.parametrize("upi, screenshot", [("", PNG), ("   ", PNG), ("asha@paytm", None), ("asha@paytm", b"")])
def test_submit_requires_upi_and_screenshot(db, make_user, upi, screenshot):
    u = make_user()
    with pytest.raises(ValidationError):
        _submit(db, u, upi=upi, screenshot=screenshot)
    assert list_orders(db) == []


def test_submit_rejects_non_positive_amount(db, make_user):
    u = make_user()
    with pytest.raises(ValidationError):
        _submit(db, u, amount="0")


def test_submit_for_unknown_user(db):
    ghost = User(id="DT0000")
    with pytest.raises(NotFoundError):
        _submit(db, ghost)


def test_approve_credits_exactly_once(db, make_user):
    u = make_user()
    order = _submit(db, u)

    approved = approve_order(db, order.id)
    assert approved.status == APPROVED
    assert approved.processed_at is not None
    assert read_balance(db, u.id) == Decimal("200")
    assert db.get(User, u.id).has_purchased is True

    with pytest.raises(ConflictError):
        approve_order(db, order.id)
    assert read_balance(db, u.id) == Decimal("200")


def test_approve_adds_to_existing_balance(db, make_user):
    u = make_user(balance=Decimal("150.50"))
    order = _submit(db, u, amount="300")
    approve_order(db, order.id)
    assert read_balance(db, u.id) == Decimal("450.50")


def test_reject_leaves_balance_and_is_terminal(db, make_user):
    u = make_user(balance=Decimal("10"))
    order = _submit(db, u)

    assert reject_order(db, order.id).status == REJECTED
    assert read_balance(db, u.id) == Decimal("10")

    with pytest.raises(ConflictError):
        approve_order(db, order.id)
    with pytest.raises(ConflictError):
        reject_order(db, order.id)
    assert read_balance(db, u.id) == Decimal("10")
    assert db.get(Order, order.id).status == REJECTED


def test_approved_order_cannot_be_rejected(db, make_user):
    u = make_user()
    order = _submit(db, u)
    approve_order(db, order.id)
    with pytest.raises(ConflictError):
        reject_order(db, order.id)
    assert db.get(Order, order.id).status == APPROVED


def test_unknown_order(db):
    with pytest.raises(NotFoundError):
        approve_order(db, "ORD-missing")
    with pytest.raises(NotFoundError):
        reject_order(db, "ORD-missing")


def test_stale_approval_loses_the_race(db, session_factory, make_user):
    """Two admins saw the order Pending; only the first approval credits."""
    u = make_user()
    order = _submit(db, u)
    db.get(Order, order.id)  # db now holds a Pending snapshot

    other = session_factory()
    try:
        approve_order(other, order.id)
    finally:
        other.close()

    with pytest.raises(ConflictError):
        approve_order(db, order.id)
    assert read_balance(db, u.id) == Decimal("200")


def test_listing_is_newest_first_and_filtered(db, make_user):
    u = make_user()
    other = make_user(name="Ravi")
    first, second, third = _submit(db, u), _submit(db, u), _submit(db, u)
    _submit(db, other)

    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i, o in enumerate((first, second, third)):
        db.get(Order, o.id).created_at = base + timedelta(minutes=i)
    db.commit()

    approve_order(db, second.id)

    mine = list_orders_for_user(db, u.id, "All")
    assert [o.id for o in mine] == [third.id, second.id, first.id]
    assert [o.id for o in list_orders_for_user(db, u.id, "Approved")] == [second.id]
    assert [o.id for o in list_orders_for_user(db, u.id, "Pending")] == [third.id, first.id]
    assert list_orders_for_user(db, u.id, "Rejected") == []

    assert len(list_orders(db)) == 4
    assert len(list_orders(db, None)) == 4
    assert [o.id for o in list_orders(db, "Approved")] == [second.id]


def test_unknown_status_filter(db, make_user):
    with pytest.raises(ValidationError):
        list_orders(db, "pending")
