import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coin_wallet.errors import StoreError
from coin_wallet.ledger import read_balance
from coin_wallet.models import User
from coin_wallet.orders import list_orders
from coin_wallet.store import insert, select_rows, update_rows


@pytest.fixture
def bare_db():
    """A database with no tables, so every call fails inside the driver."""
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    s = sessionmaker(bind=eng)()
    yield s
    s.close()
    eng.dispose()


def test_driver_failures_surface_as_store_error(bare_db):
    with pytest.raises(StoreError):
        list_orders(bare_db)
    with pytest.raises(StoreError):
        read_balance(bare_db, "DT1234")


def test_conditional_update_reports_matched_rows(db):
    insert(db, User(id="DT1234", name="Asha", phone="1", password_hash="x", balance=0))
    db.commit()

    assert update_rows(db, User, {"id": "DT1234", "role": "user"}, {"role": "admin"}) == 1
    assert update_rows(db, User, {"id": "DT1234", "role": "user"}, {"role": "admin"}) == 0
    db.commit()
    assert [u.id for u in select_rows(db, User, role="admin")] == ["DT1234"]
