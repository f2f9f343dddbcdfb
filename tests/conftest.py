import os

# Must be set before config/database are imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from database import build_engine
from models import Base, Tenancy, TenancyStatus
from services.bill_ledger import LineItems, add_months, issue
from services.notifications import bind_dispatcher


class RecordingDispatcher:
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.sent = []

    def notify(self, recipient_id, event_type, payload):
        self.sent.append((recipient_id, event_type, payload))

    @property
    def event_types(self):
        return [event_type for _, event_type, _ in self.sent]


TENANT_ID = 7
LANDLORD_ID = 3


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def notifier():
    return RecordingDispatcher()


@pytest.fixture
def session_factory(engine, notifier):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def _open():
        session = factory()
        bind_dispatcher(session, notifier)
        return session

    return _open


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def make_tenancy(db, today):
    def _make(
        monthly_rent="10000.00",
        start_date=None,
        contract_end_date=None,
        security_deposit="0.00",
        status=TenancyStatus.ACTIVE,
        tenant_id=TENANT_ID,
        landlord_id=LANDLORD_ID,
    ):
        tenancy = Tenancy(
            tenant_id=tenant_id,
            landlord_id=landlord_id,
            property_id=1,
            start_date=start_date or today,
            contract_end_date=contract_end_date,
            monthly_rent=Decimal(monthly_rent),
            security_deposit=Decimal(security_deposit),
            status=status,
        )
        db.add(tenancy)
        db.flush()
        return tenancy

    return _make


@pytest.fixture
def three_month_tenancy(make_tenancy, today):
    """monthly_rent 10000, contract ends three months from today, no deposit."""
    return make_tenancy(contract_end_date=add_months(today, 3))


@pytest.fixture
def make_bill(db, today):
    def _make(tenancy, due_date=None, **line_items):
        if not line_items:
            line_items = {"rent_amount": tenancy.monthly_rent}
        return issue(db, tenancy.id, LineItems(**line_items), due_date or today)

    return _make
