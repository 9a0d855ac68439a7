import os

# must be set before storefront modules read their settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["ORDER_STRICT_TRANSITIONS"] = "0"

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import (
    ParameterGroupModel,
    ParameterModel,
    ProductModel,
    ProductParameterGroupModel,
    SpecialItemModel,
    SpecialModel,
)
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService


class InProcessLockService(LockService):
    """Same cart_lock semantics as the redis one, state kept in a dict."""

    def __init__(self):
        self.ttl = 30
        self.locks = {}
        self.acquired = []

    def acquire_cart_lock(self, cart_id, token):
        if cart_id in self.locks:
            return False
        self.locks[cart_id] = token
        self.acquired.append(cart_id)
        return True

    def release_cart_lock(self, cart_id, token):
        if self.locks.get(cart_id) == token:
            del self.locks[cart_id]
            return True
        return False


class RecordingNotifier(NotificationService):
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def notify_order_created(self, order, lines):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.sent.append((order, lines))


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def locks():
    return InProcessLockService()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def seed(db):
    """
    Size (group 1): Small +0 (default), Large +20,000
    Color (group 2): Oak -5,000, Black +5,000
    desk:     100,000, Size + Color
    chair:     30,000, no groups
    lamp:      50,000, no groups
    shelf:     10,000, inactive
    bundle:   desk(Large) x1 + chair x2 for 150,000
    duo:      lamp x1 + chair x1 for 60,000
    """
    size = ParameterGroupModel(id=1, name="Size", internal_name="size")
    color = ParameterGroupModel(id=2, name="Color", internal_name="color")
    small = ParameterModel(id=11, group=size, name="Small", price_modifier=Decimal("0"))
    large = ParameterModel(id=12, group=size, name="Large", price_modifier=Decimal("20000"))
    oak = ParameterModel(id=21, group=color, name="Oak", price_modifier=Decimal("-5000"))
    black = ParameterModel(id=22, group=color, name="Black", price_modifier=Decimal("5000"))
    db.add_all([size, color, small, large, oak, black])
    db.flush()

    desk = ProductModel(id=1, name="Desk", base_price=Decimal("100000"), status="active")
    chair = ProductModel(id=2, name="Chair", base_price=Decimal("30000"), status="active")
    lamp = ProductModel(id=3, name="Lamp", base_price=Decimal("50000"), status="active")
    shelf = ProductModel(id=4, name="Shelf", base_price=Decimal("10000"), status="inactive")
    db.add_all([desk, chair, lamp, shelf])
    db.flush()

    db.add_all(
        [
            ProductParameterGroupModel(
                id=101, product_id=desk.id, parameter_group_id=size.id, default_parameter_id=small.id
            ),
            ProductParameterGroupModel(id=102, product_id=desk.id, parameter_group_id=color.id),
        ]
    )

    bundle = SpecialModel(id=1, name="Office set", discounted_price=Decimal("150000"), status="active")
    bundle.items = [
        SpecialItemModel(product_id=desk.id, quantity=1, selected_parameters={"1": large.id}),
        SpecialItemModel(product_id=chair.id, quantity=2, selected_parameters={}),
    ]
    duo = SpecialModel(id=2, name="Reading duo", discounted_price=Decimal("60000"), status="active")
    duo.items = [
        SpecialItemModel(product_id=lamp.id, quantity=1),
        SpecialItemModel(product_id=chair.id, quantity=1),
    ]
    retired = SpecialModel(id=3, name="Old deal", discounted_price=Decimal("1000"), status="inactive")
    retired.items = [SpecialItemModel(product_id=chair.id, quantity=1)]
    db.add_all([bundle, duo, retired])
    db.commit()

    return SimpleNamespace(
        desk=desk.id,
        chair=chair.id,
        lamp=lamp.id,
        shelf=shelf.id,
        size=size.id,
        color=color.id,
        small=small.id,
        large=large.id,
        oak=oak.id,
        black=black.id,
        bundle=bundle.id,
        duo=duo.id,
        retired=retired.id,
    )


@pytest.fixture
def client(locks, notifier):
    from storefront.api.deps import get_lock_service, get_notification_service
    from storefront.main import app

    app.dependency_overrides[get_lock_service] = lambda: locks
    app.dependency_overrides[get_notification_service] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
