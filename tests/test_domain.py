from decimal import Decimal

import pytest

from storefront.domain.attribution import (
    SYSTEM,
    AdminActor,
    UserActor,
    actor_columns,
    actor_from_columns,
)
from storefront.domain.catalog import CatalogGroup, CatalogParameter, ProductCatalog
from storefront.domain.errors import StateConflictError, ValidationError
from storefront.domain.identity import Identity
from storefront.domain.order_status import OrderStatus, check_transition
from storefront.domain.selection import ParameterSelection


@pytest.fixture
def desk():
    return ProductCatalog(
        product_id=1,
        name="Desk",
        base_price=Decimal("100000"),
        groups=[
            CatalogGroup(
                join_id=10,
                group_id=1,
                name="Size",
                default_parameter_id=5,
                parameters=[
                    CatalogParameter(5, 1, "Small", Decimal("0")),
                    CatalogParameter(6, 1, "Large", Decimal("20000")),
                ],
            ),
            CatalogGroup(
                join_id=11,
                group_id=2,
                name="Color",
                parameters=[CatalogParameter(7, 2, "Oak", Decimal("-5000"))],
            ),
        ],
    )


# selection
def test_selection_accepts_valid_choices(desk):
    sel = ParameterSelection.for_product(desk, {"1": 6, 2: "7"})
    assert dict(sel) == {1: 6, 2: 7}
    assert sel.to_json() == {"1": 6, "2": 7}


def test_selection_rejects_unknown_group(desk):
    with pytest.raises(ValidationError, match="no parameter group 9"):
        ParameterSelection.for_product(desk, {9: 6})


def test_selection_rejects_parameter_of_other_group(desk):
    with pytest.raises(ValidationError, match="does not belong"):
        ParameterSelection.for_product(desk, {1: 7})


def test_selection_rejects_non_integer_entries(desk):
    with pytest.raises(ValidationError):
        ParameterSelection.for_product(desk, {"size": "large"})


def test_default_selection_skips_groups_without_default(desk):
    assert dict(ParameterSelection.defaults_for(desk)) == {1: 5}


# identity
def test_identity_needs_exactly_one_owner():
    with pytest.raises(ValidationError):
        Identity()
    with pytest.raises(ValidationError):
        Identity(user_id=1, session_id="abc")
    with pytest.raises(ValidationError):
        Identity(session_id="   ")


def test_identity_of_prefers_user():
    identity = Identity.of(user_id=3, session_id="guest-1")
    assert identity.user_id == 3
    assert identity.session_id is None


# attribution
def test_actor_columns_set_at_most_one_id():
    assert actor_columns(AdminActor(7)) == {"admin_id": 7, "user_id": None}
    assert actor_columns(UserActor(3)) == {"admin_id": None, "user_id": 3}
    assert actor_columns(SYSTEM) == {"admin_id": None, "user_id": None}


def test_actor_from_columns_round_trip_and_conflict():
    assert actor_from_columns(7, None) == AdminActor(7)
    assert actor_from_columns(None, 3) == UserActor(3)
    assert actor_from_columns(None, None) is SYSTEM
    with pytest.raises(ValueError):
        actor_from_columns(1, 2)


# order status
def test_status_parse():
    assert OrderStatus.parse("Shipped") is OrderStatus.SHIPPED
    with pytest.raises(ValidationError):
        OrderStatus.parse("lost")


def test_any_transition_allowed_when_not_strict():
    check_transition(OrderStatus.COMPLETED, OrderStatus.PENDING, strict=False)


@pytest.mark.parametrize(
    "current, new",
    [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.COMPLETED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    ],
)
def test_strict_transitions_allowed(current, new):
    check_transition(current, new, strict=True)


@pytest.mark.parametrize(
    "current, new",
    [
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
    ],
)
def test_strict_transitions_rejected(current, new):
    with pytest.raises(StateConflictError):
        check_transition(current, new, strict=True)
