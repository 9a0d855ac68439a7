from decimal import Decimal

import pytest

from storefront.data.models import CartItemModel, CartModel
from storefront.domain.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from storefront.domain.identity import Identity
from storefront.services.cart_service import CartService

USER = Identity(user_id=1)
GUEST = Identity(session_id="guest-abc")


@pytest.fixture
def svc(db, locks):
    return CartService(db, locks)


def _lines(db, cart_id):
    return db.query(CartItemModel).filter(CartItemModel.cart_id == cart_id).order_by(CartItemModel.id).all()


def test_get_or_create_returns_same_active_cart(svc):
    first = svc.get_or_create_cart(USER)
    second = svc.get_or_create_cart(USER)
    guest = svc.get_or_create_cart(GUEST)

    assert first.id == second.id
    assert guest.id != first.id
    assert guest.session_id == "guest-abc" and guest.user_id is None
    assert first.status == "active"


def test_add_item_prices_selection(svc, seed):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_item(cart.id, seed.desk, 3, {seed.size: seed.large}, identity=USER)

    assert len(view["items"]) == 1
    line = view["items"][0]
    assert line["unit_price"] == Decimal("120000")
    assert line["line_total"] == Decimal("360000")
    assert view["total"] == Decimal("360000")
    assert svc.cart_total(cart.id) == Decimal("360000")


def test_identical_adds_stay_separate_lines(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    svc.add_item(cart.id, seed.chair, 1, {})
    svc.add_item(cart.id, seed.chair, 1, {})

    assert len(_lines(db, cart.id)) == 2
    assert svc.cart_total(cart.id) == Decimal("60000")


def test_add_item_without_selection_uses_defaults(svc, seed):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_item(cart.id, seed.desk, 1)

    assert view["items"][0]["selected_parameters"] == {str(seed.size): seed.small}
    assert view["total"] == Decimal("100000")


def test_add_item_bumps_version(svc, seed):
    cart = svc.get_or_create_cart(USER)
    assert cart.version == 1
    view = svc.add_item(cart.id, seed.chair, 1, {})
    assert view["version"] == 2


@pytest.mark.parametrize("quantity", [0, -1])
def test_add_item_rejects_bad_quantity(svc, seed, db, quantity):
    cart = svc.get_or_create_cart(USER)
    with pytest.raises(ValidationError):
        svc.add_item(cart.id, seed.chair, quantity, {})
    assert _lines(db, cart.id) == []


def test_add_item_rejects_foreign_parameter(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    with pytest.raises(ValidationError):
        svc.add_item(cart.id, seed.desk, 1, {seed.size: seed.oak})
    assert _lines(db, cart.id) == []


def test_add_item_unknown_or_inactive_product(svc, seed):
    cart = svc.get_or_create_cart(USER)
    with pytest.raises(NotFoundError):
        svc.add_item(cart.id, 999, 1, {})
    with pytest.raises(StateConflictError):
        svc.add_item(cart.id, seed.shelf, 1, {})


def test_unknown_cart_is_not_found(svc, seed):
    with pytest.raises(NotFoundError):
        svc.add_item(12345, seed.chair, 1, {})
    with pytest.raises(NotFoundError):
        svc.cart_total(12345)


def test_other_owner_is_refused(svc, seed):
    cart = svc.get_or_create_cart(USER)
    with pytest.raises(PermissionError):
        svc.add_item(cart.id, seed.chair, 1, {}, identity=GUEST)


def test_update_item_quantity_and_selection(svc, seed):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_item(cart.id, seed.desk, 1, {seed.size: seed.small})
    line_id = view["items"][0]["id"]

    view = svc.update_item(line_id, quantity=2)
    assert view["total"] == Decimal("200000")

    view = svc.update_item(line_id, selection={seed.size: seed.large, seed.color: seed.black})
    assert view["items"][0]["unit_price"] == Decimal("125000")
    assert view["total"] == Decimal("250000")


def test_update_item_rejects_zero_quantity(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    line_id = svc.add_item(cart.id, seed.chair, 2, {})["items"][0]["id"]

    with pytest.raises(ValidationError):
        svc.update_item(line_id, quantity=0)
    assert _lines(db, cart.id)[0].quantity == 2


def test_update_unknown_line(svc, seed):
    with pytest.raises(NotFoundError):
        svc.update_item(777, quantity=1)


def test_remove_item(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_item(cart.id, seed.chair, 1, {})
    svc.add_item(cart.id, seed.lamp, 1, {})

    view = svc.remove_item(view["items"][0]["id"])
    assert [i["product_id"] for i in view["items"]] == [seed.lamp]
    with pytest.raises(NotFoundError):
        svc.remove_item(9999)


def test_add_bundle_inserts_one_line_per_item(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_bundle(cart.id, seed.bundle)

    lines = _lines(db, cart.id)
    assert len(lines) == 2
    assert {l.special_id for l in lines} == {seed.bundle}
    assert lines[0].selected_parameters == {"1": seed.large}
    assert [l.quantity for l in lines] == [1, 2]

    # priced line by line from the fixed selections, not the discounted price
    assert view["total"] == Decimal("180000")
    assert view["bundles"] == [
        {
            "special_id": seed.bundle,
            "name": "Office set",
            "discounted_price": Decimal("150000"),
            "subtotal": Decimal("180000"),
        }
    ]


def test_add_bundle_is_all_or_nothing(svc, seed, db, monkeypatch):
    cart = svc.get_or_create_cart(USER)
    real_add = svc.repo.add_cart_item
    calls = []

    def failing_add(item):
        calls.append(item)
        if len(calls) == 2:
            raise RuntimeError("storage went away")
        return real_add(item)

    monkeypatch.setattr(svc.repo, "add_cart_item", failing_add)

    with pytest.raises(RuntimeError):
        svc.add_bundle(cart.id, seed.bundle)

    monkeypatch.undo()
    assert _lines(db, cart.id) == []
    assert db.get(CartModel, cart.id).version == 1


def test_add_bundle_twice_is_refused(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    svc.add_bundle(cart.id, seed.bundle)
    with pytest.raises(StateConflictError):
        svc.add_bundle(cart.id, seed.bundle)
    assert len(_lines(db, cart.id)) == 2


def test_add_bundle_unknown_or_inactive_special(svc, seed):
    cart = svc.get_or_create_cart(USER)
    with pytest.raises(NotFoundError):
        svc.add_bundle(cart.id, 404)
    with pytest.raises(StateConflictError):
        svc.add_bundle(cart.id, seed.retired)


def test_bundle_lines_cannot_be_removed_or_changed_alone(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    view = svc.add_bundle(cart.id, seed.bundle)
    line_id = view["items"][0]["id"]

    with pytest.raises(StateConflictError):
        svc.remove_item(line_id)
    with pytest.raises(StateConflictError):
        svc.update_item(line_id, selection={seed.size: seed.small})
    with pytest.raises(StateConflictError):
        svc.update_item(line_id, quantity=5)

    assert len(_lines(db, cart.id)) == 2
    assert _lines(db, cart.id)[0].selected_parameters == {"1": seed.large}


def test_remove_bundle_removes_every_bundle_line(svc, seed, db):
    cart = svc.get_or_create_cart(USER)
    svc.add_item(cart.id, seed.lamp, 1, {})
    svc.add_bundle(cart.id, seed.bundle)
    svc.add_bundle(cart.id, seed.duo)

    view = svc.remove_bundle(cart.id, seed.bundle)

    remaining = _lines(db, cart.id)
    assert all(l.special_id != seed.bundle for l in remaining)
    assert len(remaining) == 3
    assert view["total"] == Decimal("50000") + Decimal("80000")

    with pytest.raises(NotFoundError):
        svc.remove_bundle(cart.id, seed.bundle)


def test_busy_cart_is_a_concurrency_conflict(svc, seed, db, locks):
    cart = svc.get_or_create_cart(USER)
    locks.locks[cart.id] = "someone-else"

    with pytest.raises(ConcurrencyConflictError):
        svc.add_item(cart.id, seed.chair, 1, {})
    assert _lines(db, cart.id) == []
    assert locks.locks == {cart.id: "someone-else"}


def test_lock_released_after_write(svc, seed, locks):
    cart = svc.get_or_create_cart(USER)
    svc.add_item(cart.id, seed.chair, 1, {})
    assert locks.acquired == [cart.id]
    assert locks.locks == {}


def test_stale_version_is_a_concurrency_conflict(svc, seed, db, monkeypatch):
    cart = svc.get_or_create_cart(USER)
    monkeypatch.setattr(svc.repo, "update_cart_version", lambda **kwargs: 0)

    with pytest.raises(ConcurrencyConflictError):
        svc.add_item(cart.id, seed.chair, 1, {})

    monkeypatch.undo()
    assert _lines(db, cart.id) == []


def test_merge_guest_cart_into_existing_user_cart(svc, seed, db):
    guest_cart = svc.get_or_create_cart(GUEST)
    svc.add_item(guest_cart.id, seed.chair, 1, {})
    svc.add_item(guest_cart.id, seed.lamp, 2, {})
    user_cart = svc.get_or_create_cart(USER)
    svc.add_item(user_cart.id, seed.desk, 1, {seed.size: seed.large})

    view = svc.merge_guest_cart_into_user("guest-abc", USER.user_id)
    assert view["cart_id"] == user_cart.id
    assert len(view["items"]) == 3

    again = svc.merge_guest_cart_into_user("guest-abc", USER.user_id)
    assert len(again["items"]) == 3
    assert sorted(i["id"] for i in again["items"]) == sorted(i["id"] for i in view["items"])

    db.refresh(guest_cart)
    assert guest_cart.status == "merged"
    assert _lines(db, guest_cart.id) == []
    assert svc.cart_total(user_cart.id) == Decimal("120000") + Decimal("30000") + Decimal("100000")


def test_merge_creates_user_cart_when_missing(svc, seed, db):
    guest_cart = svc.get_or_create_cart(GUEST)
    svc.add_bundle(guest_cart.id, seed.duo)

    view = svc.merge_guest_cart_into_user("guest-abc", 42)

    assert view["user_id"] == 42
    assert view["cart_id"] != guest_cart.id
    assert {i["special_id"] for i in view["items"]} == {seed.duo}
    # a fresh guest cart can be started again with the same session
    assert svc.get_or_create_cart(GUEST).id != guest_cart.id


def test_merge_without_guest_cart_is_a_no_op(svc, seed):
    view = svc.merge_guest_cart_into_user("never-seen", 5)
    assert view["items"] == []
    assert view["user_id"] == 5


def test_merge_keeps_a_special_only_once(svc, seed, db):
    guest_cart = svc.get_or_create_cart(GUEST)
    svc.add_bundle(guest_cart.id, seed.duo)
    svc.add_item(guest_cart.id, seed.lamp, 1, {})
    user_cart = svc.get_or_create_cart(USER)
    svc.add_bundle(user_cart.id, seed.duo)
    user_duo_ids = sorted(l.id for l in _lines(db, user_cart.id))

    view = svc.merge_guest_cart_into_user("guest-abc", USER.user_id)

    duo_lines = [i for i in view["items"] if i["special_id"] == seed.duo]
    assert sorted(i["id"] for i in duo_lines) == user_duo_ids
    assert [i["product_id"] for i in view["items"] if i["special_id"] is None] == [seed.lamp]
    assert view["bundles"] == [
        {
            "special_id": seed.duo,
            "name": "Reading duo",
            "discounted_price": Decimal("60000"),
            "subtotal": Decimal("80000"),
        }
    ]

    db.refresh(guest_cart)
    assert guest_cart.status == "merged"
    assert _lines(db, guest_cart.id) == []

    # the bundle still comes out whole
    view = svc.remove_bundle(user_cart.id, seed.duo)
    assert [i["product_id"] for i in view["items"]] == [seed.lamp]
