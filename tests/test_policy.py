import math
import re

import pytest
from fastapi import HTTPException

import policy


def test_authorize_distinguishes_missing_user_from_wrong_role(db, add_user):
    add_user("eater@x.com")

    with pytest.raises(HTTPException) as missing:
        policy.authorize(db, "ghost@x.com", required_role="chef")
    assert missing.value.status_code == 404

    with pytest.raises(HTTPException) as wrong_role:
        policy.authorize(db, "eater@x.com", required_role="chef", action="create meals")
    assert wrong_role.value.status_code == 403
    assert wrong_role.value.detail == "Only chefs can create meals"


def test_authorize_rejects_forbidden_status(db, add_user):
    add_user("bad@x.com", role="chef", status="fraud")
    with pytest.raises(HTTPException) as exc:
        policy.authorize(db, "bad@x.com", required_role="chef", forbidden_status="fraud", action="create meals")
    assert exc.value.status_code == 403
    assert exc.value.detail == "Fraud chefs cannot create meals"


def test_authorize_returns_user(db, add_user):
    add_user("cook@x.com", role="chef", chef_id="chef-1234")
    user = policy.authorize(db, "cook@x.com", required_role="chef", forbidden_status="fraud")
    assert user["chefId"] == "chef-1234"


def test_create_user_is_idempotent(db):
    first = policy.create_user(db, "Ann", "ann@x.com")
    second = policy.create_user(db, "Ann again", "ann@x.com")

    assert "insertedId" in first
    assert second == {"message": "User already exists"}
    assert db["users"].count_documents({"email": "ann@x.com"}) == 1
    user = db["users"].find_one({"email": "ann@x.com"})
    assert user["role"] == "user"
    assert user["status"] == "active"
    assert "chefId" not in user


def test_create_meal_stamps_chef_fields(db, add_user):
    add_user("cook@x.com", role="chef", name="Cook", chef_id="chef-4321")
    res = policy.create_meal(db, "cook@x.com", {"foodName": "Biryani", "price": 12, "ingredients": ["rice"]})

    meal = db["meals"].find_one()
    assert str(meal["_id"]) == res["insertedId"]
    assert meal["chefEmail"] == "cook@x.com"
    assert meal["chefName"] == "Cook"
    assert meal["chefId"] == "chef-4321"
    assert meal["ingredients"] == ["rice"]
    assert meal["createdAt"] is not None


def test_create_meal_ignores_client_supplied_chef_fields(db, add_user):
    add_user("cook@x.com", role="chef", chef_id="chef-4321")
    policy.create_meal(db, "cook@x.com", {"foodName": "Soup", "price": 5, "chefEmail": "other@x.com"})
    assert db["meals"].find_one()["chefEmail"] == "cook@x.com"


@pytest.mark.parametrize("role,status", [("chef", "fraud"), ("user", "active"), ("admin", "active")])
def test_create_meal_forbidden(db, add_user, role, status):
    add_user("someone@x.com", role=role, status=status)
    with pytest.raises(HTTPException) as exc:
        policy.create_meal(db, "someone@x.com", {"foodName": "Soup", "price": 5})
    assert exc.value.status_code == 403
    assert db["meals"].count_documents({}) == 0


def _seed_meals(db):
    meals = [
        {"foodName": "Dal", "chefName": "Asha", "price": 8, "rating": 4.5},
        {"foodName": "Paneer Tikka", "chefName": "Ravi", "price": 20, "rating": 3.0},
        {"foodName": "Fish Curry", "chefName": "Asha", "price": 35, "rating": 4.8},
        {"foodName": "Lamb Roast", "chefName": "Tom", "price": 50, "rating": 2.5},
        {"foodName": "Lobster", "chefName": "Tom", "price": 75, "rating": 5.0},
    ]
    db["meals"].insert_many(meals)


@pytest.mark.parametrize(
    "bracket,expected",
    [
        ("low", {"Dal"}),
        ("medium", {"Paneer Tikka", "Fish Curry", "Lamb Roast"}),
        ("high", {"Lobster"}),
        ("all", {"Dal", "Paneer Tikka", "Fish Curry", "Lamb Roast", "Lobster"}),
    ],
)
def test_list_meals_price_brackets(db, bracket, expected):
    _seed_meals(db)
    res = policy.list_meals(db, price=bracket)
    assert {m["foodName"] for m in res["meals"]} == expected


def test_list_meals_filters_combine(db):
    _seed_meals(db)
    res = policy.list_meals(db, search="asha", rating="4.6", price="medium")
    assert [m["foodName"] for m in res["meals"]] == ["Fish Curry"]
    assert res["total"] == 1


def test_list_meals_search_is_literal_substring(db):
    db["meals"].insert_many([
        {"foodName": "Mac (cheese)", "chefName": "A", "price": 9, "rating": 4},
        {"foodName": "Mac cheese", "chefName": "B", "price": 9, "rating": 4},
    ])
    res = policy.list_meals(db, search="(CHEESE)")
    assert [m["foodName"] for m in res["meals"]] == ["Mac (cheese)"]


def test_list_meals_sorting(db):
    _seed_meals(db)
    asc = [m["price"] for m in policy.list_meals(db, sort="price-asc")["meals"]]
    dsc = [m["price"] for m in policy.list_meals(db, sort="price-dsc")["meals"]]
    ratings = [m["rating"] for m in policy.list_meals(db, sort="rating-dsc")["meals"]]
    assert asc == sorted(asc)
    assert dsc == sorted(dsc, reverse=True)
    assert ratings == sorted(ratings, reverse=True)


def test_list_meals_pagination(db):
    db["meals"].insert_many([{"foodName": f"Meal {i:02d}", "price": i, "rating": 3} for i in range(23)])

    first = policy.list_meals(db, sort="price-asc", page=1)
    third = policy.list_meals(db, sort="price-asc", page=3)
    beyond = policy.list_meals(db, sort="price-asc", page=4)

    assert first["totalPages"] == math.ceil(23 / 10) == 3
    assert [m["price"] for m in first["meals"]] == list(range(10))
    assert [m["price"] for m in third["meals"]] == [20, 21, 22]
    assert beyond["meals"] == []
    assert policy.list_meals(db, page=0)["page"] == 1


def test_list_meals_rejects_bad_rating(db):
    with pytest.raises(HTTPException) as exc:
        policy.list_meals(db, rating="five")
    assert exc.value.status_code == 400


def test_list_meals_by_chef_requires_self(db):
    db["meals"].insert_one({"foodName": "Dal", "chefEmail": "cook@x.com", "price": 5})
    assert len(policy.list_meals_by_chef(db, "cook@x.com", "cook@x.com")) == 1
    with pytest.raises(HTTPException) as exc:
        policy.list_meals_by_chef(db, "spy@x.com", "cook@x.com")
    assert exc.value.status_code == 403


def test_create_order_sets_pending_states(db, add_user):
    add_user("eater@x.com")
    res = policy.create_order(db, {"userEmail": "eater@x.com", "chefId": "chef-1111", "orderStatus": "delivered"})
    order = db["orders"].find_one()
    assert str(order["_id"]) == res["insertedId"]
    assert order["paymentStatus"] == "pending"
    assert order["orderStatus"] == "pending"
    assert order["orderTime"] is not None


def test_create_order_blocked_for_fraud_user(db, add_user):
    add_user("bad@x.com", status="fraud")
    with pytest.raises(HTTPException) as exc:
        policy.create_order(db, {"userEmail": "bad@x.com", "chefId": "chef-1111"})
    assert exc.value.status_code == 403
    assert exc.value.detail == "Fraud users cannot place orders"
    assert db["orders"].count_documents({}) == 0


def test_order_status_transitions_are_permissive(db):
    oid = str(db["orders"].insert_one({"orderStatus": "delivered", "paymentStatus": "pending"}).inserted_id)
    policy.set_fulfillment_status(db, oid, "pending")
    assert db["orders"].find_one()["orderStatus"] == "pending"


@pytest.mark.parametrize("prior", ["pending", "cancelled", "delivered"])
def test_mark_paid_from_any_state(db, prior):
    oid = str(db["orders"].insert_one({"orderStatus": prior, "paymentStatus": "pending"}).inserted_id)
    policy.mark_paid(db, oid)
    order = db["orders"].find_one()
    assert order["paymentStatus"] == "paid"
    assert order["orderStatus"] == "accepted"
    assert order["paidAt"] is not None


def test_order_updates_missing_or_malformed_id(db):
    with pytest.raises(HTTPException) as missing:
        policy.mark_paid(db, "0" * 24)
    assert missing.value.status_code == 404
    with pytest.raises(HTTPException) as bad:
        policy.set_fulfillment_status(db, "not-an-id", "accepted")
    assert bad.value.status_code == 400


def test_duplicate_pending_request_rejected(db):
    policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")
    with pytest.raises(HTTPException) as exc:
        policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")
    assert exc.value.status_code == 400
    assert db["requests"].count_documents(
        {"userEmail": "a@x.com", "requestType": "chef", "requestStatus": "pending"}
    ) == 1

    # a different type is a separate request
    policy.submit_request(db, "u1", "Ann", "a@x.com", "admin")
    assert db["requests"].count_documents({}) == 2


def test_request_can_be_resubmitted_after_resolution(db):
    rid = policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")["insertedId"]
    policy.resolve_request(db, rid, "rejected")
    policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")
    assert db["requests"].count_documents({"requestStatus": "pending"}) == 1


def test_approve_chef_request_assigns_chef_id(db, add_user):
    add_user("a@x.com")
    rid = policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")["insertedId"]

    assert policy.resolve_request(db, rid, "approved") == {"success": True}

    user = db["users"].find_one({"email": "a@x.com"})
    assert user["role"] == "chef"
    assert re.fullmatch(r"chef-\d{4}", user["chefId"])
    assert db["requests"].find_one()["requestStatus"] == "approved"


def test_approving_again_keeps_existing_chef_id(db, add_user):
    add_user("a@x.com", role="chef", chef_id="chef-2024")
    rid = policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")["insertedId"]
    policy.resolve_request(db, rid, "approved")
    assert db["users"].find_one({"email": "a@x.com"})["chefId"] == "chef-2024"


def test_approve_admin_request_sets_role_only(db, add_user):
    add_user("a@x.com")
    rid = policy.submit_request(db, "u1", "Ann", "a@x.com", "admin")["insertedId"]
    policy.resolve_request(db, rid, "approved")
    user = db["users"].find_one({"email": "a@x.com"})
    assert user["role"] == "admin"
    assert "chefId" not in user


def test_reject_leaves_user_untouched(db, add_user):
    add_user("a@x.com")
    rid = policy.submit_request(db, "u1", "Ann", "a@x.com", "chef")["insertedId"]
    policy.resolve_request(db, rid, "rejected")
    assert db["users"].find_one({"email": "a@x.com"})["role"] == "user"
    assert db["requests"].find_one()["requestStatus"] == "rejected"


def test_resolve_missing_request(db):
    with pytest.raises(HTTPException) as exc:
        policy.resolve_request(db, "0" * 24, "approved")
    assert exc.value.status_code == 404


def test_generate_chef_id_skips_taken_ids(db, add_user, monkeypatch):
    add_user("taken@x.com", role="chef", chef_id="chef-1000")
    picks = iter([1000, 1000, 4242])
    monkeypatch.setattr(policy.random, "randint", lambda a, b: next(picks))
    assert policy.generate_chef_id(db) == "chef-4242"


def test_mark_fraud(db, add_user):
    user = add_user("bad@x.com")
    policy.mark_fraud(db, str(user["_id"]))
    assert db["users"].find_one()["status"] == "fraud"
    with pytest.raises(HTTPException) as exc:
        policy.mark_fraud(db, "0" * 24)
    assert exc.value.status_code == 404
