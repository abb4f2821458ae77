"""
Authorization and lifecycle rules

Every function takes the database handle explicitly and raises HTTPException
with the status the API returns: 404 for a missing document, 403 for a
role/status/ownership mismatch.
"""

import logging
import math
import random
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException
from pymongo.database import Database

from database import create_document, serialize_doc, to_object_id, update_result
from schemas import (
    ORDER_ACCEPTED,
    ORDER_PENDING,
    Meal,
    Order,
    RoleRequest,
    User,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
PRICE_BRACKETS = {
    "low": {"$lt": 20},
    "medium": {"$gte": 20, "$lte": 50},
    "high": {"$gt": 50},
}
SORT_OPTIONS = {
    "price-asc": ("price", 1),
    "price-dsc": ("price", -1),
    "rating-dsc": ("rating", -1),
}
CHEF_ID_ATTEMPTS = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------- Identity & roles ----------------------
def authorize(
    db: Database,
    email: str,
    required_role: Optional[str] = None,
    forbidden_status: Optional[str] = None,
    action: str = "perform this action",
) -> Dict[str, Any]:
    user = db["users"].find_one({"email": email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if required_role and user.get("role") != required_role:
        logger.warning("%s (role=%s) tried to %s", email, user.get("role"), action)
        raise HTTPException(status_code=403, detail=f"Only {required_role}s can {action}")
    if forbidden_status and user.get("status") == forbidden_status:
        logger.warning("%s (status=%s) tried to %s", email, forbidden_status, action)
        who = f"{required_role}s" if required_role else "users"
        raise HTTPException(status_code=403, detail=f"{forbidden_status.capitalize()} {who} cannot {action}")
    return user


def create_user(db: Database, name: Optional[str], email: str, photo: Optional[str] = None) -> Dict[str, Any]:
    if db["users"].find_one({"email": email}):
        return {"message": "User already exists"}
    user = User(name=name, email=email, photo=photo, createdAt=_now())
    uid = create_document(db, "users", user)
    logger.info("Created user %s", email)
    return {"insertedId": uid}


def mark_fraud(db: Database, user_id: str) -> Dict[str, int]:
    result = db["users"].update_one({"_id": to_object_id(user_id)}, {"$set": {"status": "fraud"}})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Marked user %s as fraud", user_id)
    return update_result(result)


# ---------------------- Listings ----------------------
def create_meal(db: Database, caller_email: str, payload: Dict[str, Any]) -> Dict[str, str]:
    chef = authorize(db, caller_email, required_role="chef", forbidden_status="fraud", action="create meals")
    meal = Meal(
        **{
            **payload,
            "chefEmail": chef["email"],
            "chefName": chef.get("name"),
            "chefId": chef.get("chefId"),
            "createdAt": _now(),
        }
    )
    mid = create_document(db, "meals", meal)
    logger.info("Chef %s created meal %s", caller_email, mid)
    return {"insertedId": mid}


def build_meal_query(
    search: Optional[str] = None,
    rating: Optional[str] = None,
    price: Optional[str] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"foodName": {"$regex": pattern, "$options": "i"}},
            {"chefName": {"$regex": pattern, "$options": "i"}},
        ]
    if rating and rating != "all":
        try:
            query["rating"] = {"$gte": float(rating)}
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid rating filter")
    if price and price in PRICE_BRACKETS:
        query["price"] = dict(PRICE_BRACKETS[price])
    return query


def list_meals(
    db: Database,
    search: Optional[str] = None,
    rating: Optional[str] = None,
    price: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
) -> Dict[str, Any]:
    page = max(page, 1)
    query = build_meal_query(search, rating, price)

    cursor = db["meals"].find(query)
    if sort in SORT_OPTIONS:
        cursor = cursor.sort([SORT_OPTIONS[sort]])
    cursor = cursor.skip((page - 1) * PAGE_SIZE).limit(PAGE_SIZE)

    meals = [serialize_doc(m) for m in cursor]
    total = db["meals"].count_documents(query)
    return {
        "meals": meals,
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / PAGE_SIZE),
    }


def list_meals_by_chef(db: Database, caller_email: str, target_email: str):
    if caller_email != target_email:
        logger.warning("%s requested meals of %s", caller_email, target_email)
        raise HTTPException(status_code=403, detail="Forbidden access")
    return [serialize_doc(m) for m in db["meals"].find({"chefEmail": target_email})]


# ---------------------- Orders ----------------------
def create_order(db: Database, payload: Dict[str, Any]) -> Dict[str, str]:
    user = db["users"].find_one({"email": payload.get("userEmail")})
    if user and user.get("status") == "fraud":
        logger.warning("Blocked order from fraud user %s", user["email"])
        raise HTTPException(status_code=403, detail="Fraud users cannot place orders")
    payload = {k: v for k, v in payload.items() if k != "paidAt"}
    order = Order(
        **{
            **payload,
            "paymentStatus": "pending",
            "orderStatus": ORDER_PENDING,
            "orderTime": _now(),
        }
    )
    oid = create_document(db, "orders", order)
    return {"insertedId": oid}


def _update_order(db: Database, order_id: str, fields: Dict[str, Any]) -> Dict[str, int]:
    result = db["orders"].update_one({"_id": to_object_id(order_id)}, {"$set": fields})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    return update_result(result)


def set_fulfillment_status(db: Database, order_id: str, status: str) -> Dict[str, int]:
    # no transition table: any status may follow any other
    return _update_order(db, order_id, {"orderStatus": status})


def mark_paid(db: Database, order_id: str) -> Dict[str, int]:
    result = _update_order(
        db,
        order_id,
        {"paymentStatus": "paid", "orderStatus": ORDER_ACCEPTED, "paidAt": _now()},
    )
    logger.info("Order %s marked paid", order_id)
    return result


# ---------------------- Role requests ----------------------
def submit_request(
    db: Database,
    user_id: str,
    name: Optional[str],
    email: str,
    request_type: str,
) -> Dict[str, str]:
    pending = db["requests"].find_one(
        {"userEmail": email, "requestType": request_type, "requestStatus": "pending"}
    )
    if pending:
        raise HTTPException(status_code=400, detail="You already sent this request")
    request = RoleRequest(
        userId=user_id,
        userName=name,
        userEmail=email,
        requestType=request_type,
        requestTime=_now(),
    )
    rid = create_document(db, "requests", request)
    logger.info("%s requested %s role", email, request_type)
    return {"insertedId": rid}


def generate_chef_id(db: Database) -> str:
    """Random chef-NNNN id, retried a few times to dodge ids already in use."""
    chef_id = f"chef-{random.randint(1000, 9999)}"
    for _ in range(CHEF_ID_ATTEMPTS - 1):
        if not db["users"].find_one({"chefId": chef_id}):
            break
        chef_id = f"chef-{random.randint(1000, 9999)}"
    return chef_id


def resolve_request(db: Database, request_id: str, status: str) -> Dict[str, bool]:
    _id = to_object_id(request_id)
    request = db["requests"].find_one({"_id": _id})
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")

    if status == "approved":
        email = request["userEmail"]
        update: Dict[str, Any] = {"role": request["requestType"]}
        if request["requestType"] == "chef":
            user = db["users"].find_one({"email": email}) or {}
            if not user.get("chefId"):
                update["chefId"] = generate_chef_id(db)
                logger.info("Assigned %s to %s", update["chefId"], email)
        result = db["users"].update_one({"email": email}, {"$set": update})
        if result.matched_count == 0:
            logger.warning("Approved request %s for unknown user %s", request_id, email)

    # not atomic with the user update above
    db["requests"].update_one({"_id": _id}, {"$set": {"requestStatus": status}})
    logger.info("Request %s resolved as %s", request_id, status)
    return {"success": True}
