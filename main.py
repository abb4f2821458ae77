import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import payments
import policy
from auth import get_token_email
from database import (
    close_db,
    create_document,
    delete_result,
    get_db,
    get_documents,
    init_db,
    serialize_doc,
    to_object_id,
    update_result,
)
from schemas import ORDER_DELIVERED, Favorite, Payment, Review

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging():
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(config.LOG_LEVEL)


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_db()


app = FastAPI(title="LocalChefBazaar API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------- Request bodies ----------------------
class UserBody(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    photo: Optional[str] = None


class RoleRequestBody(BaseModel):
    userId: str
    userName: Optional[str] = None
    userEmail: EmailStr
    requestType: Literal['chef', 'admin']


class ResolveRequestBody(BaseModel):
    status: Literal['approved', 'rejected']


class MealBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    foodName: str
    price: float = Field(..., ge=0)
    rating: float = Field(0, ge=0, le=5)


class MealUpdateBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    foodName: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)


class OrderBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    userEmail: EmailStr
    chefId: str


class OrderStatusBody(BaseModel):
    orderStatus: str = Field(..., min_length=1)


class ReviewBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    foodId: str
    reviewerEmail: EmailStr
    rating: float = Field(..., ge=0, le=5)
    comment: Optional[str] = None


class FavoriteBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    userEmail: EmailStr
    mealId: str


class PaymentBody(BaseModel):
    model_config = ConfigDict(extra='allow')

    amount: float = Field(..., ge=0)


class PaymentIntentBody(BaseModel):
    price: float = Field(..., gt=0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _page_number(raw: Optional[str]) -> int:
    # junk or missing page falls back to the first page
    try:
        return max(int(raw), 1)
    except (TypeError, ValueError):
        return 1


def _payload(body: BaseModel) -> Dict[str, Any]:
    # extra keys must not smuggle in a Mongo _id
    data = body.model_dump(exclude_unset=True)
    data.pop("_id", None)
    return data


# ---------------------- Users ----------------------
@app.post("/users")
def create_user(body: UserBody, db: Database = Depends(get_db)):
    return policy.create_user(db, body.name, body.email, body.photo)


@app.get("/users")
def list_users(db: Database = Depends(get_db)):
    return get_documents(db, "users")


@app.get("/users/{email}")
def get_user(email: str, db: Database = Depends(get_db)):
    user = db["users"].find_one({"email": email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_doc(user)


@app.patch("/users/fraud/{user_id}")
def mark_user_fraud(user_id: str, db: Database = Depends(get_db)):
    return policy.mark_fraud(db, user_id)


# ---------------------- Role requests ----------------------
@app.post("/requests")
def submit_request(body: RoleRequestBody, db: Database = Depends(get_db)):
    return policy.submit_request(db, body.userId, body.userName, body.userEmail, body.requestType)


@app.get("/requests")
def list_requests(db: Database = Depends(get_db)):
    return get_documents(db, "requests", sort=[("requestTime", -1)])


@app.patch("/requests/{request_id}")
def resolve_request(request_id: str, body: ResolveRequestBody, db: Database = Depends(get_db)):
    return policy.resolve_request(db, request_id, body.status)


# ---------------------- Meals ----------------------
@app.post("/meals")
def create_meal(body: MealBody, email: str = Depends(get_token_email), db: Database = Depends(get_db)):
    return policy.create_meal(db, email, _payload(body))


@app.get("/meals")
def list_meals(
    search: Optional[str] = None,
    rating: Optional[str] = None,
    price: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[str] = None,
    db: Database = Depends(get_db),
):
    return policy.list_meals(db, search=search, rating=rating, price=price, sort=sort, page=_page_number(page))


@app.get("/meals/chef/{chef_email}")
def list_chef_meals(chef_email: str, email: str = Depends(get_token_email), db: Database = Depends(get_db)):
    return policy.list_meals_by_chef(db, email, chef_email)


@app.get("/meals/{meal_id}")
def get_meal(meal_id: str, db: Database = Depends(get_db)):
    meal = db["meals"].find_one({"_id": to_object_id(meal_id)})
    if not meal:
        raise HTTPException(status_code=404, detail="Meal not found")
    return serialize_doc(meal)


@app.patch("/meals/{meal_id}")
def update_meal(
    meal_id: str,
    body: MealUpdateBody,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
):
    # authenticated only; ownership is not checked
    data = {k: v for k, v in _payload(body).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="Nothing to update")
    result = db["meals"].update_one({"_id": to_object_id(meal_id)}, {"$set": data})
    logger.info("%s updated meal %s", email, meal_id)
    return update_result(result)


@app.delete("/meals/{meal_id}")
def delete_meal(meal_id: str, email: str = Depends(get_token_email), db: Database = Depends(get_db)):
    result = db["meals"].delete_one({"_id": to_object_id(meal_id)})
    logger.info("%s deleted meal %s", email, meal_id)
    return delete_result(result)


# ---------------------- Reviews ----------------------
@app.post("/reviews")
def create_review(body: ReviewBody, db: Database = Depends(get_db)):
    review = Review(**{**_payload(body), "date": _now()})
    return {"insertedId": create_document(db, "reviews", review)}


@app.get("/reviews")
def list_reviews(db: Database = Depends(get_db)):
    return get_documents(db, "reviews")


@app.get("/reviews/{food_id}")
def list_meal_reviews(food_id: str, db: Database = Depends(get_db)):
    return get_documents(db, "reviews", {"foodId": food_id}, sort=[("date", -1)])


@app.get("/my-reviews/{email}")
def list_my_reviews(email: str, db: Database = Depends(get_db)):
    return get_documents(db, "reviews", {"reviewerEmail": email})


@app.patch("/reviews/{review_id}")
def update_review(review_id: str, body: Dict[str, Any], db: Database = Depends(get_db)):
    body.pop("_id", None)
    if not body:
        raise HTTPException(status_code=400, detail="Nothing to update")
    result = db["reviews"].update_one({"_id": to_object_id(review_id)}, {"$set": body})
    return update_result(result)


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Database = Depends(get_db)):
    return delete_result(db["reviews"].delete_one({"_id": to_object_id(review_id)}))


# ---------------------- Orders ----------------------
@app.post("/orders")
def create_order(body: OrderBody, db: Database = Depends(get_db)):
    return policy.create_order(db, _payload(body))


@app.get("/orders/chef/{chef_id}")
def list_chef_orders(chef_id: str, db: Database = Depends(get_db)):
    return get_documents(db, "orders", {"chefId": chef_id}, sort=[("orderTime", -1)])


@app.get("/orders/{email}")
def list_user_orders(email: str, db: Database = Depends(get_db)):
    return get_documents(db, "orders", {"userEmail": email}, sort=[("orderTime", -1)])


@app.patch("/orders/status/{order_id}")
def update_order_status(order_id: str, body: OrderStatusBody, db: Database = Depends(get_db)):
    return policy.set_fulfillment_status(db, order_id, body.orderStatus)


@app.patch("/orders/payment/{order_id}")
def mark_order_paid(order_id: str, db: Database = Depends(get_db)):
    return policy.mark_paid(db, order_id)


@app.get("/order/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    order = db["orders"].find_one({"_id": to_object_id(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_doc(order)


# ---------------------- Payments ----------------------
@app.post("/payments")
def record_payment(body: PaymentBody, db: Database = Depends(get_db)):
    payment = Payment(**{**_payload(body), "paidAt": _now()})
    return {"insertedId": create_document(db, "payments", payment)}


@app.post("/create-payment-intent")
def create_payment_intent(body: PaymentIntentBody):
    return {"clientSecret": payments.create_payment_intent(body.price)}


# ---------------------- Favorites ----------------------
@app.post("/favorites")
def add_favorite(body: FavoriteBody, db: Database = Depends(get_db)):
    if db["favorites"].find_one({"userEmail": body.userEmail, "mealId": body.mealId}):
        return {"message": "Already added"}
    favorite = Favorite(**{**_payload(body), "addedTime": _now()})
    return {"insertedId": create_document(db, "favorites", favorite)}


@app.get("/favorites/{email}")
def list_favorites(email: str, db: Database = Depends(get_db)):
    return get_documents(db, "favorites", {"userEmail": email})


@app.delete("/favorites/{favorite_id}")
def delete_favorite(favorite_id: str, db: Database = Depends(get_db)):
    return delete_result(db["favorites"].delete_one({"_id": to_object_id(favorite_id)}))


# ---------------------- Admin ----------------------
@app.get("/admin/stats")
def admin_stats(db: Database = Depends(get_db)):
    orders = db["orders"]
    total_payment = sum(p.get("amount") or 0 for p in db["payments"].find({}, {"amount": 1}))
    return {
        "totalUsers": db["users"].count_documents({}),
        "pendingOrders": orders.count_documents({"orderStatus": {"$ne": ORDER_DELIVERED}}),
        "deliveredOrders": orders.count_documents({"orderStatus": ORDER_DELIVERED}),
        "totalPaymentAmount": total_payment,
    }


# ---------------------- Misc ----------------------
@app.get("/")
def read_root():
    return {"message": "Hello from Server.."}


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": _now().isoformat()}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "collections": [],
    }
    try:
        db = init_db()
    except PyMongoError as e:
        response["database"] = f"❌ Not Available: {str(e)[:80]}"
        return response
    response["database_name"] = db.name
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
