"""
Database Schemas for LocalChefBazaar

Each Pydantic model maps to a MongoDB collection
- User -> users
- RoleRequest -> requests
- Meal -> meals
- Order -> orders
- Review -> reviews
- Favorite -> favorites
- Payment -> payments

Listing, order, review, favorite and payment documents carry free-form fields
from the client, so those models allow extra keys.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal['user', 'chef', 'admin']
UserStatus = Literal['active', 'fraud']
RequestType = Literal['chef', 'admin']
RequestStatus = Literal['pending', 'approved', 'rejected']
PaymentStatus = Literal['pending', 'paid']

# orderStatus is an open string; these are the values the API itself writes or counts
ORDER_PENDING = 'pending'
ORDER_ACCEPTED = 'accepted'
ORDER_DELIVERED = 'delivered'


class User(BaseModel):
    """Marketplace account, keyed by email
    chefId is assigned once, when a chef request is approved
    """
    name: Optional[str] = Field(None, description="Display name")
    email: EmailStr = Field(..., description="Email address")
    photo: Optional[str] = Field(None, description="Photo URL")
    role: Role = 'user'
    status: UserStatus = 'active'
    chefId: Optional[str] = Field(None, pattern=r"^chef-\d{4}$")
    createdAt: datetime


class RoleRequest(BaseModel):
    userId: str
    userName: Optional[str] = None
    userEmail: EmailStr
    requestType: RequestType
    requestStatus: RequestStatus = 'pending'
    requestTime: datetime


class Meal(BaseModel):
    model_config = ConfigDict(extra='allow')

    foodName: str
    price: float = Field(..., ge=0)
    rating: float = Field(0, ge=0, le=5)
    chefEmail: EmailStr
    chefName: Optional[str] = None
    chefId: Optional[str] = None
    createdAt: datetime


class Order(BaseModel):
    model_config = ConfigDict(extra='allow')

    userEmail: EmailStr
    chefId: str
    paymentStatus: PaymentStatus = 'pending'
    orderStatus: str = ORDER_PENDING
    orderTime: datetime
    paidAt: Optional[datetime] = None


class Review(BaseModel):
    model_config = ConfigDict(extra='allow')

    foodId: str
    reviewerEmail: EmailStr
    reviewerName: Optional[str] = None
    rating: float = Field(..., ge=0, le=5)
    comment: Optional[str] = None
    date: datetime


class Favorite(BaseModel):
    model_config = ConfigDict(extra='allow')

    userEmail: EmailStr
    mealId: str
    addedTime: datetime


class Payment(BaseModel):
    model_config = ConfigDict(extra='allow')

    amount: float = Field(..., ge=0)
    paidAt: datetime
