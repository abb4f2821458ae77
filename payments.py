import logging

import stripe
from fastapi import HTTPException

import config

logger = logging.getLogger(__name__)


def create_payment_intent(price: float) -> str:
    """Create a Stripe PaymentIntent for `price` dollars and return its client secret."""
    if not config.STRIPE_SECRET_KEY:
        raise HTTPException(status_code=500, detail="Payment provider not configured")
    try:
        intent = stripe.PaymentIntent.create(
            amount=round(price * 100),
            currency=config.PAYMENT_CURRENCY,
            automatic_payment_methods={"enabled": True},
            api_key=config.STRIPE_SECRET_KEY,
        )
    except stripe.StripeError as e:
        logger.error("Payment intent creation failed: %s", e)
        raise HTTPException(status_code=500, detail="Payment provider error")
    return intent.client_secret
