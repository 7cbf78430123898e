from pydantic import BaseModel, Field
from typing import Optional


class BuyNowPayload(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    product: Optional[dict] = None


class QuoteQuery(BaseModel):
    product_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)


class PaymentOrderRequest(BaseModel):
    buy_now: Optional[BuyNowPayload] = None


class PaymentResultPayload(BaseModel):
    """What the gateway checkout UI handed back to the client."""

    status: str
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    reason: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    address_id: Optional[int] = None
    payment_method: str = "COD"
    buy_now: Optional[BuyNowPayload] = None
    gateway_order_id: Optional[str] = None
    payment: Optional[PaymentResultPayload] = None
