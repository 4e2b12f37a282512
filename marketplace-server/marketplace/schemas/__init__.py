"""Pydantic schemas used across the project."""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# amounts leave the API as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Checkout and order payloads use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    role: str = "client"
    email: Optional[str] = None


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    account_id: str
    username: str
    role: str


class AccountResponse(BaseModel):
    id: str
    username: str
    role: str
    email: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal
    currency: str = "XOF"


class ServiceResponse(BaseModel):
    id: str
    freelance_id: str
    title: str
    description: Optional[str] = None
    price: Money
    currency: str
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PayPalCreateOrderRequest(CamelModel):
    amount: Decimal
    service_id: str
    email: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    bypass_auth: bool = False


class PayPalCreateOrderResponse(CamelModel):
    order_id: str
    status: str


class PayPalCaptureRequest(CamelModel):
    order_id: str
    service_id: Optional[str] = None


class StripeIntentRequest(CamelModel):
    amount: Decimal
    service_id: str
    freelance_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    email: Optional[str] = None
    bypass_auth: bool = False


class StripeIntentResponse(CamelModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    status: str


class StripeConfirmRequest(CamelModel):
    payment_intent_id: str
    service_id: Optional[str] = None


class CaptureResponse(CamelModel):
    success: bool
    transaction_id: Optional[str] = None
    status: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    capture_id: Optional[str] = None
    already_captured: bool = False


class WebhookResponse(CamelModel):
    received: bool = True
    event_id: str
    event_type: str
    handled: bool
    order_id: Optional[str] = None
    detail: Optional[str] = None


class OrderActionRequest(CamelModel):
    order_id: str
    reason: Optional[str] = None


class OrderResponse(CamelModel):
    id: str
    order_number: str
    client_id: str
    freelance_id: str
    service_id: str
    price: Money
    currency: str
    status: str
    requirements: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class SettlementResponse(CamelModel):
    success: bool = True
    order_id: str
    status: str
    settled_transactions: int = 0
    settled_amount: Money = Decimal("0")
    already_completed: bool = False


class CancellationResponse(CamelModel):
    success: bool = True
    order_id: str
    status: str
    released_transactions: int = 0
    refunded_amount: Money = Decimal("0")
    already_cancelled: bool = False


class WalletResponse(BaseModel):
    id: str
    user_id: str
    balance: Money
    pending_balance: Money
    total_earnings: Money
    total_withdrawals: Money
    min_withdrawal_amount: Money
    withdrawal_fee_percentage: Money
    currency: str

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: str
    wallet_id: str
    amount: Money
    type: str
    status: str
    currency: str
    order_id: Optional[str] = None
    service_id: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse] = Field(default_factory=list)


class WithdrawRequest(BaseModel):
    amount: Decimal
    payment_method: str
    fee_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None


class WithdrawResponse(BaseModel):
    withdrawal_id: str
    status: str
    amount: Money
    fee_amount: Money
    net_amount: Money


class MinWithdrawalResponse(BaseModel):
    amount: Money


class MinWithdrawalUpdate(BaseModel):
    amount: Decimal


class MinWithdrawalUpdateResponse(BaseModel):
    success: bool = True
    amount: Money
    updated_wallets: int


class DisputeCreate(CamelModel):
    order_id: str
    reason: str


class DisputeResponse(CamelModel):
    id: str
    order_id: str
    client_id: str
    freelance_id: str
    reason: str
    status: str
    resolution: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DisputeListResponse(CamelModel):
    disputes: list[DisputeResponse] = Field(default_factory=list)


class DisputeMessageCreate(CamelModel):
    message: str
    attachment_url: Optional[str] = None


class DisputeMessageResponse(CamelModel):
    id: str
    dispute_id: str
    user_id: str
    message: str
    attachment_url: Optional[str] = None
    created_at: Optional[datetime] = None


class DisputeMessageListResponse(CamelModel):
    messages: list[DisputeMessageResponse] = Field(default_factory=list)


class DisputeResolveRequest(CamelModel):
    outcome: str
    resolution: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
