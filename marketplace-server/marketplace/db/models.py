"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from marketplace.infrastructure.database.base import Base

Money = Numeric(14, 2, asdecimal=True)


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="client")  # client, freelance, admin
    is_active = Column(Boolean, nullable=False, default=True)
    email = Column(String(100), unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
    last_login_at = Column(DateTime(timezone=True))


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    freelance_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Money, nullable=False)
    currency = Column(String(10), nullable=False, default="XOF")
    status = Column(String(20), nullable=False, default="active")  # active, inactive
    created_at = Column(DateTime(timezone=True), default=utcnow)

    freelance = relationship("Account")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(32), unique=True, nullable=False)
    client_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    freelance_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    price = Column(Money, nullable=False)
    currency = Column(String(10), nullable=False, default="XOF")
    # pending, delivered, completed, cancelled, in_dispute, revision_requested
    status = Column(String(30), nullable=False, default="pending")
    requirements = Column(Text)
    cancellation_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
    delivered_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, unique=True)
    balance = Column(Money, nullable=False, default=0)
    pending_balance = Column(Money, nullable=False, default=0)
    total_earnings = Column(Money, nullable=False, default=0)
    total_withdrawals = Column(Money, nullable=False, default=0)
    min_withdrawal_amount = Column(Money, nullable=False)
    withdrawal_fee_percentage = Column(Numeric(5, 2, asdecimal=True), nullable=False)
    currency = Column(String(10), nullable=False, default="XOF")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    account = relationship("Account")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    type = Column(String(20), nullable=False)  # deposit, withdrawal, payment, earning, refund
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed
    order_id = Column(String(36), ForeignKey("orders.id"), index=True)
    service_id = Column(String(36), ForeignKey("services.id"))
    client_id = Column(String(36))
    freelance_id = Column(String(36))
    reference_id = Column(String(100), index=True)
    description = Column(String(255))
    currency = Column(String(10), nullable=False, default="XOF")
    held_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))

    wallet = relationship("Wallet")


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False)
    amount = Column(Money, nullable=False)
    fee_amount = Column(Money, nullable=False)
    net_amount = Column(Money, nullable=False)
    payment_method = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    processed_at = Column(DateTime(timezone=True))


class PaymentIntent(Base):
    __tablename__ = "payment_intents"
    __table_args__ = (UniqueConstraint("client_id", "idempotency_key", name="uq_payment_intents_client_key"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider = Column(String(20), nullable=False)  # stripe, paypal
    provider_id = Column(String(100), nullable=False, unique=True)
    client_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    freelance_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    amount = Column(Money, nullable=False)
    currency = Column(String(10), nullable=False, default="XOF")
    provider_amount = Column(Money, nullable=False)
    provider_currency = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default="created")  # created, captured, failed
    idempotency_key = Column(String(100))
    client_secret = Column(String(255))
    capture_id = Column(String(100))
    order_id = Column(String(36), ForeignKey("orders.id"))
    transaction_id = Column(String(36))
    meta = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    captured_at = Column(DateTime(timezone=True))


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    freelance_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    amount = Column(Money, nullable=False)
    status = Column(String(20), nullable=False, default="paid")  # paid, refunded
    payment_method = Column(String(20), nullable=False)
    payment_intent_id = Column(String(100))
    capture_id = Column(String(100))
    details = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Dispute(Base):
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    freelance_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="open")  # open, resolved, closed
    resolution = Column(Text)
    resolved_by = Column(String(36))
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    messages = relationship("DisputeMessage", back_populates="dispute", cascade="all, delete-orphan")


class DisputeMessage(Base):
    __tablename__ = "dispute_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dispute_id = Column(String(36), ForeignKey("disputes.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    message = Column(Text, nullable=False)
    attachment_url = Column(String(500))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    dispute = relationship("Dispute", back_populates="messages")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)
    link = Column(String(255))
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(60), nullable=False, index=True)
    user_id = Column(String(36))
    severity = Column(String(20), nullable=False, default="info")  # info, low, medium, high, critical
    ip_address = Column(String(64))
    user_agent = Column(String(255))
    details = Column(Text)
    status = Column(String(20), nullable=False, default="pending")  # pending, dispatched
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    dispatched_at = Column(DateTime(timezone=True))


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(255), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
