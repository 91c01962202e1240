"""SQLAlchemy models for Procurement Hub."""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index,
    Integer, JSON, Numeric, String, Table, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.storage.db import Base, utcnow


MONEY = Numeric(14, 2)
QUANTITY = Numeric(12, 2)


class TimestampMixin:
    """Creation and modification timestamps."""

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ==== ORGANISATIONS AND USERS ==== #


class Member(TimestampMixin, Base):
    """Purchasing-side tenant (construction-materials buyer)."""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_kana: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Name the member pays under; used for bank reconciliation
    payer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)


class Partner(TimestampMixin, Base):
    """Supplying-side tenant (manufacturer/vendor)."""

    __tablename__ = "partners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_kana: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payee details printed on invoices
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_account_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    bank_account_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)


class User(TimestampMixin, Base):
    """Application user linked to an identity provider account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supabase_user_id: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    member_id: Mapped[Optional[int]] = mapped_column(ForeignKey("members.id"), nullable=True)
    partner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("partners.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    last_login_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    member = relationship("Member")
    partner = relationship("Partner")


# ==== CATALOGUE ==== #


class Category(TimestampMixin, Base):
    """Product category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # A = catalogue price, B = quote required
    flow_type: Mapped[str] = mapped_column(String(1), default="A", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Product(TimestampMixin, Base):
    """Catalogue product offered by a partner."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    partner_id: Mapped[int] = mapped_column(ForeignKey("partners.id"), nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False, index=True)
    unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    product_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    partner = relationship("Partner")
    category = relationship("Category")


# ==== QUOTES ==== #


class Quote(TimestampMixin, Base):
    """Price request from a member to one or more partners."""

    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="draft", nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    desired_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    requested_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    responded_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    member = relationship("Member")
    user = relationship("User")
    category = relationship("Category")
    items: Mapped[List["QuoteItem"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.id"
    )
    order = relationship("Order", back_populates="quote", uselist=False)


class QuoteItem(Base):
    """Quote line addressed to a single partner."""

    __tablename__ = "quote_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_id: Mapped[int] = mapped_column(
        ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    partner_id: Mapped[int] = mapped_column(ForeignKey("partners.id"), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id"), nullable=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    subtotal: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quoted_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    quote: Mapped["Quote"] = relationship(back_populates="items")
    partner = relationship("Partner")
    product = relationship("Product")


# ==== ORDERS ==== #


class Order(TimestampMixin, Base):
    """Purchase order created from an approved quote or directly."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    quote_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quotes.id"), unique=True, nullable=True
    )
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="ordered", nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    desired_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ordered_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    confirmed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    quote = relationship("Quote", back_populates="order")
    member = relationship("Member")
    user = relationship("User")
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        back_populates="order",
        order_by="Invoice.id"
    )


class OrderItem(Base):
    """Order line fulfilled by a single partner."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    partner_id: Mapped[int] = mapped_column(ForeignKey("partners.id"), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id"), nullable=True)
    quote_item_id: Mapped[Optional[int]] = mapped_column(ForeignKey("quote_items.id"), nullable=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    shipped_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    order: Mapped["Order"] = relationship(back_populates="items")
    partner = relationship("Partner")


# ==== INVOICING ==== #


bundle_invoices = Table(
    "bundle_invoices",
    Base.metadata,
    Column("bundle_id", ForeignKey("invoice_bundles.id", ondelete="CASCADE"), primary_key=True),
    # An invoice can sit in at most one bundle
    Column("invoice_id", ForeignKey("invoices.id"), primary_key=True, unique=True),
)


class Invoice(TimestampMixin, Base):
    """Invoice issued by a partner for its lines on an order."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    partner_id: Mapped[int] = mapped_column(ForeignKey("partners.id"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="issued", nullable=False, index=True)
    issued_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    due_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        UniqueConstraint("order_id", "partner_id", name="uq_invoice_order_partner"),
        Index("ix_invoices_member_status", "member_id", "status"),
    )

    order: Mapped["Order"] = relationship(back_populates="invoices")
    partner = relationship("Partner")
    member = relationship("Member")
    payments: Mapped[List["Payment"]] = relationship(
        back_populates="invoice",
        order_by="Payment.id"
    )
    bundles: Mapped[List["InvoiceBundle"]] = relationship(
        secondary=bundle_invoices,
        back_populates="invoices"
    )


class InvoiceBundle(TimestampMixin, Base):
    """Several invoices of one member grouped into a single payable."""

    __tablename__ = "invoice_bundles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bundle_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="created", nullable=False, index=True)
    due_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    member = relationship("Member")
    invoices: Mapped[List["Invoice"]] = relationship(
        secondary=bundle_invoices,
        back_populates="bundles",
        order_by="Invoice.id"
    )
    payments: Mapped[List["Payment"]] = relationship(
        back_populates="bundle",
        order_by="Payment.id"
    )


# ==== PAYMENTS ==== #


class BankTransaction(Base):
    """Incoming transfer imported from a bank statement."""

    __tablename__ = "bank_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_date: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, index=True)
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sender_name_kana: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    balance: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    matched: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    matched_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_bank_transactions_dedupe", "transaction_date", "amount", "sender_name"),
    )

    payments: Mapped[List["Payment"]] = relationship(
        back_populates="bank_transaction",
        order_by="Payment.id"
    )


class Payment(TimestampMixin, Base):
    """Money received against exactly one invoice or one bundle."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey("invoices.id"), nullable=True, index=True)
    bundle_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("invoice_bundles.id"), nullable=True, index=True
    )
    bank_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("bank_transactions.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    difference: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False, index=True)
    match_type: Mapped[str] = mapped_column(String(16), default="manual", nullable=False)
    payment_date: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(invoice_id IS NOT NULL AND bundle_id IS NULL) OR "
            "(invoice_id IS NULL AND bundle_id IS NOT NULL)",
            name="ck_payment_single_target",
        ),
        Index("ix_payments_status_date", "status", "payment_date"),
    )

    invoice: Mapped[Optional["Invoice"]] = relationship(back_populates="payments")
    bundle: Mapped[Optional["InvoiceBundle"]] = relationship(back_populates="payments")
    bank_transaction: Mapped[Optional["BankTransaction"]] = relationship(back_populates="payments")
    approver = relationship("User")


# ==== MESSAGING ==== #


class MessageThread(TimestampMixin, Base):
    """Conversation between a member or partner and the operator."""

    __tablename__ = "message_threads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    thread_type: Mapped[str] = mapped_column(String(32), default="inquiry", nullable=False)
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("orders.id"), nullable=True)
    quote_id: Mapped[Optional[int]] = mapped_column(ForeignKey("quotes.id"), nullable=True)
    member_id: Mapped[Optional[int]] = mapped_column(ForeignKey("members.id"), nullable=True, index=True)
    partner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("partners.id"), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), default="open", nullable=False)

    member = relationship("Member")
    partner = relationship("Partner")
    messages: Mapped[List["Message"]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="Message.id"
    )


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        ForeignKey("message_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_admin_visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    read_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    thread: Mapped["MessageThread"] = relationship(back_populates="messages")
    sender = relationship("User")


# ==== ADMINISTRATION ==== #


class AuditLog(Base):
    """Record of an administrative mutation."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("User")


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ==== ONBOARDING ==== #


class OnboardingApplication(TimestampMixin, Base):
    """New-hire data collection case, owned by HR."""

    __tablename__ = "onboarding_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    applicant_email: Mapped[str] = mapped_column(String(255), nullable=False)
    applicant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    hire_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    deadline: Mapped[dt.date] = mapped_column(Date, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    hr_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    employee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    access_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="draft", nullable=False)
    submitted_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        Index("ix_onboarding_applications_tenant_status", "tenant_id", "status"),
    )

    basic_info = relationship(
        "OnboardingBasicInfo", uselist=False, cascade="all, delete-orphan"
    )
    family_info = relationship(
        "OnboardingFamilyInfo", uselist=False, cascade="all, delete-orphan"
    )
    bank_account = relationship(
        "OnboardingBankAccount", uselist=False, cascade="all, delete-orphan"
    )
    commute_route = relationship(
        "OnboardingCommuteRoute", uselist=False, cascade="all, delete-orphan"
    )


class OnboardingFormMixin(TimestampMixin):
    """Columns shared by the four onboarding forms."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("onboarding_applications.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), default="draft", nullable=False)
    saved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    submitted_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    returned_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    review_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OnboardingBasicInfo(OnboardingFormMixin, Base):
    __tablename__ = "onboarding_basic_info"

    last_name_kanji: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    first_name_kanji: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name_kana: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    first_name_kana: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hire_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    birth_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    personal_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    current_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    resident_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    emergency_contact: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    social_insurance: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    my_number_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    documents: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)


class OnboardingFamilyInfo(OnboardingFormMixin, Base):
    __tablename__ = "onboarding_family_info"

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    employee_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    last_name_kanji: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    first_name_kanji: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    has_spouse: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    spouse: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    family_members: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)


class OnboardingBankAccount(OnboardingFormMixin, Base):
    __tablename__ = "onboarding_bank_accounts"

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    employee_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    application_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    branch_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    branch_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    account_holder_kana: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class OnboardingCommuteRoute(OnboardingFormMixin, Base):
    __tablename__ = "onboarding_commute_routes"

    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    employee_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    commute_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    commute_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    distance: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    public_transit: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    private_car: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
