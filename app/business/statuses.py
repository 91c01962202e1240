# ==== BUSINESS STATUS LIFECYCLES ==== #

"""
Status enumerations and lifecycle rules for Procurement Hub.

This module defines the status values used by every workflow entity together
with the small set of rules that decide which transitions are legal, so that
routes and services share one source of truth.
"""

from enum import Enum
from typing import Dict, FrozenSet


# ==== ROLES ==== #


class UserRole(str, Enum):
    """Roles resolved from the identity provider user record."""

    ADMIN = "admin"
    MEMBER = "member"
    PARTNER = "partner"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ==== PROCUREMENT LIFECYCLES ==== #


class QuoteStatus(str, Enum):
    """
    Quote lifecycle.

    Status progression: draft → requested → responded → approved
    """

    DRAFT = "draft"
    REQUESTED = "requested"
    RESPONDED = "responded"
    APPROVED = "approved"


class QuoteItemStatus(str, Enum):
    PENDING = "pending"
    QUOTED = "quoted"


class OrderStatus(str, Enum):
    """
    Order lifecycle.

    Status progression: ordered → confirmed → shipped → delivered → invoiced
    """

    ORDERED = "ordered"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    INVOICED = "invoiced"


class OrderItemStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class InvoiceStatus(str, Enum):
    """
    Invoice lifecycle.

    Status progression: issued → sent → paid
    """

    ISSUED = "issued"
    SENT = "sent"
    PAID = "paid"


class BundleStatus(str, Enum):
    CREATED = "created"
    SENT = "sent"
    PAID = "paid"


class PaymentStatus(str, Enum):
    """
    Payment lifecycle.

    A payment is ``matched`` when the amount equals the target total and
    ``pending`` when a difference needs an administrator's approval.
    """

    PENDING = "pending"
    MATCHED = "matched"
    APPROVED = "approved"


class MatchType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ThreadStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# ==== ONBOARDING LIFECYCLES ==== #


class FormStatus(str, Enum):
    """
    Onboarding form lifecycle.

    Status progression: draft → submitted → approved | returned
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    RETURNED = "returned"


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    RETURNED = "returned"
    APPROVED = "approved"
    REGISTERED = "registered"


# ==== BUSINESS RULES CONFIGURATION ==== #


UNPAID_INVOICE_STATUSES: FrozenSet[str] = frozenset({
    InvoiceStatus.ISSUED.value,
    InvoiceStatus.SENT.value,
})

UNPAID_BUNDLE_STATUSES: FrozenSet[str] = frozenset({
    BundleStatus.CREATED.value,
    BundleStatus.SENT.value,
})

SETTLED_PAYMENT_STATUSES: FrozenSet[str] = frozenset({
    PaymentStatus.MATCHED.value,
    PaymentStatus.APPROVED.value,
})

ACTIVE_ORDER_STATUSES: FrozenSet[str] = frozenset({
    OrderStatus.ORDERED.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.SHIPPED.value,
})

# Statuses an applicant may set on their own forms
APPLICANT_FORM_STATUSES: FrozenSet[str] = frozenset({
    FormStatus.DRAFT.value,
    FormStatus.SUBMITTED.value,
})

# Manual invoice status edits; ``paid`` is reached through payments only
INVOICE_MANUAL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    InvoiceStatus.ISSUED.value: frozenset({InvoiceStatus.SENT.value}),
    InvoiceStatus.SENT.value: frozenset(),
    InvoiceStatus.PAID.value: frozenset(),
}

# Order items touched by the payment cascade; later stages are kept
CASCADE_CONFIRMABLE_ITEM_STATUSES: FrozenSet[str] = frozenset({
    OrderItemStatus.PENDING.value,
})
