# ==== ONBOARDING SERVICE ==== #

"""
New-hire onboarding applications and their four forms.

HR administrators open an application for an incoming employee; the
applicant fills in basic information, family information, a salary bank
account and the commute route using the application's access token, and
HR approves or returns each form once it has been submitted.

Form status progression: draft → submitted → approved | returned
"""

import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import (
    AccessDeniedError, AuthenticationError, InvalidStateError, NotFoundError
)
from app.business.statuses import APPLICANT_FORM_STATUSES, ApplicationStatus, FormStatus
from app.observability.logging import ContextualLogger, log_business_event
from app.observability.metrics import onboarding_reviews_total, record_transition
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.onboarding import (
    ApplicationCreate, ApplicationUpdate, BankAccountPayload, BankAccountResponse,
    BasicInfoPayload, BasicInfoResponse, CommuteRoutePayload, CommuteRouteResponse,
    FamilyInfoPayload, FamilyInfoResponse, FormPayload, FormResponse
)
from app.services.query import get_or_404, paginate
from app.storage.db import Base, utcnow
from app.storage.models import (
    OnboardingApplication, OnboardingBankAccount, OnboardingBasicInfo,
    OnboardingCommuteRoute, OnboardingFamilyInfo
)


tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)


# ==== FORM REGISTRY ==== #


@dataclass(frozen=True)
class FormKind:
    """One of the four onboarding forms and its schemas."""

    slug: str
    attribute: str
    model: Type[Base]
    payload: Type[FormPayload]
    response: Type[FormResponse]


FORM_KINDS: Dict[str, FormKind] = {
    kind.slug: kind
    for kind in (
        FormKind("basic-info", "basic_info", OnboardingBasicInfo, BasicInfoPayload, BasicInfoResponse),
        FormKind("family-info", "family_info", OnboardingFamilyInfo, FamilyInfoPayload, FamilyInfoResponse),
        FormKind("bank-account", "bank_account", OnboardingBankAccount, BankAccountPayload, BankAccountResponse),
        FormKind("commute-route", "commute_route", OnboardingCommuteRoute, CommuteRoutePayload, CommuteRouteResponse),
    )
}

# Non-nullable flags reset to False when a full save omits them
_BOOLEAN_FIELDS = frozenset({"my_number_submitted", "has_spouse", "consent"})


def get_form_kind(slug: str) -> FormKind:
    kind = FORM_KINDS.get(slug)
    if kind is None:
        raise NotFoundError(f"Unknown onboarding form: {slug}")
    return kind


def generate_access_token() -> str:
    """48 character URL-safe token handed to the applicant."""
    return secrets.token_urlsafe(36)


# ==== APPLICATIONS ==== #


def _application_options():
    return tuple(
        selectinload(getattr(OnboardingApplication, kind.attribute))
        for kind in FORM_KINDS.values()
    )


async def load_application(db: AsyncSession, tenant: str, application_id: int) -> OnboardingApplication:
    query = (
        select(OnboardingApplication)
        .where(
            OnboardingApplication.id == application_id,
            OnboardingApplication.tenant_id == tenant,
        )
        .options(*_application_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Application")


async def list_applications(
    db: AsyncSession,
    tenant: str,
    status: Optional[ApplicationStatus],
    page: int,
    page_size: int
) -> Tuple[List[OnboardingApplication], int]:
    query = (
        select(OnboardingApplication)
        .where(OnboardingApplication.tenant_id == tenant)
        .options(*_application_options())
    )
    if status:
        query = query.where(OnboardingApplication.status == status.value)
    query = query.order_by(OnboardingApplication.created_at.desc(), OnboardingApplication.id.desc())
    return await paginate(db, query, page, page_size)


async def create_application(
    db: AsyncSession,
    tenant: str,
    payload: ApplicationCreate
) -> OnboardingApplication:
    """
    Open an application together with its four empty forms.

    The forms are pre-filled with what HR already knows: the applicant's
    email and hire date, and the name on the bank and commute forms.

    Args:
        db (AsyncSession): Database session
        tenant (str): Tenant the application belongs to
        payload (ApplicationCreate): Applicant details

    Returns:
        OnboardingApplication: New application in ``draft`` status
    """
    with tracer.start_as_current_span("create_onboarding_application") as span:
        span.set_attribute("tenant", tenant)

        application = OnboardingApplication(
            tenant_id=tenant,
            applicant_email=payload.applicant_email,
            applicant_name=payload.applicant_name,
            hire_date=payload.hire_date,
            deadline=payload.deadline,
            department=payload.department,
            position=payload.position,
            hr_notes=payload.hr_notes,
            access_token=generate_access_token(),
            status=ApplicationStatus.DRAFT.value,
        )
        application.basic_info = OnboardingBasicInfo(
            tenant_id=tenant, email=payload.applicant_email, hire_date=payload.hire_date
        )
        application.family_info = OnboardingFamilyInfo(tenant_id=tenant, email=payload.applicant_email)
        application.bank_account = OnboardingBankAccount(
            tenant_id=tenant, email=payload.applicant_email, full_name=payload.applicant_name
        )
        application.commute_route = OnboardingCommuteRoute(tenant_id=tenant, name=payload.applicant_name)

        db.add(application)
        await db.flush()

        span.set_attribute("application_id", application.id)
        logger.info("Onboarding application created", application_id=application.id, tenant=tenant)
        return await load_application(db, tenant, application.id)


async def update_application(
    db: AsyncSession,
    tenant: str,
    application_id: int,
    payload: ApplicationUpdate
) -> OnboardingApplication:
    application = await load_application(db, tenant, application_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(application, field, value)
    await db.flush()
    return await load_application(db, tenant, application.id)


async def delete_application(db: AsyncSession, tenant: str, application_id: int) -> None:
    application = await load_application(db, tenant, application_id)
    await db.delete(application)
    await db.flush()
    logger.info("Onboarding application deleted", application_id=application_id, tenant=tenant)


async def change_application_status(
    db: AsyncSession,
    tenant: str,
    user: AuthUser,
    application_id: int,
    status: ApplicationStatus
) -> OnboardingApplication:
    """Set the application status, stamping submission and approval."""
    application = await load_application(db, tenant, application_id)
    now = utcnow()

    record_transition("onboarding_application", application.status, status.value)
    application.status = status.value
    if status == ApplicationStatus.SUBMITTED:
        application.submitted_at = now
    elif status == ApplicationStatus.APPROVED:
        application.approved_at = now
        application.approved_by = user.id

    await db.flush()
    log_business_event(
        "onboarding_status_changed",
        tenant=tenant,
        application_id=application.id,
        status=status.value,
    )
    return await load_application(db, tenant, application.id)


# ==== ACCESS ==== #


def resolve_form_actor(
    application: OnboardingApplication,
    user: Optional[AuthUser],
    token: Optional[str]
) -> Optional[AuthUser]:
    """
    Decide who is acting on an application's forms.

    Returns:
        Optional[AuthUser]: The administrator, or ``None`` for the applicant

    Raises:
        AuthenticationError: If neither a token nor an admin session was sent
        AccessDeniedError: If the caller is not allowed on this application
    """
    if user is not None and user.is_admin:
        return user
    if token:
        if secrets.compare_digest(token, application.access_token):
            return None
        raise AccessDeniedError("Invalid onboarding access token")
    if user is None:
        raise AuthenticationError("Onboarding access token required")
    raise AccessDeniedError("Only administrators can access onboarding forms")


# ==== FORMS ==== #


def get_form(application: OnboardingApplication, kind: FormKind):
    form = getattr(application, kind.attribute)
    if form is None:
        raise NotFoundError(f"{kind.slug} form not found")
    return form


async def save_form(
    db: AsyncSession,
    application: OnboardingApplication,
    kind: FormKind,
    payload: FormPayload,
    actor: Optional[AuthUser],
    partial: bool = False
):
    """
    Save a form, creating it when the application has none yet.

    A full save (``partial=False``) replaces every field and defaults the
    status to ``draft``; a partial save only touches the fields sent.
    Applicants may only move a form to ``draft`` or ``submitted`` and can
    no longer edit it once approved.

    Args:
        db (AsyncSession): Database session
        application (OnboardingApplication): Loaded application
        kind (FormKind): Form being saved
        payload (FormPayload): Validated form payload
        actor (Optional[AuthUser]): Administrator, or ``None`` for the applicant
        partial (bool): Apply only the fields present in the payload

    Returns:
        The saved form row
    """
    form = getattr(application, kind.attribute)
    if partial and form is None:
        raise NotFoundError(f"{kind.slug} form not found")

    if "status" in payload.model_fields_set or not partial:
        requested = (payload.status or FormStatus.DRAFT).value
    else:
        requested = None

    # --► APPLICANT RULES
    if actor is None:
        if form is not None and form.status == FormStatus.APPROVED.value:
            raise InvalidStateError("Approved forms can no longer be edited")
        if requested is not None and requested not in APPLICANT_FORM_STATUSES:
            raise AccessDeniedError(f"Applicants cannot set status {requested}")

    if form is None:
        form = kind.model(tenant_id=application.tenant_id)
        setattr(application, kind.attribute, form)

    if partial:
        values: Dict[str, Any] = payload.model_dump(exclude_unset=True, exclude={"status"})
    else:
        values = payload.model_dump(exclude={"status"})
        for field in _BOOLEAN_FIELDS.intersection(values):
            if values[field] is None:
                values[field] = False

    for field, value in values.items():
        setattr(form, field, value)

    now = utcnow()
    form.saved_at = now
    if requested is not None:
        if requested != form.status:
            record_transition(f"onboarding_{kind.attribute}", form.status, requested)
        if requested == FormStatus.SUBMITTED.value:
            form.submitted_at = now
        form.status = requested

    await db.flush()
    logger.info(
        "Onboarding form saved",
        application_id=application.id,
        form=kind.slug,
        status=form.status,
        by_applicant=actor is None,
    )
    return form


async def review_form(
    db: AsyncSession,
    application: OnboardingApplication,
    kind: FormKind,
    reviewer: AuthUser,
    approve: bool,
    review_comment: Optional[str] = None
):
    """
    Approve or return a submitted form.

    Raises:
        InvalidStateError: If the form is not ``submitted``
    """
    form = get_form(application, kind)
    if form.status != FormStatus.SUBMITTED.value:
        raise InvalidStateError("Only submitted forms can be reviewed")

    now = utcnow()
    if approve:
        new_status = FormStatus.APPROVED.value
        form.approved_at = now
        form.approved_by = reviewer.id
    else:
        new_status = FormStatus.RETURNED.value
        form.returned_at = now
        form.review_comment = review_comment

    record_transition(f"onboarding_{kind.attribute}", form.status, new_status)
    form.status = new_status
    await db.flush()

    decision = "approved" if approve else "returned"
    onboarding_reviews_total.labels(
        tenant=application.tenant_id, form=kind.slug, decision=decision
    ).inc()
    log_business_event(
        "onboarding_form_reviewed",
        tenant=application.tenant_id,
        application_id=application.id,
        form=kind.slug,
        decision=decision,
        reviewer_id=reviewer.id,
    )
    return form
