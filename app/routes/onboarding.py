# ==== ONBOARDING ROUTES MODULE ==== #

"""
Onboarding application and form endpoints.

Applications are managed by administrators. Each of the four forms gets
the same set of routes, generated from the form registry: read, full save,
partial save, and the review actions approve and return. Applicants reach
the form routes with the ``X-Onboarding-Token`` header instead of a login.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import ApplicationStatus
from app.middleware.tenancy import get_tenant_id
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.common import MessageResponse, Page
from app.schemas.onboarding import (
    ApplicationCreate, ApplicationResponse, ApplicationStatusUpdate,
    ApplicationSummary, ApplicationUpdate, FormReview
)
from app.security.auth import get_optional_user, require_admin
from app.services import onboarding as onboarding_service
from app.services.onboarding import FORM_KINDS, FormKind
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()
tracer = get_tracer(__name__)


# ==== APPLICATIONS ==== #


@router.get("/applications", response_model=Page[ApplicationSummary])
async def list_applications(
    request: Request,
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> Page[ApplicationSummary]:
    tenant = get_tenant_id(request)
    rows, total = await onboarding_service.list_applications(db, tenant, status_filter, page, page_size)
    return Page.build([ApplicationSummary.model_validate(a) for a in rows], total, page, page_size)


@router.post("/applications", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> ApplicationResponse:
    """
    Open an onboarding application with its four forms.

    Args:
        payload (ApplicationCreate): Applicant details
        request (Request): HTTP request carrying the tenant

    Returns:
        ApplicationResponse: Application including the applicant access token
    """
    tenant = get_tenant_id(request)
    application = await onboarding_service.create_application(db, tenant, payload)
    return ApplicationResponse.model_validate(application)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> ApplicationResponse:
    application = await onboarding_service.load_application(db, get_tenant_id(request), application_id)
    return ApplicationResponse.model_validate(application)


@router.patch("/applications/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: int,
    payload: ApplicationUpdate,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> ApplicationResponse:
    application = await onboarding_service.update_application(
        db, get_tenant_id(request), application_id, payload
    )
    return ApplicationResponse.model_validate(application)


@router.delete("/applications/{application_id}", response_model=MessageResponse)
async def delete_application(
    application_id: int,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> MessageResponse:
    await onboarding_service.delete_application(db, get_tenant_id(request), application_id)
    return MessageResponse(message="Application deleted")


@router.patch("/applications/{application_id}/status", response_model=ApplicationResponse)
async def change_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> ApplicationResponse:
    with tracer.start_as_current_span("change_onboarding_status") as span:
        span.set_attribute("application_id", application_id)
        span.set_attribute("status", payload.status.value)
        application = await onboarding_service.change_application_status(
            db, get_tenant_id(request), admin, application_id, payload.status
        )
        return ApplicationResponse.model_validate(application)


# ==== FORMS ==== #


def _register_form_routes(kind: FormKind) -> None:
    """Attach the read, save and review routes of one form."""
    path = f"/applications/{{application_id}}/{kind.slug}"
    payload_type = kind.payload
    response_type = kind.response

    async def _resolve(db, request, application_id, user, token):
        application = await onboarding_service.load_application(
            db, get_tenant_id(request), application_id
        )
        actor = onboarding_service.resolve_form_actor(application, user, token)
        return application, actor

    async def read_form(
        application_id: int,
        request: Request,
        token: Optional[str] = Header(None, alias="X-Onboarding-Token"),
        user: Optional[AuthUser] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db_session)
    ):
        application, _ = await _resolve(db, request, application_id, user, token)
        return response_type.model_validate(onboarding_service.get_form(application, kind))

    async def save_form(
        application_id: int,
        payload: payload_type,
        request: Request,
        token: Optional[str] = Header(None, alias="X-Onboarding-Token"),
        user: Optional[AuthUser] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db_session)
    ):
        application, actor = await _resolve(db, request, application_id, user, token)
        form = await onboarding_service.save_form(db, application, kind, payload, actor)
        return response_type.model_validate(form)

    async def patch_form(
        application_id: int,
        payload: payload_type,
        request: Request,
        token: Optional[str] = Header(None, alias="X-Onboarding-Token"),
        user: Optional[AuthUser] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db_session)
    ):
        application, actor = await _resolve(db, request, application_id, user, token)
        form = await onboarding_service.save_form(db, application, kind, payload, actor, partial=True)
        return response_type.model_validate(form)

    async def approve_form(
        application_id: int,
        request: Request,
        admin: AuthUser = Depends(require_admin),
        db: AsyncSession = Depends(get_db_session)
    ):
        application = await onboarding_service.load_application(
            db, get_tenant_id(request), application_id
        )
        form = await onboarding_service.review_form(db, application, kind, admin, approve=True)
        return response_type.model_validate(form)

    async def return_form(
        application_id: int,
        payload: FormReview,
        request: Request,
        admin: AuthUser = Depends(require_admin),
        db: AsyncSession = Depends(get_db_session)
    ):
        application = await onboarding_service.load_application(
            db, get_tenant_id(request), application_id
        )
        form = await onboarding_service.review_form(
            db, application, kind, admin, approve=False, review_comment=payload.review_comment
        )
        return response_type.model_validate(form)

    name = kind.attribute
    router.add_api_route(path, read_form, methods=["GET"], response_model=response_type,
                         name=f"get_{name}")
    router.add_api_route(path, save_form, methods=["POST"], response_model=response_type,
                         name=f"save_{name}")
    router.add_api_route(path, patch_form, methods=["PATCH"], response_model=response_type,
                         name=f"patch_{name}")
    router.add_api_route(f"{path}/approve", approve_form, methods=["POST"],
                         response_model=response_type, name=f"approve_{name}")
    router.add_api_route(f"{path}/return", return_form, methods=["POST"],
                         response_model=response_type, name=f"return_{name}")


for _kind in FORM_KINDS.values():
    _register_form_routes(_kind)
