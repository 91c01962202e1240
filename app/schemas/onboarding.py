"""Pydantic schemas for onboarding applications and their forms."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.business.statuses import ApplicationStatus, FormStatus
from app.schemas.common import OrmModel


# ==== APPLICATIONS ==== #


class ApplicationCreate(BaseModel):
    applicant_email: str = Field(..., min_length=3, max_length=255)
    applicant_name: str = Field(..., min_length=1, max_length=200)
    hire_date: date
    deadline: date
    department: Optional[str] = None
    position: Optional[str] = None
    hr_notes: Optional[str] = None


class ApplicationUpdate(BaseModel):
    applicant_email: Optional[str] = Field(None, min_length=3, max_length=255)
    applicant_name: Optional[str] = Field(None, min_length=1, max_length=200)
    hire_date: Optional[date] = None
    deadline: Optional[date] = None
    department: Optional[str] = None
    position: Optional[str] = None
    hr_notes: Optional[str] = None
    employee_id: Optional[str] = None


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class FormReview(BaseModel):
    review_comment: Optional[str] = None


# ==== FORM PAYLOADS ==== #


class FormPayload(BaseModel):
    """Common part of every form submission."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[FormStatus] = None


class BasicInfoPayload(FormPayload):
    last_name_kanji: Optional[str] = None
    first_name_kanji: Optional[str] = None
    last_name_kana: Optional[str] = None
    first_name_kana: Optional[str] = None
    email: Optional[str] = None
    hire_date: Optional[date] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    personal_email: Optional[str] = None
    current_address: Optional[Dict[str, Any]] = None
    resident_address: Optional[Dict[str, Any]] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    social_insurance: Optional[Dict[str, Any]] = None
    my_number_submitted: Optional[bool] = None
    documents: Optional[Dict[str, Any]] = None


class FamilyInfoPayload(FormPayload):
    email: Optional[str] = None
    employee_number: Optional[str] = None
    last_name_kanji: Optional[str] = None
    first_name_kanji: Optional[str] = None
    has_spouse: Optional[bool] = None
    spouse: Optional[Dict[str, Any]] = None
    family_members: Optional[List[Dict[str, Any]]] = None


class BankAccountPayload(FormPayload):
    email: Optional[str] = None
    employee_number: Optional[str] = None
    full_name: Optional[str] = None
    application_type: Optional[str] = None
    consent: Optional[bool] = None
    bank_name: Optional[str] = None
    bank_code: Optional[str] = Field(None, pattern=r"^\d{4}$")
    branch_name: Optional[str] = None
    branch_code: Optional[str] = Field(None, pattern=r"^\d{3}$")
    account_number: Optional[str] = Field(None, pattern=r"^\d{1,8}$")
    account_holder_kana: Optional[str] = None


class CommuteRoutePayload(FormPayload):
    name: Optional[str] = None
    employee_number: Optional[str] = None
    commute_status: Optional[str] = None
    commute_method: Optional[str] = None
    distance: Optional[Decimal] = Field(None, ge=0)
    public_transit: Optional[Dict[str, Any]] = None
    private_car: Optional[Dict[str, Any]] = None


# ==== RESPONSES ==== #


class FormResponse(OrmModel):
    id: int
    application_id: int
    tenant_id: str
    status: FormStatus
    saved_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    returned_at: Optional[datetime] = None
    review_comment: Optional[str] = None
    updated_at: datetime


class BasicInfoResponse(FormResponse):
    last_name_kanji: Optional[str] = None
    first_name_kanji: Optional[str] = None
    last_name_kana: Optional[str] = None
    first_name_kana: Optional[str] = None
    email: Optional[str] = None
    hire_date: Optional[date] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    personal_email: Optional[str] = None
    current_address: Optional[Dict[str, Any]] = None
    resident_address: Optional[Dict[str, Any]] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    social_insurance: Optional[Dict[str, Any]] = None
    my_number_submitted: bool = False
    documents: Optional[Dict[str, Any]] = None


class FamilyInfoResponse(FormResponse):
    email: Optional[str] = None
    employee_number: Optional[str] = None
    last_name_kanji: Optional[str] = None
    first_name_kanji: Optional[str] = None
    has_spouse: bool = False
    spouse: Optional[Dict[str, Any]] = None
    family_members: Optional[List[Dict[str, Any]]] = None


class BankAccountResponse(FormResponse):
    email: Optional[str] = None
    employee_number: Optional[str] = None
    full_name: Optional[str] = None
    application_type: Optional[str] = None
    consent: bool = False
    bank_name: Optional[str] = None
    bank_code: Optional[str] = None
    branch_name: Optional[str] = None
    branch_code: Optional[str] = None
    account_number: Optional[str] = None
    account_holder_kana: Optional[str] = None


class CommuteRouteResponse(FormResponse):
    name: Optional[str] = None
    employee_number: Optional[str] = None
    commute_status: Optional[str] = None
    commute_method: Optional[str] = None
    distance: Optional[Decimal] = None
    public_transit: Optional[Dict[str, Any]] = None
    private_car: Optional[Dict[str, Any]] = None


class FormStatusRef(OrmModel):
    id: int
    status: FormStatus


class ApplicationSummary(OrmModel):
    id: int
    tenant_id: str
    applicant_email: str
    applicant_name: str
    hire_date: date
    deadline: date
    department: Optional[str] = None
    position: Optional[str] = None
    employee_id: Optional[str] = None
    status: ApplicationStatus
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    basic_info: Optional[FormStatusRef] = None
    family_info: Optional[FormStatusRef] = None
    bank_account: Optional[FormStatusRef] = None
    commute_route: Optional[FormStatusRef] = None


class ApplicationResponse(ApplicationSummary):
    """Full application, including the applicant access token."""

    hr_notes: Optional[str] = None
    access_token: str
    approved_by: Optional[int] = None
    basic_info: Optional[BasicInfoResponse] = None
    family_info: Optional[FamilyInfoResponse] = None
    bank_account: Optional[BankAccountResponse] = None
    commute_route: Optional[CommuteRouteResponse] = None
