from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
import re

from time_utils import ensure_optional_timezone


class UserRoleEnum(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuthProviderEnum(str, Enum):
    EMAIL = "email"
    GOOGLE = "google"


class VisibilityEnum(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class ProfessionTypeEnum(str, Enum):
    BUSINESS = "business"
    SERVICE = "service"
    OTHER = "other"


class EventStatusEnum(str, Enum):
    DRAFT = "draft"
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethodEnum(str, Enum):
    BKASH = "bkash"
    NAGAD = "nagad"
    CASH = "cash"


class ActivityTypeEnum(str, Enum):
    USER_APPROVED = "USER_APPROVED"
    USER_REJECTED = "USER_REJECTED"
    USER_DELETED = "USER_DELETED"
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_DELETED = "EVENT_DELETED"
    EVENT_ARCHIVED = "EVENT_ARCHIVED"
    PARTICIPANT_APPROVED = "PARTICIPANT_APPROVED"
    PARTICIPANT_REJECTED = "PARTICIPANT_REJECTED"


class SortFieldEnum(str, Enum):
    NAME = "name"
    BLOOD_GROUP = "blood_group"
    CREATED_AT = "created_at"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
PASSWORD_UPPER_RE = re.compile(r"[A-Z]")
PASSWORD_DIGIT_RE = re.compile(r"[0-9]")


def _normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _validate_bd_phone(value: Optional[str]) -> Optional[str]:
    value = _normalize_optional_text(value)
    if value is None:
        return None
    digits = re.sub(r"\D", "", value)
    if len(digits) != 11 or not digits.startswith("01"):
        raise ValueError("Phone number must be 11 digits starting with 01")
    return digits


def _validate_password_strength(value: str) -> str:
    if len(value) < 8 or not PASSWORD_UPPER_RE.search(value) or not PASSWORD_DIGIT_RE.search(value):
        raise ValueError("Password must be at least 8 characters with one uppercase letter and one number")
    return value


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def unwrap_enum_members(cls, value):
        if isinstance(value, Enum):
            return value.value
        return value


# Auth Schemas
class EmailRegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = None
    password: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _validate_bd_phone(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _validate_password_strength(v)


class EmailLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class GoogleSignInRequest(BaseModel):
    id_token: str = Field(..., min_length=10)
    is_registration: bool = False
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v):
        return _normalize_optional_text(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _validate_bd_phone(v)


class GoogleTokenRequest(BaseModel):
    id_token: str = Field(..., min_length=10)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class EmailVerificationRequest(BaseModel):
    token: str = Field(..., min_length=10)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerificationResendRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=10)
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v):
        return _validate_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("New password and confirm password do not match")
        return self


# Profile Schemas
class Profession(BaseModel):
    type: ProfessionTypeEnum
    business_name: Optional[str] = Field(None, max_length=255)
    designation: Optional[str] = Field(None, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)
    other_details: Optional[str] = Field(None, max_length=1000)


class Address(BaseModel):
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    postcode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=120)


class SocialLinks(BaseModel):
    facebook: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None

    @model_validator(mode="after")
    def check_hosts(self):
        rules = {
            "facebook": ("facebook.com", "fb.com"),
            "linkedin": ("linkedin.com",),
            "twitter": ("twitter.com", "x.com"),
        }
        for field_name, hosts in rules.items():
            value = getattr(self, field_name)
            if value and not any(host in value for host in hosts):
                raise ValueError(f"{field_name} must be a {hosts[0]} link")
        return self


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    blood_group: Optional[str] = None
    profession: Optional[Profession] = None
    address: Optional[Address] = None
    social_links: Optional[SocialLinks] = None
    name_visibility: Optional[VisibilityEnum] = None
    email_visibility: Optional[VisibilityEnum] = None
    phone_visibility: Optional[VisibilityEnum] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _validate_bd_phone(v)

    @field_validator("blood_group")
    @classmethod
    def validate_blood_group(cls, v):
        if v is not None and v not in BLOOD_GROUPS:
            raise ValueError(f"Blood group must be one of {', '.join(BLOOD_GROUPS)}")
        return v


class ProfileResponse(ORMModel):
    uid: str
    email: str
    name: str
    phone: Optional[str] = None
    role: UserRoleEnum
    status: UserStatusEnum
    auth_provider: AuthProviderEnum
    name_visibility: VisibilityEnum
    email_visibility: VisibilityEnum
    phone_visibility: VisibilityEnum
    photo: Optional[str] = None
    blood_group: Optional[str] = None
    profession: Optional[Dict[str, Any]] = None
    address: Optional[Dict[str, Any]] = None
    social_links: Optional[Dict[str, Any]] = None
    profile_completion: int = 0
    email_verified: bool = False
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    profile: ProfileResponse


class MemberCard(BaseModel):
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    photo: Optional[str] = None
    blood_group: Optional[str] = None
    profession: Optional[Dict[str, Any]] = None
    address: Optional[Dict[str, Any]] = None
    social_links: Optional[Dict[str, Any]] = None
    role: UserRoleEnum
    created_at: Optional[datetime] = None


class DirectoryPage(BaseModel):
    items: List[MemberCard]
    total: int
    page: int
    page_size: int
    has_more: bool


class UserListPage(BaseModel):
    items: List[ProfileResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class RoleUpdate(BaseModel):
    role: UserRoleEnum


class UserStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class PresignRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=3, max_length=100)


class PresignResponse(BaseModel):
    upload_url: str
    public_url: str
    key: str
    content_type: str


class PhotoUpdate(BaseModel):
    photo_url: str = Field(..., min_length=8, max_length=500)


# Event Schemas
class EventLocation(BaseModel):
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    postcode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=120)


class ContactPerson(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: str = Field(..., min_length=8, max_length=32)


class EventBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    location: Optional[EventLocation] = None
    event_date: datetime
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    participant_limit: Optional[int] = Field(None, ge=1)
    registration_fee: int = Field(0, ge=0)
    payment_methods: List[PaymentMethodEnum] = Field(default_factory=list)
    payment_numbers: Dict[PaymentMethodEnum, List[str]] = Field(default_factory=dict)
    is_public: bool = False
    contact_persons: List[ContactPerson] = Field(default_factory=list)
    banner_url: Optional[str] = Field(None, max_length=500)

    @field_validator("event_date", "end_date", "registration_deadline")
    @classmethod
    def to_app_timezone(cls, v):
        return ensure_optional_timezone(v)

    @field_validator("payment_methods")
    @classmethod
    def dedupe_methods(cls, v):
        seen = []
        for method in v:
            if method not in seen:
                seen.append(method)
        return seen

    @model_validator(mode="after")
    def check_dates_and_payment(self):
        if self.end_date and self.end_date < self.event_date:
            raise ValueError("End date must be after the event date")
        if self.registration_deadline and self.registration_deadline > (self.end_date or self.event_date):
            raise ValueError("Registration deadline must not be after the event")
        if self.registration_fee > 0 and not self.payment_methods:
            raise ValueError("Paid events need at least one payment method")
        for method in self.payment_numbers:
            if method not in self.payment_methods:
                raise ValueError(f"Receiving numbers given for unaccepted method {method.value}")
        return self


class EventCreate(EventBase):
    status: EventStatusEnum = EventStatusEnum.UPCOMING

    @field_validator("status")
    @classmethod
    def draft_or_published(cls, v):
        if v not in (EventStatusEnum.DRAFT, EventStatusEnum.UPCOMING):
            raise ValueError("New events are created as draft or upcoming")
        return v


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    location: Optional[EventLocation] = None
    event_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    participant_limit: Optional[int] = Field(None, ge=1)
    registration_fee: Optional[int] = Field(None, ge=0)
    payment_methods: Optional[List[PaymentMethodEnum]] = None
    payment_numbers: Optional[Dict[PaymentMethodEnum, List[str]]] = None
    status: Optional[EventStatusEnum] = None
    is_public: Optional[bool] = None
    contact_persons: Optional[List[ContactPerson]] = None
    banner_url: Optional[str] = Field(None, max_length=500)

    @field_validator("event_date", "end_date", "registration_deadline")
    @classmethod
    def to_app_timezone(cls, v):
        return ensure_optional_timezone(v)


class EventResponse(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    event_date: datetime
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    participant_limit: Optional[int] = None
    registration_fee: int
    payment_methods: List[str] = Field(default_factory=list)
    payment_numbers: Dict[str, List[str]] = Field(default_factory=dict)
    status: EventStatusEnum
    live_status: EventStatusEnum
    is_public: bool
    current_participants: int
    spots_left: Optional[int] = None
    registration_open: bool = False
    contact_persons: List[Dict[str, Any]] = Field(default_factory=list)
    banner_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class EventStats(BaseModel):
    upcoming: int
    ongoing: int
    completed: int
    drafts: int
    cancelled: int
    total: int


class JoinEventRequest(BaseModel):
    payment_method: Optional[PaymentMethodEnum] = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    payment_sender_number: Optional[str] = Field(None, max_length=32)
    cash_given_by: Optional[str] = Field(None, max_length=255)
    cash_contact_number: Optional[str] = Field(None, max_length=32)

    @field_validator("transaction_id", "payment_sender_number", "cash_given_by", "cash_contact_number", mode="before")
    @classmethod
    def normalize_fields(cls, v):
        return _normalize_optional_text(v)


class ParticipantResponse(ORMModel):
    id: int
    event_id: int
    user_id: str
    user_name: str
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    status: ParticipantStatusEnum
    payment_required: bool
    payment_method: Optional[PaymentMethodEnum] = None
    transaction_id: Optional[str] = None
    payment_sender_number: Optional[str] = None
    cash_given_by: Optional[str] = None
    cash_contact_number: Optional[str] = None
    payment_verified: bool
    payment_verified_at: Optional[datetime] = None
    payment_verified_by: Optional[str] = None
    joined_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    admin_notes: Optional[str] = None


class MyEventResponse(BaseModel):
    participation: ParticipantResponse
    event: Optional[EventResponse] = None


class RejectParticipantRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentQuoteResponse(BaseModel):
    payment_method: PaymentMethodEnum
    registration_fee: int
    cashout_charge: int
    total: int
    receiving_numbers: List[str] = Field(default_factory=list)


# Archive Schemas
class ArchivedParticipant(BaseModel):
    user_id: str
    user_name: str
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_verified: bool = False
    approved_at: Optional[str] = None


class ArchivedEventSummary(ORMModel):
    id: int
    original_event_id: int
    title: str
    total_participants: int
    total_revenue: float
    archived_at: Optional[datetime] = None
    archived_by: Optional[str] = None


class ArchivedEventResponse(ArchivedEventSummary):
    event_data: Dict[str, Any]
    participants: List[ArchivedParticipant]


# Activity Log Schemas
class ActivityLogResponse(ORMModel):
    id: int
    type: ActivityTypeEnum
    admin_id: Optional[str] = None
    admin_name: Optional[str] = None
    admin_email: Optional[str] = None
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogResponse]
    next_cursor: Optional[int] = None
    has_more: bool
