from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Enum as SQLEnum, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class UserRole(enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuthProvider(enum.Enum):
    EMAIL = "email"
    GOOGLE = "google"


class Visibility(enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class EventStatus(enum.Enum):
    DRAFT = "draft"
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(enum.Enum):
    BKASH = "bkash"
    NAGAD = "nagad"
    CASH = "cash"


class ActivityType(enum.Enum):
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


class AuthAccount(Base):
    __tablename__ = "auth_accounts"

    uid = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    provider = Column(SQLEnum(AuthProvider), nullable=False, default=AuthProvider.EMAIL)
    google_sub = Column(String(255), unique=True, nullable=True)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(500), nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token_hash = Column(String(128), nullable=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    email_verification_sent_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token_hash = Column(String(128), nullable=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_sent_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    profile = relationship("UserProfile", back_populates="account", uselist=False)


class UserProfile(Base):
    __tablename__ = "users"

    uid = Column(String(64), ForeignKey("auth_accounts.uid"), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    status = Column(SQLEnum(UserStatus), default=UserStatus.PENDING, nullable=False, index=True)
    auth_provider = Column(SQLEnum(AuthProvider), default=AuthProvider.EMAIL, nullable=False)
    name_visibility = Column(SQLEnum(Visibility), default=Visibility.PUBLIC, nullable=False)
    email_visibility = Column(SQLEnum(Visibility), default=Visibility.PUBLIC, nullable=False)
    phone_visibility = Column(SQLEnum(Visibility), default=Visibility.PRIVATE, nullable=False)
    photo = Column(String(500), nullable=True)
    blood_group = Column(String(4), nullable=True)
    profession = Column(JSON, nullable=True)  # {"type": "service", "designation": ..., "company_name": ...}
    address = Column(JSON, nullable=True)
    social_links = Column(JSON, nullable=True)
    profile_completion = Column(Integer, default=0, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(64), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    account = relationship("AuthAccount", back_populates="profile")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(JSON, nullable=True)  # {"street", "city", "postcode", "country"}
    event_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    registration_deadline = Column(DateTime(timezone=True), nullable=True)
    participant_limit = Column(Integer, nullable=True)
    registration_fee = Column(Integer, default=0, nullable=False)
    payment_methods = Column(JSON, nullable=True)  # ["bkash", "cash"]
    payment_numbers = Column(JSON, nullable=True)  # {"bkash": ["017..."], "nagad": [...]}
    status = Column(SQLEnum(EventStatus), default=EventStatus.UPCOMING, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    current_participants = Column(Integer, default=0, nullable=False)
    contact_persons = Column(JSON, nullable=True)  # [{"name": ..., "phone": ...}]
    banner_url = Column(String(500), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    participants = relationship("EventParticipant", back_populates="event")


class EventParticipant(Base):
    __tablename__ = "event_participants"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_participant"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)
    user_email = Column(String(255), nullable=True)
    user_phone = Column(String(32), nullable=True)
    status = Column(SQLEnum(ParticipantStatus), default=ParticipantStatus.PENDING, nullable=False)
    payment_required = Column(Boolean, default=False, nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    payment_sender_number = Column(String(32), nullable=True)
    cash_given_by = Column(String(255), nullable=True)
    cash_contact_number = Column(String(32), nullable=True)
    payment_verified = Column(Boolean, default=False, nullable=False)
    payment_verified_at = Column(DateTime(timezone=True), nullable=True)
    payment_verified_by = Column(String(64), nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(64), nullable=True)
    admin_notes = Column(Text, nullable=True)

    event = relationship("Event", back_populates="participants")


class ArchivedEvent(Base):
    __tablename__ = "archived_events"

    id = Column(Integer, primary_key=True, index=True)
    original_event_id = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    event_data = Column(JSON, nullable=False)
    participants = Column(JSON, nullable=False)
    total_participants = Column(Integer, default=0, nullable=False)
    total_revenue = Column(Float, default=0, nullable=False)
    archived_at = Column(DateTime(timezone=True), server_default=func.now())
    archived_by = Column(String(64), nullable=True)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(SQLEnum(ActivityType), nullable=False, index=True)
    admin_id = Column(String(64), nullable=True, index=True)
    admin_name = Column(String(255), nullable=True)
    admin_email = Column(String(255), nullable=True)
    target_id = Column(String(64), nullable=True)
    target_name = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
