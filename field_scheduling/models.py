from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), default="engineer", nullable=False)  # admin, editor, engineer, viewer
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignments = relationship("ProjectAssignment", back_populates="user", foreign_keys="ProjectAssignment.user_id")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String(255), nullable=False)
    poc_name = Column(String(255), nullable=True)  # Customer point of contact
    poc_email = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    # Project-level booking status; NULL until both dates are set
    schedule_status = Column(String(30), nullable=True)
    email_notifications_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    assignments = relationship(
        "ProjectAssignment", back_populates="project", cascade="all, delete-orphan"
    )
    confirmation_requests = relationship(
        "ConfirmationRequest", back_populates="project", cascade="all, delete-orphan"
    )


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_assignment_project_user"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_status = Column(String(30), default="draft", nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    project = relationship("Project", back_populates="assignments")
    user = relationship("User", back_populates="assignments", foreign_keys=[user_id])
    days = relationship(
        "AssignmentDay",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AssignmentDay.work_date",
    )
    history = relationship(
        "BookingStatusHistory",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.id",
    )
    confirmation_links = relationship(
        "ConfirmationRequestAssignment", back_populates="assignment", cascade="all, delete-orphan"
    )


class AssignmentDay(Base):
    __tablename__ = "assignment_days"
    __table_args__ = (UniqueConstraint("assignment_id", "work_date", name="uq_assignment_day_date"),)

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("project_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    work_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("ProjectAssignment", back_populates="days")


class BookingConflict(Base):
    __tablename__ = "booking_conflicts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # No FK cascade: conflict rows are an audit record and are only ever marked resolved
    assignment_id_1 = Column(Integer, nullable=False, index=True)
    assignment_id_2 = Column(Integer, nullable=False, index=True)
    conflict_date = Column(Date, nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False)
    override_reason = Column(Text, nullable=True)
    overridden_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    overridden_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class BookingStatusHistory(Base):
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("project_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status = Column(String(30), nullable=True)  # NULL only for the first status
    new_status = Column(String(30), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL for customer responses
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("ProjectAssignment", back_populates="history")


class ConfirmationRequest(Base):
    __tablename__ = "confirmation_requests"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, index=True, nullable=False)
    sent_to_email = Column(String(255), nullable=False)
    sent_to_name = Column(String(255), nullable=True)
    sent_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, confirmed, declined, expired
    responded_at = Column(DateTime, nullable=True)
    decline_reason = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="confirmation_requests")
    creator = relationship("User", foreign_keys=[created_by])
    assignment_links = relationship(
        "ConfirmationRequestAssignment", back_populates="request", cascade="all, delete-orphan"
    )


class ConfirmationRequestAssignment(Base):
    __tablename__ = "confirmation_request_assignments"
    __table_args__ = (
        UniqueConstraint("confirmation_request_id", "assignment_id", name="uq_confirmation_request_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    confirmation_request_id = Column(
        Integer, ForeignKey("confirmation_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignment_id = Column(
        Integer, ForeignKey("project_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    request = relationship("ConfirmationRequest", back_populates="assignment_links")
    assignment = relationship("ProjectAssignment", back_populates="confirmation_links")
