"""
SQLAlchemy ORM Models for the GBV case tracker
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, Boolean, Date, Time, JSON, Uuid
from datetime import datetime
import uuid

from database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True)
    phone = Column(String(50))
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="agent", nullable=False, index=True)  # agent, admin, super-admin
    region = Column(String(100), index=True)
    department = Column(String(100))
    commune = Column(String(100))
    profile_picture = Column(Text)
    status = Column(String(20), default="active", nullable=False)  # active, inactive

    # Account lockout
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)
    last_failed_login = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User(user_id={self.user_id}, username={self.username}, role={self.role})>"


class Case(Base):
    __tablename__ = "cases"

    case_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Victim
    victim_name = Column(String(255))
    victim_age = Column(Integer)
    victim_gender = Column(String(50))
    victim_disability = Column(String(100))
    victim_marital_status = Column(String(100))
    victim_religion = Column(String(100))
    victim_ethnicity = Column(String(100))
    victim_education = Column(String(100))
    victim_profession = Column(String(255))
    victim_region = Column(String(100), nullable=False, index=True)
    victim_commune = Column(String(100))

    # Perpetrator
    perpetrator_name = Column(String(255))
    perpetrator_gender = Column(String(50))
    perpetrator_age = Column(Integer)
    perpetrator_profession = Column(String(255))
    perpetrator_region = Column(String(100))
    perpetrator_commune = Column(String(100))
    perpetrator_social_class = Column(String(100))
    relationship_to_victim = Column(String(100))

    # Violence
    violence_type = Column(String(100), index=True)
    violence_description = Column(Text)
    incident_date = Column(String(50))
    incident_location = Column(Text)

    # Support & referral
    services_provided = Column(JSON, default=list)
    follow_up_required = Column(String(50))
    support_needs = Column(Text)
    referrals = Column(Text)

    # System
    status = Column(String(20), default="pending", nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    agent_name = Column(String(100))
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Case(case_id={self.case_id}, status={self.status}, region={self.victim_region})>"


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    type = Column(String(50), default="other", nullable=False)
    priority = Column(String(20), default="medium", nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    location = Column(String(255))
    meeting_link = Column(String(500))
    related_case_id = Column(String(64), nullable=True)

    created_by = Column(String(64), nullable=False, index=True)
    creator_role = Column(String(20), nullable=False)
    assigned_to = Column(String(64), nullable=False, index=True)
    participants = Column(JSON, default=list)
    region = Column(String(100), index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Task(task_id={self.task_id}, status={self.status}, assigned_to={self.assigned_to})>"


class AuditLog(Base):
    __tablename__ = "audit_log"

    audit_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(50), nullable=False, index=True)
    user_id = Column(String(64), index=True)
    user_name = Column(String(100))
    user_role = Column(String(20))
    resource_type = Column(String(50))
    resource_id = Column(String(64))
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    details = Column(JSON, default=dict)
    success = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
