"""
ComplyWatch Database Configuration

SQLite (or PostgreSQL) database setup using SQLAlchemy async.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from pathlib import Path
from typing import AsyncGenerator, Optional
import logging

from .config import get_settings
from .utils.helpers import utc_now

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# EMPLOYEES & VIOLATIONS
# =============================================================================

class Employee(Base):
    """Monitored employee with an aggregate risk score."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True)
    department = Column(String)
    role = Column(String)
    risk_score = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    compliance_profile_id = Column(Integer)
    updated_at = Column(DateTime, default=utc_now)


class ViolationRecord(Base):
    """Detected violation attributed to an employee."""
    __tablename__ = "violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True, nullable=False)
    type = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    description = Column(Text)
    source = Column(String, default="classifier")
    details = Column("metadata", JSON, default=dict)
    status = Column(String, default="Active")
    created_at = Column(DateTime, default=utc_now, index=True)


# =============================================================================
# POLICIES
# =============================================================================

class SecurityPolicy(Base):
    """Configured remediation policy."""
    __tablename__ = "security_policies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    priority = Column(Integer, default=0)
    created_at = Column(DateTime, default=utc_now)


class PolicyConditionRecord(Base):
    """One ordered condition of a policy."""
    __tablename__ = "policy_conditions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    policy_id = Column(Integer, index=True, nullable=False)
    condition_type = Column(String, nullable=False)
    operator = Column(String, nullable=False)
    value = Column(Text)
    logical_operator = Column(String, default="AND")
    condition_order = Column(Integer, default=0)


class PolicyActionRecord(Base):
    """One ordered remediation action of a policy."""
    __tablename__ = "policy_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    policy_id = Column(Integer, index=True, nullable=False)
    action_type = Column(String, nullable=False)
    action_config = Column(JSON, default=dict)
    execution_order = Column(Integer, default=0)
    delay_minutes = Column(Integer, default=0)
    is_enabled = Column(Boolean, default=True)


class PolicyExecutionRecord(Base):
    """One attempt to carry out a policy's actions for a violation."""
    __tablename__ = "policy_executions"
    __table_args__ = (
        UniqueConstraint("policy_id", "violation_id", name="uq_policy_execution_violation"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    policy_id = Column(Integer, index=True, nullable=False)
    employee_id = Column(Integer, index=True, nullable=False)
    violation_id = Column(Integer, index=True, nullable=False)
    status = Column(String, default="pending", index=True)
    started_at = Column(DateTime, default=utc_now, index=True)
    completed_at = Column(DateTime)
    next_run_at = Column(DateTime, index=True)
    action_results = Column(JSON, default=list)
    error_message = Column(Text)
    summary = Column(Text)


# =============================================================================
# COMPLIANCE FRAMEWORK & THREAT CATEGORIES
# =============================================================================

class ComplianceRegulation(Base):
    __tablename__ = "compliance_regulations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String)
    is_active = Column(Boolean, default=True)


class InternalPolicy(Base):
    __tablename__ = "internal_policies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String)
    category = Column(String)
    is_active = Column(Boolean, default=True)


class ComplianceProfileRecord(Base):
    """Applicable regulation and policy codes for a group of employees."""
    __tablename__ = "compliance_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    monitoring_level = Column(String, default="standard")
    data_classification = Column(String, default="internal")
    applicable_regulations = Column(JSON, default=list)
    applicable_policies = Column(JSON, default=list)


class ThreatCategory(Base):
    __tablename__ = "threat_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    severity = Column(String, default="Medium")
    base_risk_score = Column(Integer, default=50)
    is_active = Column(Boolean, default=True)


class CategoryKeyword(Base):
    __tablename__ = "category_keywords"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, index=True, nullable=False)
    keyword = Column(String, nullable=False)
    weight = Column(Float, default=10)


# =============================================================================
# REMEDIATION RECORDS
# =============================================================================

class Incident(Base):
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    violation_id = Column(Integer)
    policy_id = Column(Integer)
    title = Column(String)
    description = Column(Text)
    severity = Column(String)
    escalation_level = Column(String)
    status = Column(String, default="open")
    created_at = Column(DateTime, default=utc_now)


class MonitoringSetting(Base):
    __tablename__ = "employee_monitoring_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    monitoring_level = Column(String)
    reason = Column(Text)
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=utc_now)


class LoggingSetting(Base):
    __tablename__ = "employee_logging_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    include_network = Column(Boolean, default=True)
    include_files = Column(Boolean, default=True)
    include_emails = Column(Boolean, default=True)
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=utc_now)


class AccessRestriction(Base):
    __tablename__ = "employee_access_restrictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    access_type = Column(String)
    reason = Column(Text)
    expires_at = Column(DateTime)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utc_now)


class SystemNotification(Base):
    __tablename__ = "system_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    type = Column(String)
    channel = Column(String)
    priority = Column(String)
    title = Column(String)
    message = Column(Text)
    recipients = Column(JSON, default=list)
    created_at = Column(DateTime, default=utc_now)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True)
    action = Column(String)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utc_now)


# =============================================================================
# SCHEMA ERRORS
# =============================================================================

_MISSING_SCHEMA_MARKERS = (
    "no such table",
    "undefinedtable",
    "42p01",
)


def is_missing_schema_error(exc: BaseException) -> bool:
    """
    Return True when an exception means a required table does not exist.

    Recognises SQLite ("no such table") and PostgreSQL (SQLSTATE 42P01,
    UndefinedTable / 'relation ... does not exist') errors, including when
    wrapped by SQLAlchemy.
    """
    candidates = [exc, getattr(exc, "orig", None), exc.__cause__]
    for candidate in candidates:
        if candidate is None:
            continue
        if getattr(candidate, "pgcode", None) == "42P01" or getattr(candidate, "sqlstate", None) == "42P01":
            return True
        text = f"{type(candidate).__name__} {candidate}".lower()
        if any(marker in text for marker in _MISSING_SCHEMA_MARKERS):
            return True
        if "relation" in text and "does not exist" in text:
            return True
    return False


# =============================================================================
# DATABASE ENGINE & SESSION
# =============================================================================

# Engine will be created on first access
_engine: Optional[AsyncEngine] = None
_async_session_factory = None


def build_database_url(url: str) -> str:
    """Convert a plain sqlite:/// URL to its aiosqlite form."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for an arbitrary database URL."""
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(build_database_url(url), echo=echo, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for(settings.database_url, echo=settings.debug)
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get or create session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = create_session_factory(get_engine())
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides database session.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database, creating tables if they don't exist.

    Call this on application startup.
    """
    logger.info("Initializing database...")
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized successfully")


async def close_db() -> None:
    """
    Close database connections.

    Call this on application shutdown.
    """
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connections closed")
