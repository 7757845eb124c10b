"""
SQLAlchemy ORM models for the ResearchNavigator database.
Stage outputs of an analysis are stored as JSON text blobs.
"""
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import enum
import uuid

from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class CommentTargetType(str, enum.Enum):
    """Analysis items a comment can be attached to."""

    PROFILE = "profile"
    PAPER = "paper"
    GAP = "gap"
    DIRECTION = "direction"


# Models
class User(Base):
    """User account, identified by email."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    # Relationships
    projects = relationship("Project", back_populates="user", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="user", cascade="all, delete-orphan")


class Project(Base):
    """Research project owning documents and analyses."""

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="projects")
    documents = relationship(
        "Document",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Document.created_at.desc()",
    )
    analyses = relationship(
        "Analysis",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Analysis.created_at.desc()",
    )
    comments = relationship("Comment", back_populates="project", cascade="all, delete-orphan")


class Document(Base):
    """Uploaded document; ``summary`` is filled in by background ingestion."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="documents")


class Analysis(Base):
    """One completed pipeline run.  Each stage output is a JSON text blob."""

    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    project_profile = Column(Text, nullable=False)
    scouted_papers = Column(Text, nullable=False)
    gaps = Column(Text, nullable=False)
    directions = Column(Text, nullable=False)
    criticized_directions = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="analyses")
    comments = relationship("Comment", back_populates="analysis", cascade="all, delete-orphan")


class Comment(Base):
    """Reviewer comment attached to one item of an analysis."""

    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis_id = Column(String(36), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    target_type = Column(SQLEnum(CommentTargetType), nullable=False)
    target_id = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="comments")
    analysis = relationship("Analysis", back_populates="comments")
    user = relationship("User", back_populates="comments")
