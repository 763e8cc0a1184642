from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from app.models.schemas import TestCaseStatus, TestCasePriority

Base = declarative_base()


def _utcnow() -> datetime:
    # Sub-second precision matters: reconciliation keeps the earliest case.
    return datetime.now(timezone.utc)


class TestCaseModel(Base):
    __tablename__ = "test_cases"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(100), nullable=True, index=True)
    doc_id = Column(String(100), nullable=True, index=True)
    chunk_id = Column(String(64), nullable=True)
    chunk_index = Column(Integer, nullable=True)
    title = Column(String(255), nullable=False, index=True)
    module = Column(String(255), nullable=False, default="General")
    description = Column(Text, nullable=True)
    priority = Column(Enum(TestCasePriority), default=TestCasePriority.MEDIUM)
    status = Column(Enum(TestCaseStatus), default=TestCaseStatus.ACTIVE)
    tags = Column(JSON, default=list)
    preconditions = Column(Text, nullable=True)
    test_steps = Column(JSON, nullable=False, default=list)
    expected_result = Column(Text, nullable=False, default="")
    # Exact content signature, used to skip identical candidates on insert
    signature = Column(String(64), nullable=True, index=True)
    # 64-bit SimHash as a decimal string (does not fit a signed BIGINT)
    simhash = Column(String(20), nullable=True)
    source_model = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<TestCase(id={self.id}, title='{self.title}', project='{self.project_id}')>"


class ChunkModel(Base):
    __tablename__ = "requirement_chunks"

    id = Column(String(64), primary_key=True)
    doc_id = Column(String(100), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    text_hash = Column(String(64), nullable=False)
    token_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<Chunk(id={self.id}, doc='{self.doc_id}', index={self.chunk_index})>"


class GenerationRunModel(Base):
    __tablename__ = "generation_runs"
    # One run per chunk and settings fingerprint, even with concurrent callers
    __table_args__ = (UniqueConstraint("chunk_id", "settings_hash", name="uq_generation_run_chunk_settings"),)

    id = Column(Integer, primary_key=True, index=True)
    doc_id = Column(String(100), nullable=True, index=True)
    chunk_id = Column(String(64), nullable=False, index=True)
    settings_hash = Column(String(64), nullable=False, index=True)
    model = Column(String(100), nullable=True)
    saved = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    requested = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<GenerationRun(chunk={self.chunk_id}, settings={self.settings_hash}, saved={self.saved})>"
