from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


class InvestigationStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class InvestigationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SourceType(str, Enum):
    WEB = "web"
    DOCUMENT = "document"
    MANUAL = "manual"
    API = "api"


class Importance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LeadStatus(str, Enum):
    PENDING = "pending"
    INVESTIGATING = "investigating"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class LeadOrigin(str, Enum):
    AGENT = "agent"
    USER = "user"


class Source(BaseModel):
    """A document discovered by search and optionally enriched by a crawl."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("source"))
    investigation_id: str
    url: str
    title: str = ""
    content: str = ""
    summary: str = ""
    credibility_score: float = Field(default=0.5, ge=0.0, le=1.0)
    source_type: SourceType = SourceType.WEB
    extracted_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    is_verified: bool = False


class Finding(BaseModel):
    """An atomic insight attributed to exactly one Source."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("finding"))
    investigation_id: str
    source_id: str
    content: str
    summary: str
    importance: Importance = Importance.MEDIUM
    confidence_level: float = Field(default=0.7, ge=0.0, le=1.0)
    extracted_at: datetime = Field(default_factory=utc_now)
    verified_by: str | None = None
    verified_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    related_findings: list[str] = Field(default_factory=list)


class Lead(BaseModel):
    """A suggested follow-up research direction."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("lead"))
    investigation_id: str
    query: str
    description: str = ""
    priority: LeadPriority = LeadPriority.MEDIUM
    status: LeadStatus = LeadStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    generated_by: LeadOrigin = LeadOrigin.AGENT
    parent_lead_id: str | None = None
    estimated_effort: int = 3
    finding_ids: list[str] = Field(default_factory=list)


class AgentThought(BaseModel):
    """Write-once record of the orchestrator's reasoning at one step."""

    model_config = ConfigDict(frozen=True)

    action: str
    reasoning: str
    confidence: float
    timestamp: datetime = Field(default_factory=utc_now)


class Investigation(BaseModel):
    id: str
    title: str
    description: str = ""
    query: str
    status: InvestigationStatus = InvestigationStatus.DRAFT
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    findings: list[Finding] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    leads: list[Lead] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    user_id: str = ""
    tags: list[str] = Field(default_factory=list)
    priority: InvestigationPriority = InvestigationPriority.MEDIUM
    step_count: int = 0
    thoughts: list[AgentThought] = Field(default_factory=list)
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (InvestigationStatus.COMPLETED, InvestigationStatus.ARCHIVED)
