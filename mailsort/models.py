"""
Core data models for the mailsort classifier.

This module defines the Pydantic models shared by the queue, the batch
engine and the routing rules: work items and their sources, the raw record
returned by the extraction service, and the analysed result.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================


class WorkItemStatus(str, Enum):
    """Lifecycle status of a work item."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkItemStatus.SUCCEEDED, WorkItemStatus.FAILED, WorkItemStatus.NEEDS_REVIEW)


class Routing(str, Enum):
    """Coarse forwarding destination."""

    FORWARD_TO_AYR = "forward_to_ayr"
    FORWARD_TO_OZ = "forward_to_oz"
    UNKNOWN = "unknown"


class Importance(str, Enum):
    """Urgency tag assigned by the extraction service."""

    CRITICAL_FORWARD = "CRITICAL_FORWARD"
    HIGH_FORWARD = "HIGH_FORWARD"
    ROUTINE_OPTIONAL = "ROUTINE_OPTIONAL"
    DIGITAL_ONLY = "DIGITAL_ONLY"

    @property
    def is_urgent(self) -> bool:
        return self in (Importance.CRITICAL_FORWARD, Importance.HIGH_FORWARD)


class AutoAction(str, Enum):
    """Suggested automatic handling."""

    BATCH_TAG_FORWARD = "batch_tag_forward"
    ARCHIVE_DIGITAL = "archive_digital"
    HUMAN_REVIEW_QUEUE = "human_review_queue"


class Confidence(str, Enum):
    """Self-reported extraction confidence."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Classification(str, Enum):
    """Final user-facing bucket for one mail piece."""

    FORWARD_PRIMARY = "forward_primary"
    FORWARD_SECONDARY = "forward_secondary"
    DIGITAL_STORE = "digital_store"
    DIGITAL_STORE_ACTION = "digital_store_action"
    SHRED = "shred"
    UNDETERMINED = "undetermined"

    @property
    def is_forwarding(self) -> bool:
        return self in (Classification.FORWARD_PRIMARY, Classification.FORWARD_SECONDARY)

    @property
    def label(self) -> str:
        return CLASSIFICATION_LABELS[self]

    @property
    def code(self) -> str:
        return CLASSIFICATION_CODES[self]


CLASSIFICATION_LABELS: Dict[Classification, str] = {
    Classification.FORWARD_PRIMARY: "FORWARD TO AYR (Dad's mail)",
    Classification.FORWARD_SECONDARY: "FORWARD TO OZ (Physical items needed)",
    Classification.DIGITAL_STORE: "DIGITAL STORE (Shred physical copy)",
    Classification.DIGITAL_STORE_ACTION: "DIGITAL STORE (Action required)",
    Classification.SHRED: "SHRED (Junk)",
    Classification.UNDETERMINED: "TBC (Can't determine)",
}

# Short tags used inside suggested filenames
CLASSIFICATION_CODES: Dict[Classification, str] = {
    Classification.FORWARD_PRIMARY: "FWD-AYR",
    Classification.FORWARD_SECONDARY: "FWD-OZ",
    Classification.DIGITAL_STORE: "DIGITAL",
    Classification.DIGITAL_STORE_ACTION: "ACTION",
    Classification.SHRED: "SHRED",
    Classification.UNDETERMINED: "TBC",
}


# =============================================================================
# Sources
# =============================================================================


class LocalSource(BaseModel):
    """A file on the local filesystem."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    path: Path = Field(..., description="Path to the local file")


class RemoteSource(BaseModel):
    """A file held by a remote storage provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    provider: str = Field(default="drive", description="Name of the storage provider")
    file_id: str = Field(..., min_length=1, description="Provider file ID")
    mime_hint: Optional[str] = Field(None, description="Mime type reported by the provider")


SourceRef = Annotated[Union[LocalSource, RemoteSource], Field(discriminator="kind")]


class SourceFile(BaseModel):
    """One entry of a storage listing."""

    id: str = Field(..., description="Provider file ID")
    display_name: str = Field(..., description="Original filename")
    mime_hint: Optional[str] = Field(None, description="Mime type reported by the provider")
    created_time: Optional[datetime] = None


# =============================================================================
# Extraction Records
# =============================================================================


def _coerce_enum(enum_cls, value: Any, default: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip())
        except ValueError:
            return default
    return default


class RawRecord(BaseModel):
    """
    One letter as reported by the extraction service.

    The service answers with loosely-shaped JSON, so every field is optional
    and enum fields fall back to a safe default instead of failing the whole
    document.
    """

    model_config = ConfigDict(extra="ignore")

    ukpostbox_ref: Optional[str] = None
    drive_file_id: Optional[str] = None
    filename: Optional[str] = None
    recipient_name: Optional[str] = None
    delivery_address: Optional[str] = None
    sender: Optional[str] = None
    document_type: Optional[str] = None
    date_on_document: Optional[str] = None
    account_or_reference: Optional[str] = None
    routing: Routing = Routing.UNKNOWN
    importance: Optional[Importance] = None
    auto_action: Optional[AutoAction] = None
    reasoning: Optional[str] = None
    confidence: Optional[Confidence] = None

    @field_validator(
        "ukpostbox_ref",
        "drive_file_id",
        "filename",
        "recipient_name",
        "delivery_address",
        "sender",
        "document_type",
        "date_on_document",
        "account_or_reference",
        "reasoning",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        """Accept numbers for text fields; drop anything else."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return str(v)
        if isinstance(v, str):
            return v
        return None

    @field_validator("routing", mode="before")
    @classmethod
    def coerce_routing(cls, v: Any) -> Routing:
        return _coerce_enum(Routing, v, Routing.UNKNOWN)

    @field_validator("importance", mode="before")
    @classmethod
    def coerce_importance(cls, v: Any) -> Optional[Importance]:
        if isinstance(v, str):
            v = v.upper()
        return _coerce_enum(Importance, v, None)

    @field_validator("auto_action", mode="before")
    @classmethod
    def coerce_auto_action(cls, v: Any) -> Optional[AutoAction]:
        return _coerce_enum(AutoAction, v, None)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Optional[Confidence]:
        if isinstance(v, str):
            v = v.lower()
        return _coerce_enum(Confidence, v, None)


class AnalysisResult(BaseModel):
    """One logical mail piece extracted from a work item."""

    model_config = ConfigDict(frozen=True)

    # Raw extracted fields
    recipient_name: Optional[str] = None
    delivery_address: Optional[str] = None
    sender: Optional[str] = None
    document_type: Optional[str] = None
    date_on_document: Optional[str] = None
    account_or_reference: Optional[str] = None
    raw_reference_text: Optional[str] = None
    confidence: Optional[Confidence] = None
    reasoning: Optional[str] = None
    source_file_id: Optional[str] = None

    # Derived fields
    routing: Routing = Routing.UNKNOWN
    importance: Optional[Importance] = None
    auto_action: Optional[AutoAction] = None
    classification: Classification = Classification.UNDETERMINED
    canonical_item_id: str = Field(..., min_length=1)
    suggested_filename: str = Field(..., min_length=1)

    @property
    def needs_review(self) -> bool:
        return self.classification == Classification.UNDETERMINED


# =============================================================================
# Work Items
# =============================================================================


class WorkItem(BaseModel):
    """
    One physical artifact awaiting or having undergone analysis.

    Work items are immutable: every status change produces a new instance
    which the queue store swaps in by id.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique item ID")
    source: SourceRef
    display_name: str = Field(..., min_length=1, description="Original filename")
    status: WorkItemStatus = WorkItemStatus.IDLE
    status_message: Optional[str] = None
    results: Optional[List[AnalysisResult]] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_outcome_fields(self) -> "WorkItem":
        """Exactly one of results/error for finished items, neither otherwise."""
        if self.status in (WorkItemStatus.SUCCEEDED, WorkItemStatus.NEEDS_REVIEW):
            if self.results is None or self.error is not None:
                raise ValueError(f"{self.status.value} items carry results and no error")
        elif self.status == WorkItemStatus.FAILED:
            if self.error is None or self.results is not None:
                raise ValueError("failed items carry an error and no results")
        elif self.results is not None or self.error is not None:
            raise ValueError(f"{self.status.value} items carry neither results nor error")
        return self

    @property
    def natural_key(self) -> str:
        """Remote file id for remote sources, display name for local ones."""
        if isinstance(self.source, RemoteSource):
            return self.source.file_id
        return self.display_name

    def _evolve(self, **changes: Any) -> "WorkItem":
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self)(**data)

    def start_analysis(self, message: str) -> "WorkItem":
        return self._evolve(status=WorkItemStatus.ANALYZING, status_message=message, results=None, error=None)

    def with_progress(self, message: str) -> "WorkItem":
        return self._evolve(status_message=message)

    def complete(self, results: List[AnalysisResult]) -> "WorkItem":
        """Finish with results; any undetermined piece puts the whole item up for review."""
        needs_review = not results or any(r.needs_review for r in results)
        return self._evolve(
            status=WorkItemStatus.NEEDS_REVIEW if needs_review else WorkItemStatus.SUCCEEDED,
            status_message=None,
            results=list(results),
            error=None,
        )

    def fail(self, error: str) -> "WorkItem":
        return self._evolve(status=WorkItemStatus.FAILED, status_message=None, results=None, error=error)

    def reset(self) -> "WorkItem":
        return self._evolve(status=WorkItemStatus.IDLE, status_message=None, results=None, error=None)
