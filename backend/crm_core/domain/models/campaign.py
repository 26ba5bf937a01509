"""
Campaign Domain Models
Campaign header, its batches and the contact snapshots they carry
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Set
from datetime import datetime
from enum import Enum

from crm_core.domain.models.template_mapping import TemplateVariableMapping


class CampaignChannel(str, Enum):
    """Outbound channel"""
    WHATSAPP = "whatsapp"
    CALLS = "calls"

    @classmethod
    def _missing_(cls, value):
        # Rows written by the Spanish UI use "llamadas"
        if value == "llamadas":
            return cls.CALLS
        return None


class CampaignStatus(str, Enum):
    """Campaign status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchStatus(str, Enum):
    """Status of a campaign batch"""
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class BatchOutcome(str, Enum):
    """Terminal outcome reported by the delivery system"""
    SENT = "sent"
    FAILED = "failed"


TERMINAL_BATCH_STATUSES: Set[BatchStatus] = {BatchStatus.SENT, BatchStatus.FAILED}


class CampaignContactSnapshot(BaseModel):
    """Contact copied into a batch at creation time"""
    model_config = ConfigDict(frozen=True)

    id: str
    nombre: Optional[str] = None
    numero: str
    attributes: Dict[str, Any] = Field(default_factory=dict)


class Campaign(BaseModel):
    """Outbound campaign launched from a frozen contact selection"""
    id: str
    tenant_id: str
    channel: CampaignChannel
    status: CampaignStatus = CampaignStatus.PENDING
    total_contacts: int = 0
    total_batches: int = 0
    batches_sent: int = 0
    batches_failed: int = 0
    created_at: datetime
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    # Channel settings merged into every batch payload (template name, sender id)
    delivery_settings: Dict[str, Any] = Field(default_factory=dict)
    variable_mapping: List[TemplateVariableMapping] = Field(default_factory=list)

    @property
    def batches_finished(self) -> int:
        return self.batches_sent + self.batches_failed

    @property
    def is_finished(self) -> bool:
        return self.total_batches > 0 and self.batches_finished >= self.total_batches

    @classmethod
    def from_db_row(cls, row: dict) -> "Campaign":
        """Build from a campaigns row"""
        return cls(
            id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            channel=row["channel"],
            status=row.get("status") or CampaignStatus.PENDING,
            total_contacts=row.get("total_contacts") or 0,
            total_batches=row.get("total_batches") or 0,
            batches_sent=row.get("batches_sent") or 0,
            batches_failed=row.get("batches_failed") or 0,
            created_at=row["created_at"],
            completed_at=row.get("completed_at"),
            created_by=row.get("created_by"),
            updated_at=row.get("updated_at"),
            delivery_settings=row.get("delivery_settings") or {},
            variable_mapping=row.get("variable_mapping") or [],
        )

    def to_db_dict(self) -> dict:
        """Serialize for insertion"""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "channel": self.channel.value,
            "status": self.status.value,
            "total_contacts": self.total_contacts,
            "total_batches": self.total_batches,
            "batches_sent": self.batches_sent,
            "batches_failed": self.batches_failed,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_by": self.created_by,
            "delivery_settings": self.delivery_settings,
            "variable_mapping": [m.model_dump() for m in self.variable_mapping],
        }


class CampaignBatch(BaseModel):
    """
    A fixed-size slice of a campaign's contacts.

    Lifecycle: pending -> processing -> sent | failed. A failed batch goes
    back to pending only through an explicit operator retry.
    """
    id: str
    campaign_id: str
    tenant_id: str
    batch_number: int = Field(..., ge=1)
    total_batches: int = Field(..., ge=1)
    status: BatchStatus = BatchStatus.PENDING
    scheduled_for: datetime
    processed_at: Optional[datetime] = None
    retry_count: int = 0
    error_message: Optional[str] = None
    contacts: List[CampaignContactSnapshot] = Field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict) -> "CampaignBatch":
        """Build from a campaign_queue row"""
        return cls(
            id=str(row["id"]),
            campaign_id=str(row["campaign_id"]),
            tenant_id=str(row["tenant_id"]),
            batch_number=row["batch_number"],
            total_batches=row["total_batches"],
            status=row.get("status") or BatchStatus.PENDING,
            scheduled_for=row["scheduled_for"],
            processed_at=row.get("processed_at"),
            retry_count=row.get("retry_count") or 0,
            error_message=row.get("error_message"),
            contacts=[CampaignContactSnapshot(**c) for c in (row.get("contacts") or [])],
        )

    def to_db_dict(self) -> dict:
        """Serialize for insertion"""
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "tenant_id": self.tenant_id,
            "batch_number": self.batch_number,
            "total_batches": self.total_batches,
            "status": self.status.value,
            "scheduled_for": self.scheduled_for.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "retry_count": self.retry_count,
            "error_message": self.error_message,
            "contacts": [c.model_dump() for c in self.contacts],
        }

    def __repr__(self) -> str:
        return (
            f"CampaignBatch(id={self.id[:8]}..., "
            f"batch={self.batch_number}/{self.total_batches}, "
            f"status={self.status.value}, "
            f"contacts={len(self.contacts)})"
        )


class CampaignContactWithBatch(CampaignContactSnapshot):
    """Snapshot contact flattened with its batch state"""
    batch_number: int
    batch_status: BatchStatus
    sent_at: Optional[datetime] = None
