"""
Webhook Endpoints
Callbacks from the batch delivery system.

Both endpoints are machine-to-machine and authenticated with the shared
X-Webhook-Secret header instead of a user session.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from crm_core.api.v1.dependencies import get_orchestrator, verify_webhook_secret
from crm_core.domain.models.campaign import BatchOutcome
from crm_core.domain.services.campaign_orchestrator import CampaignBatchOrchestrator, progress

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(verify_webhook_secret)],
)


class BatchStartedEvent(BaseModel):
    batch_id: str


class BatchOutcomeEvent(BaseModel):
    """Terminal delivery result of one batch"""
    batch_id: str
    outcome: BatchOutcome
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None


@router.post("/batch-started")
async def batch_started(
    event: BatchStartedEvent,
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """
    Claim a pending batch for delivery.

    Returns the webhook payload to send (contacts, batch_info and resolved
    template parameters). A second claim of the same batch gets 409.
    """
    batch = await orchestrator.start_batch(event.batch_id)
    return {"payload": await orchestrator.delivery_payload(batch)}


@router.post("/batch-outcome")
async def batch_outcome(
    event: BatchOutcomeEvent,
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """Record that a processing batch was sent or failed"""
    campaign = await orchestrator.record_batch_outcome(
        event.batch_id,
        event.outcome,
        processed_at=event.processed_at,
        error_message=event.error_message,
    )
    return {
        "campaign_id": campaign.id,
        "status": campaign.status.value,
        "batches_sent": campaign.batches_sent,
        "batches_failed": campaign.batches_failed,
        "progress": progress(campaign),
    }
