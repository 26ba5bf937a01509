"""
Campaigns API
Launch batched outbound campaigns and follow their delivery.

Only tenant owners and general commercial directors may use these
endpoints (ComercialPermissions.can_access_campaigns).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from crm_core.api.v1.dependencies import (
    get_config,
    get_orchestrator,
    get_visibility_service,
    require_campaign_access,
)
from crm_core.core.config import ConfigManager
from crm_core.core.exceptions import ValidationError
from crm_core.domain.models.campaign import Campaign, CampaignChannel, CampaignStatus
from crm_core.domain.models.scope import UserScope
from crm_core.domain.models.template_mapping import TemplateVariableMapping
from crm_core.domain.services import template_resolver
from crm_core.domain.services.campaign_orchestrator import (
    DEFAULT_BATCH_SIZE,
    CampaignBatchOrchestrator,
    duration_minutes,
    estimated_minutes,
    progress,
)
from crm_core.domain.services.contact_visibility import ContactVisibilityService
from crm_core.domain.services.tenant_guard import require_tenant

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


class LaunchCampaignRequest(BaseModel):
    """Request body for launching a campaign"""
    channel: CampaignChannel
    contact_ids: List[str] = Field(default_factory=list)
    batch_size: Optional[int] = Field(None, description="Defaults to campaigns.batch_size")

    # WhatsApp only
    template_name: Optional[str] = None
    template_body: Optional[str] = Field(None, description="Template text with {{n}} placeholders (required for whatsapp)")
    phone_number_id: Optional[str] = None
    variable_mapping: List[TemplateVariableMapping] = Field(default_factory=list)


def _campaign_view(campaign: Campaign, batch_interval_minutes: int) -> dict:
    data = campaign.model_dump(mode="json")
    data["progress"] = progress(campaign)
    data["duration_minutes"] = duration_minutes(campaign)
    data["estimated_minutes"] = estimated_minutes(campaign.total_batches, batch_interval_minutes)
    return data


def _delivery_settings(body: LaunchCampaignRequest) -> dict:
    """Validate channel settings and return the part shared by every batch"""
    if body.channel != CampaignChannel.WHATSAPP:
        return {}

    if not body.template_name:
        raise ValidationError("template_name is required for WhatsApp campaigns")
    if not body.template_body or not body.template_body.strip():
        raise ValidationError("template_body is required for WhatsApp campaigns")

    variable_count = template_resolver.count_variables(body.template_body)
    template_resolver.validate_mapping(body.variable_mapping, variable_count)

    settings = {"template_name": body.template_name}
    if body.phone_number_id:
        settings["phone_number_id"] = body.phone_number_id
    return settings


@router.get("/")
async def list_campaigns(
    channel: Optional[CampaignChannel] = None,
    status: Optional[CampaignStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """List campaigns newest first"""
    campaigns, total = await orchestrator.list_campaigns(
        scope,
        channel=channel,
        status=status,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return {
        "campaigns": [_campaign_view(c, orchestrator.batch_interval_minutes) for c in campaigns],
        "page": page,
        "page_size": page_size,
        "total": total,
    }


@router.post("/", status_code=201)
async def launch_campaign(
    body: LaunchCampaignRequest,
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
    visibility: ContactVisibilityService = Depends(get_visibility_service),
    config: ConfigManager = Depends(get_config),
):
    """
    Launch a campaign.

    1. Validates channel settings (template + variable mapping for WhatsApp)
    2. Loads the selected contacts, all of which must be visible to the caller
    3. Snapshots them into batches scheduled batch_interval_minutes apart
    """
    tenant_id = require_tenant(scope)
    delivery_settings = _delivery_settings(body)
    contacts = await visibility.require_visible(scope, body.contact_ids)

    batch_size = body.batch_size
    if batch_size is None:
        batch_size = config.get_int("campaigns.batch_size", DEFAULT_BATCH_SIZE)

    campaign = await orchestrator.create_campaign(
        tenant_id,
        body.channel,
        contacts,
        batch_size=batch_size,
        created_by=scope.user_id,
        delivery_settings=delivery_settings,
        variable_mapping=body.variable_mapping if body.channel == CampaignChannel.WHATSAPP else (),
    )
    return {"campaign": _campaign_view(campaign, orchestrator.batch_interval_minutes)}


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """Get campaign details with progress"""
    campaign = await orchestrator.get_campaign(scope, campaign_id)
    return {"campaign": _campaign_view(campaign, orchestrator.batch_interval_minutes)}


@router.get("/{campaign_id}/batches")
async def get_campaign_batches(
    campaign_id: str,
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """Batches of a campaign ordered by batch number"""
    batches = await orchestrator.get_campaign_batches(scope, campaign_id)
    return {
        "batches": [
            b.model_dump(mode="json", exclude={"contacts"}) | {"contacts_in_batch": len(b.contacts)}
            for b in batches
        ]
    }


@router.get("/{campaign_id}/contacts")
async def get_campaign_contacts(
    campaign_id: str,
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """Every contact of the campaign with the state of its batch"""
    contacts = await orchestrator.get_campaign_contacts(scope, campaign_id)
    return {"contacts": [c.model_dump(mode="json") for c in contacts]}


@router.post("/{campaign_id}/batches/{batch_id}/retry")
async def retry_batch(
    campaign_id: str,
    batch_id: str,
    scope: UserScope = Depends(require_campaign_access),
    orchestrator: CampaignBatchOrchestrator = Depends(get_orchestrator),
):
    """Send a failed batch again"""
    batch = await orchestrator.retry_batch(scope, campaign_id, batch_id)
    return {"batch": batch.model_dump(mode="json", exclude={"contacts"})}
