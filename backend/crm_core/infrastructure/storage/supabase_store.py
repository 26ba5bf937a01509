"""
Supabase Store
PostgREST-backed implementation of the profile, contact and campaign stores.

Tables (see migrations/001_comercial_campaign_core.sql):
    profiles          - tenant membership, comercial role, sede
    user_roles        - platform roles (super_admin)
    crm_contacts      - tenant contacts
    campaigns         - campaign headers and batch counters
    campaign_queue    - one row per batch with its contact snapshot

Conditional writes are expressed as filtered updates so PostgREST only
touches the row when the expected state still holds. Batch outcomes and
retries go through the complete_campaign_batch and retry_campaign_batch
RPCs, which update the batch and its campaign counters in one transaction.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

from supabase import Client

from crm_core.domain.interfaces.campaign_store import CampaignStore
from crm_core.domain.interfaces.contact_store import ContactStore
from crm_core.domain.interfaces.profile_store import ComercialUserStore
from crm_core.domain.models.campaign import (
    BatchOutcome,
    BatchStatus,
    Campaign,
    CampaignBatch,
    CampaignChannel,
    CampaignStatus,
)
from crm_core.domain.models.comercial_user import ComercialUser
from crm_core.domain.models.contact import Contact, ContactQuery
from crm_core.domain.models.scope import ComercialRole, RoleValue, role_value
from crm_core.utils.tenant_filter import apply_contact_query, apply_tenant_filter

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, tenant_id, email, full_name, comercial_role, location_id, external_id"
CONTACT_COLUMNS = "id, tenant_id, location_id, assigned_to, status_id, nombre, numero, attributes"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(data: Any) -> Optional[dict]:
    """PostgREST returns lists for table calls and a row or list for RPCs"""
    if not data:
        return None
    if isinstance(data, list):
        return data[0]
    return data


class SupabaseStore(ComercialUserStore, ContactStore, CampaignStore):
    """All persistence interfaces over one Supabase client"""

    def __init__(self, client: Client):
        self._client = client

    # ProfileStore / ComercialUserStore

    async def get_profile(self, user_id: str) -> Optional[ComercialUser]:
        response = self._client.table("profiles").select(
            PROFILE_COLUMNS
        ).eq("id", user_id).limit(1).execute()
        row = _first(response.data)
        return ComercialUser.from_db_row(row) if row else None

    async def is_super_admin(self, user_id: str) -> bool:
        response = self._client.table("user_roles").select(
            "role"
        ).eq("user_id", user_id).eq("role", "super_admin").limit(1).execute()
        return bool(response.data)

    async def list_users(self, tenant_id: str) -> List[ComercialUser]:
        query = self._client.table("profiles").select(PROFILE_COLUMNS)
        response = apply_tenant_filter(query, tenant_id).order("email").execute()
        return [ComercialUser.from_db_row(row) for row in response.data or []]

    async def compare_and_set_role(
        self,
        user_id: str,
        expected_role: Optional[RoleValue],
        new_role: Optional[ComercialRole],
        location_id: Optional[str],
        external_id: Optional[str],
    ) -> Optional[ComercialUser]:
        query = self._client.table("profiles").update({
            "comercial_role": role_value(new_role),
            "location_id": location_id,
            "external_id": external_id,
            "updated_at": _now_iso(),
        }).eq("id", user_id)

        if expected_role is None:
            query = query.is_("comercial_role", "null")
        else:
            query = query.eq("comercial_role", role_value(expected_role))

        response = query.execute()
        row = _first(response.data)
        return ComercialUser.from_db_row(row) if row else None

    # ContactStore

    async def list_contacts(
        self,
        query: ContactQuery,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Contact]:
        if query.deny_all:
            return []
        builder = apply_contact_query(
            self._client.table("crm_contacts").select(CONTACT_COLUMNS), query
        )
        response = builder.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return [Contact.from_db_row(row) for row in response.data or []]

    async def list_contact_ids(self, query: ContactQuery, limit: int) -> List[str]:
        if query.deny_all:
            return []
        builder = apply_contact_query(self._client.table("crm_contacts").select("id"), query)
        response = builder.limit(limit).execute()
        return [str(row["id"]) for row in response.data or []]

    async def get_contacts(self, contact_ids: Sequence[str]) -> List[Contact]:
        if not contact_ids:
            return []
        response = self._client.table("crm_contacts").select(
            CONTACT_COLUMNS
        ).in_("id", list(contact_ids)).execute()
        return [Contact.from_db_row(row) for row in response.data or []]

    async def assign_contacts(
        self,
        contact_ids: Sequence[str],
        assigned_to: Optional[str],
        location_id: Optional[str] = None,
        update_location: bool = False,
    ) -> int:
        if not contact_ids:
            return 0
        changes = {"assigned_to": assigned_to, "updated_at": _now_iso()}
        if update_location:
            changes["location_id"] = location_id

        response = self._client.table("crm_contacts").update(
            changes
        ).in_("id", list(contact_ids)).execute()
        return len(response.data or [])

    # CampaignStore

    async def insert_campaign(self, campaign: Campaign) -> Campaign:
        response = self._client.table("campaigns").insert(campaign.to_db_dict()).execute()
        row = _first(response.data)
        return Campaign.from_db_row(row) if row else campaign

    async def insert_batches(self, batches: Sequence[CampaignBatch]) -> int:
        # A single bulk insert is one statement, so it commits all rows or none
        response = self._client.table("campaign_queue").insert(
            [batch.to_db_dict() for batch in batches]
        ).execute()
        return len(response.data or [])

    async def delete_campaign(self, campaign_id: str) -> None:
        self._client.table("campaign_queue").delete().eq("campaign_id", campaign_id).execute()
        self._client.table("campaigns").delete().eq("id", campaign_id).execute()
        logger.info(f"Deleted campaign {campaign_id} and its batches")

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        response = self._client.table("campaigns").select("*").eq("id", campaign_id).limit(1).execute()
        row = _first(response.data)
        return Campaign.from_db_row(row) if row else None

    async def list_campaigns(
        self,
        tenant_id: Optional[str],
        channel: Optional[CampaignChannel] = None,
        status: Optional[CampaignStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        query = apply_tenant_filter(
            self._client.table("campaigns").select("*", count="exact"), tenant_id
        )
        if channel:
            query = query.eq("channel", channel.value)
        if status:
            query = query.eq("status", status.value)

        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        campaigns = [Campaign.from_db_row(row) for row in response.data or []]
        total = response.count if response.count is not None else len(campaigns)
        return campaigns, total

    async def get_batch(self, batch_id: str) -> Optional[CampaignBatch]:
        response = self._client.table("campaign_queue").select("*").eq("id", batch_id).limit(1).execute()
        row = _first(response.data)
        return CampaignBatch.from_db_row(row) if row else None

    async def list_batches(self, campaign_id: str) -> List[CampaignBatch]:
        response = self._client.table("campaign_queue").select(
            "*"
        ).eq("campaign_id", campaign_id).order("batch_number").execute()
        return [CampaignBatch.from_db_row(row) for row in response.data or []]

    async def transition_batch(
        self,
        batch_id: str,
        from_status: BatchStatus,
        to_status: BatchStatus,
    ) -> Optional[CampaignBatch]:
        response = self._client.table("campaign_queue").update({
            "status": to_status.value,
            "updated_at": _now_iso(),
        }).eq("id", batch_id).eq("status", from_status.value).execute()
        row = _first(response.data)
        return CampaignBatch.from_db_row(row) if row else None

    @staticmethod
    def _batch_and_campaign(data: Any) -> Optional[Tuple[CampaignBatch, Campaign]]:
        """Unpack the {"batch": ..., "campaign": ...} object the batch RPCs return"""
        result = _first(data)
        if not result:
            return None
        return CampaignBatch.from_db_row(result["batch"]), Campaign.from_db_row(result["campaign"])

    async def complete_batch(
        self,
        batch_id: str,
        outcome: BatchOutcome,
        processed_at: datetime,
        error_message: Optional[str] = None,
    ) -> Optional[Tuple[CampaignBatch, Campaign]]:
        response = self._client.rpc("complete_campaign_batch", {
            "p_batch_id": batch_id,
            "p_outcome": outcome.value,
            "p_processed_at": processed_at.isoformat(),
            "p_error_message": error_message,
        }).execute()
        return self._batch_and_campaign(response.data)

    async def reopen_batch(self, batch_id: str) -> Optional[Tuple[CampaignBatch, Campaign]]:
        response = self._client.rpc("retry_campaign_batch", {"p_batch_id": batch_id}).execute()
        return self._batch_and_campaign(response.data)

    async def mark_campaign_in_progress(self, campaign_id: str) -> Optional[Campaign]:
        response = self._client.table("campaigns").update({
            "status": CampaignStatus.IN_PROGRESS.value,
            "updated_at": _now_iso(),
        }).eq("id", campaign_id).eq("status", CampaignStatus.PENDING.value).execute()
        row = _first(response.data)
        return Campaign.from_db_row(row) if row else None
