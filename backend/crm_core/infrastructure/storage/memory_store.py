"""
In-Memory Store
Profiles, contacts and campaigns held in process memory.

Used for local development (storage.backend: memory) and tests. Every
read-modify-write runs under one asyncio.Lock, which gives the same
atomicity the Supabase RPCs give with row locks.
"""
import asyncio
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

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
from crm_core.domain.models.scope import ComercialRole, RoleValue


class MemoryStore(ComercialUserStore, ContactStore, CampaignStore):
    """Single in-process store implementing every persistence interface"""

    def __init__(
        self,
        profiles: Iterable[ComercialUser] = (),
        contacts: Iterable[Contact] = (),
        super_admins: Iterable[str] = (),
    ):
        self._profiles: Dict[str, ComercialUser] = {p.id: p for p in profiles}
        self._contacts: Dict[str, Contact] = {c.id: c for c in contacts}
        self._super_admins: Set[str] = set(super_admins)
        self._campaigns: Dict[str, Campaign] = {}
        self._batches: Dict[str, CampaignBatch] = {}
        self._lock = asyncio.Lock()

    # Seeding

    def add_profile(self, profile: ComercialUser, super_admin: bool = False) -> None:
        self._profiles[profile.id] = profile
        if super_admin:
            self._super_admins.add(profile.id)

    def add_contact(self, contact: Contact) -> None:
        self._contacts[contact.id] = contact

    # ProfileStore / ComercialUserStore

    async def get_profile(self, user_id: str) -> Optional[ComercialUser]:
        return self._profiles.get(user_id)

    async def is_super_admin(self, user_id: str) -> bool:
        return user_id in self._super_admins

    async def list_users(self, tenant_id: str) -> List[ComercialUser]:
        users = [p for p in self._profiles.values() if p.tenant_id == tenant_id]
        return sorted(users, key=lambda p: p.email)

    async def compare_and_set_role(
        self,
        user_id: str,
        expected_role: Optional[RoleValue],
        new_role: Optional[ComercialRole],
        location_id: Optional[str],
        external_id: Optional[str],
    ) -> Optional[ComercialUser]:
        async with self._lock:
            current = self._profiles.get(user_id)
            if current is None or current.comercial_role != expected_role:
                return None
            updated = current.model_copy(update={
                "comercial_role": new_role,
                "location_id": location_id,
                "external_id": external_id,
            })
            self._profiles[user_id] = updated
            return updated

    # ContactStore

    def _matching(self, query: ContactQuery) -> List[Contact]:
        if query.deny_all:
            return []
        return [c for c in self._contacts.values() if query.matches(c)]

    async def list_contacts(
        self,
        query: ContactQuery,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Contact]:
        return self._matching(query)[offset:offset + limit]

    async def list_contact_ids(self, query: ContactQuery, limit: int) -> List[str]:
        return [c.id for c in self._matching(query)[:limit]]

    async def get_contacts(self, contact_ids: Sequence[str]) -> List[Contact]:
        return [self._contacts[cid] for cid in contact_ids if cid in self._contacts]

    async def assign_contacts(
        self,
        contact_ids: Sequence[str],
        assigned_to: Optional[str],
        location_id: Optional[str] = None,
        update_location: bool = False,
    ) -> int:
        changes = {"assigned_to": assigned_to}
        if update_location:
            changes["location_id"] = location_id

        updated = 0
        async with self._lock:
            for cid in contact_ids:
                contact = self._contacts.get(cid)
                if contact is None:
                    continue
                self._contacts[cid] = contact.model_copy(update=changes)
                updated += 1
        return updated

    # CampaignStore

    async def insert_campaign(self, campaign: Campaign) -> Campaign:
        async with self._lock:
            self._campaigns[campaign.id] = campaign
        return campaign

    async def insert_batches(self, batches: Sequence[CampaignBatch]) -> int:
        async with self._lock:
            for batch in batches:
                if batch.campaign_id not in self._campaigns:
                    raise KeyError(f"Unknown campaign {batch.campaign_id}")
            for batch in batches:
                self._batches[batch.id] = batch
        return len(batches)

    async def delete_campaign(self, campaign_id: str) -> None:
        async with self._lock:
            self._campaigns.pop(campaign_id, None)
            for batch_id in [b.id for b in self._batches.values() if b.campaign_id == campaign_id]:
                del self._batches[batch_id]

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    async def list_campaigns(
        self,
        tenant_id: Optional[str],
        channel: Optional[CampaignChannel] = None,
        status: Optional[CampaignStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        campaigns = [
            c for c in self._campaigns.values()
            if (tenant_id is None or c.tenant_id == tenant_id)
            and (channel is None or c.channel == channel)
            and (status is None or c.status == status)
        ]
        campaigns.sort(key=lambda c: c.created_at, reverse=True)
        return campaigns[offset:offset + limit], len(campaigns)

    async def get_batch(self, batch_id: str) -> Optional[CampaignBatch]:
        return self._batches.get(batch_id)

    async def list_batches(self, campaign_id: str) -> List[CampaignBatch]:
        batches = [b for b in self._batches.values() if b.campaign_id == campaign_id]
        return sorted(batches, key=lambda b: b.batch_number)

    async def transition_batch(
        self,
        batch_id: str,
        from_status: BatchStatus,
        to_status: BatchStatus,
    ) -> Optional[CampaignBatch]:
        async with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status != from_status:
                return None
            updated = batch.model_copy(update={"status": to_status})
            self._batches[batch_id] = updated
            return updated

    def _counted(self, campaign_id: str, outcome: BatchOutcome, delta: int) -> Campaign:
        """Campaign with delta applied to one counter; nothing is stored"""
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            raise KeyError(f"Unknown campaign {campaign_id}")
        column = "batches_sent" if outcome == BatchOutcome.SENT else "batches_failed"
        updated = campaign.model_copy(update={
            column: max(0, getattr(campaign, column) + delta),
            "updated_at": datetime.now(timezone.utc),
        })
        if updated.batches_finished > updated.total_batches:
            raise ValueError(f"Campaign {campaign_id} counters exceed total_batches")
        return updated

    async def complete_batch(
        self,
        batch_id: str,
        outcome: BatchOutcome,
        processed_at: datetime,
        error_message: Optional[str] = None,
    ) -> Optional[Tuple[CampaignBatch, Campaign]]:
        async with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status != BatchStatus.PROCESSING:
                return None

            # Build both rows first so a failure leaves neither changed
            campaign = self._counted(batch.campaign_id, outcome, 1)
            if campaign.is_finished and campaign.status != CampaignStatus.COMPLETED:
                campaign = campaign.model_copy(update={
                    "status": CampaignStatus.COMPLETED,
                    "completed_at": processed_at,
                })
            updated = batch.model_copy(update={
                "status": BatchStatus(outcome.value),
                "processed_at": processed_at,
                "error_message": error_message if outcome == BatchOutcome.FAILED else None,
            })

            self._batches[batch_id] = updated
            self._campaigns[campaign.id] = campaign
            return updated, campaign

    async def reopen_batch(self, batch_id: str) -> Optional[Tuple[CampaignBatch, Campaign]]:
        async with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status != BatchStatus.FAILED:
                return None
            current = self._campaigns.get(batch.campaign_id)
            if current is None or current.status == CampaignStatus.COMPLETED:
                return None

            campaign = self._counted(current.id, BatchOutcome.FAILED, -1)
            updated = batch.model_copy(update={
                "status": BatchStatus.PENDING,
                "processed_at": None,
                "error_message": None,
                "retry_count": batch.retry_count + 1,
            })

            self._batches[batch_id] = updated
            self._campaigns[campaign.id] = campaign
            return updated, campaign

    async def mark_campaign_in_progress(self, campaign_id: str) -> Optional[Campaign]:
        async with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None or campaign.status != CampaignStatus.PENDING:
                return None
            updated = campaign.model_copy(update={"status": CampaignStatus.IN_PROGRESS})
            self._campaigns[campaign_id] = updated
            return updated
