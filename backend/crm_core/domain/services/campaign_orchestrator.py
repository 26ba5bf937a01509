"""
Campaign Batch Orchestrator
Splits a frozen contact selection into batches and tracks their delivery.

Batch lifecycle:
    pending -> processing -> sent | failed
    failed  -> pending      (explicit operator retry only)

Campaign lifecycle:
    pending -> in_progress -> completed

A campaign is completed once every batch reached a terminal state,
whatever the mix of sent and failed. The orchestrator never sets the
campaign to failed.
"""
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from crm_core.core.exceptions import (
    BatchCreationError,
    BatchTransitionError,
    NotFoundError,
    ValidationError,
)
from crm_core.domain.interfaces.campaign_store import CampaignStore
from crm_core.domain.models.campaign import (
    BatchOutcome,
    BatchStatus,
    Campaign,
    CampaignBatch,
    CampaignChannel,
    CampaignContactSnapshot,
    CampaignContactWithBatch,
    CampaignStatus,
)
from crm_core.domain.models.contact import Contact
from crm_core.domain.models.scope import UserScope
from crm_core.domain.models.template_mapping import TemplateVariableMapping
from crm_core.domain.services import template_resolver
from crm_core.domain.services.tenant_guard import assert_tenant_access, require_tenant

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_BATCH_INTERVAL_MINUTES = 2

ContactLike = Union[Contact, CampaignContactSnapshot]


def split_into_batches(items: Sequence[Any], batch_size: int) -> List[List[Any]]:
    """Contiguous chunks of batch_size; the last one may be smaller"""
    if batch_size <= 0:
        raise ValidationError("batch_size must be positive", {"batch_size": batch_size})
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def progress(campaign: Campaign) -> int:
    """Percentage of batches sent, 0 when the campaign has no batches"""
    if campaign.total_batches == 0:
        return 0
    return round(100 * campaign.batches_sent / campaign.total_batches)


def duration_minutes(campaign: Campaign, now: Optional[datetime] = None) -> int:
    """Whole minutes from creation to completion (or to now while running)"""
    end = campaign.completed_at or now or datetime.now(timezone.utc)
    return max(0, int((end - campaign.created_at).total_seconds() // 60))


def estimated_minutes(
    total_batches: int,
    batch_interval_minutes: int = DEFAULT_BATCH_INTERVAL_MINUTES,
) -> int:
    """Time until the last batch is scheduled"""
    return max(0, total_batches - 1) * batch_interval_minutes


def _snapshot(contact: ContactLike) -> CampaignContactSnapshot:
    if isinstance(contact, CampaignContactSnapshot):
        return contact
    return CampaignContactSnapshot(
        id=contact.id,
        nombre=contact.nombre,
        numero=contact.numero,
        attributes=dict(contact.attributes),
    )


def build_batch_payload(
    batch: CampaignBatch,
    base_payload: Optional[Dict[str, Any]] = None,
    mapping: Optional[Sequence[TemplateVariableMapping]] = None,
) -> Dict[str, Any]:
    """
    Request body for the delivery webhook of one batch.

    Args:
        batch: Batch to deliver
        base_payload: Channel settings shared by every batch (template name,
            phone number id, ...)
        mapping: WhatsApp template variable mapping; when given each contact
            carries its resolved `template_parameters` in position order
    """
    contacts = []
    for contact in batch.contacts:
        entry = contact.model_dump()
        if mapping:
            values = template_resolver.resolve(mapping, contact)
            entry["template_parameters"] = [values[p] for p in sorted(values)]
        contacts.append(entry)

    payload = dict(base_payload or {})
    payload.update({
        "campaign_id": batch.campaign_id,
        "batch_id": batch.id,
        "contacts": contacts,
        "batch_info": {
            "batch_number": batch.batch_number,
            "total_batches": batch.total_batches,
            "contacts_in_batch": len(batch.contacts),
        },
    })
    return payload


class CampaignBatchOrchestrator:
    """
    Campaign creation and batch state tracking over a CampaignStore.

    Outcomes and retries go through atomic store operations, so callbacks
    for the same campaign may arrive concurrently.
    """

    def __init__(
        self,
        store: CampaignStore,
        batch_interval_minutes: int = DEFAULT_BATCH_INTERVAL_MINUTES,
    ):
        self._store = store
        self.batch_interval_minutes = batch_interval_minutes

    async def create_campaign(
        self,
        tenant_id: str,
        channel: CampaignChannel,
        contact_selection: Sequence[ContactLike],
        batch_size: int = DEFAULT_BATCH_SIZE,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
        delivery_settings: Optional[Dict[str, Any]] = None,
        variable_mapping: Sequence[TemplateVariableMapping] = (),
    ) -> Campaign:
        """
        Create a campaign and all of its batches.

        Contacts are snapshotted at this point; later edits to a contact do
        not reach batches already created. The variable mapping is stored
        as given; validate it with template_resolver.validate_mapping first.

        Raises:
            ValidationError: Empty selection or non-positive batch_size
            BatchCreationError: Batches could not be persisted; the
                campaign row was removed again
        """
        if batch_size <= 0:
            raise ValidationError("batch_size must be positive", {"batch_size": batch_size})
        if not contact_selection:
            raise ValidationError("Select at least one contact")

        now = now or datetime.now(timezone.utc)
        snapshots = [_snapshot(c) for c in contact_selection]
        chunks = split_into_batches(snapshots, batch_size)
        total_batches = math.ceil(len(snapshots) / batch_size)

        campaign = await self._store.insert_campaign(Campaign(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            channel=channel,
            status=CampaignStatus.PENDING,
            total_contacts=len(snapshots),
            total_batches=total_batches,
            created_at=now,
            created_by=created_by,
            delivery_settings=dict(delivery_settings or {}),
            variable_mapping=list(variable_mapping),
        ))

        batches = [
            CampaignBatch(
                id=str(uuid.uuid4()),
                campaign_id=campaign.id,
                tenant_id=tenant_id,
                batch_number=index + 1,
                total_batches=total_batches,
                status=BatchStatus.PENDING,
                scheduled_for=now + timedelta(minutes=index * self.batch_interval_minutes),
                contacts=chunk,
            )
            for index, chunk in enumerate(chunks)
        ]

        try:
            inserted = await self._store.insert_batches(batches)
        except Exception as e:
            await self._rollback(campaign.id)
            raise BatchCreationError(
                "Could not create campaign batches, please try again",
                {"campaign_id": campaign.id, "reason": str(e)},
            ) from e

        if inserted != total_batches:
            await self._rollback(campaign.id)
            raise BatchCreationError(
                "Could not create campaign batches, please try again",
                {"campaign_id": campaign.id, "expected": total_batches, "inserted": inserted},
            )

        logger.info(
            f"Campaign {campaign.id} created: {len(snapshots)} contacts in "
            f"{total_batches} batches of {batch_size} ({channel.value})"
        )
        return campaign

    async def _rollback(self, campaign_id: str) -> None:
        try:
            await self._store.delete_campaign(campaign_id)
        except Exception as e:
            logger.error(f"Rollback of campaign {campaign_id} failed: {e}")

    async def _require_batch(self, batch_id: str) -> CampaignBatch:
        batch = await self._store.get_batch(batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch

    async def _reject_transition(
        self,
        batch_id: str,
        expected: BatchStatus,
        requested: BatchStatus,
    ) -> None:
        current = await self._require_batch(batch_id)
        raise BatchTransitionError(
            f"Batch is {current.status.value}, expected {expected.value}",
            {"batch_id": batch_id, "status": current.status.value, "requested": requested.value},
        )

    async def start_batch(self, batch_id: str) -> CampaignBatch:
        """Mark a pending batch as being delivered (pending -> processing)"""
        batch = await self._store.transition_batch(batch_id, BatchStatus.PENDING, BatchStatus.PROCESSING)
        if batch is None:
            await self._reject_transition(batch_id, BatchStatus.PENDING, BatchStatus.PROCESSING)
        await self._store.mark_campaign_in_progress(batch.campaign_id)
        logger.debug(f"Processing {batch!r}")
        return batch

    async def delivery_payload(self, batch: CampaignBatch) -> Dict[str, Any]:
        """Webhook body for a batch, built from its campaign's delivery settings"""
        campaign = await self._store.get_campaign(batch.campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign", batch.campaign_id)
        payload = build_batch_payload(batch, campaign.delivery_settings, campaign.variable_mapping)
        payload["channel"] = campaign.channel.value
        return payload

    async def record_batch_outcome(
        self,
        batch_id: str,
        outcome: BatchOutcome,
        processed_at: Optional[datetime] = None,
        error_message: Optional[str] = None,
    ) -> Campaign:
        """
        Record the delivery result of a processing batch.

        The batch state, the campaign counter and the completion stamp are
        written by one store operation. If it fails nothing is recorded and
        the same callback can be delivered again.

        Args:
            batch_id: Batch that finished
            outcome: sent or failed
            processed_at: When delivery finished (defaults to now)
            error_message: Delivery error for failed batches

        Returns:
            The campaign after its counters were updated

        Raises:
            NotFoundError: Unknown batch
            BatchTransitionError: Batch is not processing (duplicate or
                out-of-order callback)
        """
        processed_at = processed_at or datetime.now(timezone.utc)
        outcome = BatchOutcome(outcome)

        result = await self._store.complete_batch(
            batch_id,
            outcome,
            processed_at,
            error_message=error_message if outcome == BatchOutcome.FAILED else None,
        )
        if result is None:
            await self._reject_transition(batch_id, BatchStatus.PROCESSING, BatchStatus(outcome.value))
        batch, campaign = result

        if outcome == BatchOutcome.FAILED:
            logger.warning(
                f"Batch {batch.batch_number}/{batch.total_batches} of campaign "
                f"{batch.campaign_id} failed: {error_message or 'no error message'}"
            )
        if campaign.status == CampaignStatus.COMPLETED:
            logger.info(
                f"Campaign {campaign.id} completed: {campaign.batches_sent} sent, "
                f"{campaign.batches_failed} failed"
            )
        return campaign

    async def retry_batch(self, scope: UserScope, campaign_id: str, batch_id: str) -> CampaignBatch:
        """
        Operator retry of a failed batch (failed -> pending).

        The batch leaves the failed counter and counts again once it gets
        a new outcome. Completed campaigns are never reopened.
        """
        campaign = await self.get_campaign(scope, campaign_id)
        batch = await self._require_batch(batch_id)
        if batch.campaign_id != campaign.id:
            raise NotFoundError("Batch", batch_id)

        if campaign.status == CampaignStatus.COMPLETED:
            raise BatchTransitionError(
                "Completed campaigns cannot be retried",
                {"campaign_id": campaign.id},
            )

        result = await self._store.reopen_batch(batch_id)
        if result is None:
            current = await self._store.get_campaign(campaign.id)
            if current is not None and current.status == CampaignStatus.COMPLETED:
                # Completed while the retry was in flight
                raise BatchTransitionError(
                    "Completed campaigns cannot be retried",
                    {"campaign_id": campaign.id},
                )
            await self._reject_transition(batch_id, BatchStatus.FAILED, BatchStatus.PENDING)
        batch, campaign = result

        logger.info(
            f"User {scope.user_id} retried batch {batch.batch_number}/{batch.total_batches} "
            f"of campaign {campaign.id} (attempt {batch.retry_count})"
        )
        return batch

    async def list_campaigns(
        self,
        scope: UserScope,
        channel: Optional[CampaignChannel] = None,
        status: Optional[CampaignStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        """Campaigns of the caller's tenant (all tenants for a tenantless super-admin)"""
        tenant_id = None if scope.is_super_admin and not scope.tenant_id else require_tenant(scope)
        return await self._store.list_campaigns(
            tenant_id, channel=channel, status=status, limit=limit, offset=offset
        )

    async def get_campaign(self, scope: UserScope, campaign_id: str) -> Campaign:
        campaign = await self._store.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign", campaign_id)
        assert_tenant_access(campaign.tenant_id, scope, "campaign")
        return campaign

    async def get_campaign_batches(self, scope: UserScope, campaign_id: str) -> List[CampaignBatch]:
        campaign = await self.get_campaign(scope, campaign_id)
        return await self._store.list_batches(campaign.id)

    async def get_campaign_contacts(
        self,
        scope: UserScope,
        campaign_id: str,
    ) -> List[CampaignContactWithBatch]:
        """Every snapshotted contact with the state of the batch carrying it"""
        contacts: List[CampaignContactWithBatch] = []
        for batch in await self.get_campaign_batches(scope, campaign_id):
            sent_at = batch.processed_at if batch.status == BatchStatus.SENT else None
            for contact in batch.contacts:
                contacts.append(CampaignContactWithBatch(
                    **contact.model_dump(),
                    batch_number=batch.batch_number,
                    batch_status=batch.status,
                    sent_at=sent_at,
                ))
        return contacts
