"""
Unit Tests for Campaign Batch Orchestration
Batch splitting, delivery state tracking, completion and retry
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from crm_core.core.exceptions import (
    AccessDeniedError,
    BatchCreationError,
    BatchTransitionError,
    NotFoundError,
    ValidationError,
)
from crm_core.domain.models import (
    BatchOutcome,
    BatchStatus,
    Campaign,
    CampaignChannel,
    CampaignContactSnapshot,
    CampaignStatus,
    CustomFieldSource,
    FixedFieldSource,
    StaticValueSource,
    TemplateVariableMapping,
)
from crm_core.domain.services.campaign_orchestrator import (
    CampaignBatchOrchestrator,
    build_batch_payload,
    duration_minutes,
    estimated_minutes,
    progress,
    split_into_batches,
)

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _contacts(count):
    return [
        CampaignContactSnapshot(id=f"ct-{i}", nombre=f"Contact {i}", numero=f"+3460000{i:04d}")
        for i in range(count)
    ]


@pytest.fixture
def orchestrator(store):
    return CampaignBatchOrchestrator(store, batch_interval_minutes=2)


async def _launch(orchestrator, count, batch_size, tenant_id="tenant-1", **kwargs):
    return await orchestrator.create_campaign(
        tenant_id,
        CampaignChannel.CALLS,
        _contacts(count),
        batch_size=batch_size,
        created_by="owner",
        now=NOW,
        **kwargs,
    )


async def _finish(orchestrator, batch, outcome, error_message=None):
    await orchestrator.start_batch(batch.id)
    return await orchestrator.record_batch_outcome(
        batch.id, outcome, processed_at=NOW + timedelta(minutes=5), error_message=error_message
    )


class TestHelpers:
    """Tests for the pure helpers"""

    def test_split_into_batches(self):
        chunks = split_into_batches(list(range(125)), 50)
        assert [len(c) for c in chunks] == [50, 50, 25]
        assert chunks[2][0] == 100

    def test_split_rejects_non_positive_size(self):
        with pytest.raises(ValidationError):
            split_into_batches([1, 2], 0)

    def test_progress(self):
        campaign = Campaign(
            id="x", tenant_id="t", channel=CampaignChannel.CALLS, created_at=NOW,
            total_batches=3, batches_sent=2, batches_failed=1,
        )
        assert progress(campaign) == 67
        assert progress(campaign.model_copy(update={"total_batches": 0, "batches_sent": 0})) == 0

    def test_estimated_minutes(self):
        assert estimated_minutes(3, 2) == 4
        assert estimated_minutes(1, 2) == 0
        assert estimated_minutes(0, 2) == 0

    def test_duration_minutes(self):
        campaign = Campaign(id="x", tenant_id="t", channel=CampaignChannel.CALLS, created_at=NOW)
        assert duration_minutes(campaign, now=NOW + timedelta(minutes=7, seconds=30)) == 7

        done = campaign.model_copy(update={"completed_at": NOW + timedelta(minutes=12)})
        assert duration_minutes(done, now=NOW + timedelta(hours=5)) == 12


class TestCreateCampaign:
    """Tests for create_campaign()"""

    @pytest.mark.asyncio
    async def test_splits_and_schedules_batches(self, orchestrator, store):
        campaign = await _launch(orchestrator, 125, 50)

        assert campaign.status == CampaignStatus.PENDING
        assert campaign.total_contacts == 125
        assert campaign.total_batches == 3

        batches = await store.list_batches(campaign.id)
        assert [len(b.contacts) for b in batches] == [50, 50, 25]
        assert [b.batch_number for b in batches] == [1, 2, 3]
        assert all(b.total_batches == 3 for b in batches)
        assert all(b.status == BatchStatus.PENDING for b in batches)
        assert [b.scheduled_for for b in batches] == [
            NOW, NOW + timedelta(minutes=2), NOW + timedelta(minutes=4)
        ]

    @pytest.mark.asyncio
    async def test_every_contact_lands_in_exactly_one_batch(self, orchestrator, store):
        campaign = await _launch(orchestrator, 41, 20)

        ids = [c.id for b in await store.list_batches(campaign.id) for c in b.contacts]
        assert ids == [f"ct-{i}" for i in range(41)]

    @pytest.mark.asyncio
    async def test_snapshots_contacts(self, orchestrator, store):
        contacts = await store.get_contacts(["c1"])
        campaign = await orchestrator.create_campaign(
            "tenant-1", CampaignChannel.WHATSAPP, contacts, batch_size=20, now=NOW
        )

        batch = (await store.list_batches(campaign.id))[0]
        assert batch.contacts[0].attributes == {"city": "Madrid", "score": 7}
        assert batch.contacts[0].nombre == "Ana"

    @pytest.mark.asyncio
    async def test_empty_selection_rejected(self, orchestrator):
        with pytest.raises(ValidationError):
            await _launch(orchestrator, 0, 20)

    @pytest.mark.asyncio
    async def test_non_positive_batch_size_rejected(self, orchestrator):
        with pytest.raises(ValidationError):
            await _launch(orchestrator, 5, 0)

    @pytest.mark.asyncio
    async def test_rolls_back_when_batch_insert_fails(self, orchestrator, store):
        store.insert_batches = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(BatchCreationError) as exc_info:
            await _launch(orchestrator, 10, 5)

        assert exc_info.value.details["reason"] == "connection reset"
        campaigns, total = await store.list_campaigns("tenant-1")
        assert total == 0

    @pytest.mark.asyncio
    async def test_rolls_back_on_partial_insert(self, orchestrator, store):
        store.insert_batches = AsyncMock(return_value=1)

        with pytest.raises(BatchCreationError) as exc_info:
            await _launch(orchestrator, 10, 5)

        assert exc_info.value.details["expected"] == 2
        assert await store.get_campaign(exc_info.value.details["campaign_id"]) is None


class TestBatchOutcomes:
    """Tests for start_batch() / record_batch_outcome()"""

    @pytest.mark.asyncio
    async def test_start_moves_campaign_in_progress(self, orchestrator, store):
        campaign = await _launch(orchestrator, 10, 5)
        batch = (await store.list_batches(campaign.id))[0]

        started = await orchestrator.start_batch(batch.id)

        assert started.status == BatchStatus.PROCESSING
        assert (await store.get_campaign(campaign.id)).status == CampaignStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_mixed_outcomes_complete_the_campaign(self, orchestrator, store):
        campaign = await _launch(orchestrator, 3, 1)
        batches = await store.list_batches(campaign.id)

        await _finish(orchestrator, batches[0], BatchOutcome.SENT)
        await _finish(orchestrator, batches[1], BatchOutcome.FAILED, "provider timeout")
        result = await _finish(orchestrator, batches[2], BatchOutcome.SENT)

        assert result.status == CampaignStatus.COMPLETED
        assert result.batches_sent == 2
        assert result.batches_failed == 1
        assert result.completed_at == NOW + timedelta(minutes=5)
        assert progress(result) == 67

        failed = await store.get_batch(batches[1].id)
        assert failed.error_message == "provider timeout"

    @pytest.mark.asyncio
    async def test_campaign_stays_in_progress_until_all_batches_finish(self, orchestrator, store):
        campaign = await _launch(orchestrator, 4, 2)
        batches = await store.list_batches(campaign.id)

        result = await _finish(orchestrator, batches[0], BatchOutcome.FAILED)

        assert result.status == CampaignStatus.IN_PROGRESS
        assert result.completed_at is None

    @pytest.mark.asyncio
    async def test_duplicate_outcome_is_rejected(self, orchestrator, store):
        campaign = await _launch(orchestrator, 4, 2)
        batch = (await store.list_batches(campaign.id))[0]
        await _finish(orchestrator, batch, BatchOutcome.SENT)

        with pytest.raises(BatchTransitionError):
            await orchestrator.record_batch_outcome(batch.id, BatchOutcome.SENT)

        assert (await store.get_campaign(campaign.id)).batches_sent == 1

    @pytest.mark.asyncio
    async def test_outcome_for_pending_batch_is_rejected(self, orchestrator, store):
        campaign = await _launch(orchestrator, 2, 2)
        batch = (await store.list_batches(campaign.id))[0]

        with pytest.raises(BatchTransitionError) as exc_info:
            await orchestrator.record_batch_outcome(batch.id, BatchOutcome.SENT)

        assert exc_info.value.details["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unknown_batch(self, orchestrator):
        with pytest.raises(NotFoundError):
            await orchestrator.start_batch("missing")

    @pytest.mark.asyncio
    async def test_concurrent_outcomes_do_not_lose_updates(self, orchestrator, store):
        campaign = await _launch(orchestrator, 10, 1)
        batches = await store.list_batches(campaign.id)
        for batch in batches:
            await orchestrator.start_batch(batch.id)

        await asyncio.gather(*[
            orchestrator.record_batch_outcome(
                b.id, BatchOutcome.SENT if b.batch_number % 3 else BatchOutcome.FAILED
            )
            for b in batches
        ])

        final = await store.get_campaign(campaign.id)
        assert final.batches_sent == 7
        assert final.batches_failed == 3
        assert final.status == CampaignStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_counter_update_leaves_outcome_redeliverable(self, orchestrator, store, monkeypatch):
        campaign = await _launch(orchestrator, 1, 1)
        batch = (await store.list_batches(campaign.id))[0]
        await orchestrator.start_batch(batch.id)

        counted = store._counted
        calls = []

        def flaky_counter(*args):
            calls.append(args)
            if len(calls) == 1:
                raise ConnectionError("counter update timed out")
            return counted(*args)

        monkeypatch.setattr(store, "_counted", flaky_counter)

        with pytest.raises(ConnectionError):
            await orchestrator.record_batch_outcome(batch.id, BatchOutcome.SENT, processed_at=NOW)

        assert (await store.get_batch(batch.id)).status == BatchStatus.PROCESSING
        assert (await store.get_campaign(campaign.id)).batches_sent == 0

        result = await orchestrator.record_batch_outcome(batch.id, BatchOutcome.SENT, processed_at=NOW)

        assert result.status == CampaignStatus.COMPLETED
        assert (result.batches_sent, result.total_batches) == (1, 1)
        assert (await store.get_batch(batch.id)).status == BatchStatus.SENT


class TestRetryBatch:
    """Tests for retry_batch()"""

    @pytest.mark.asyncio
    async def test_failed_batch_goes_back_to_pending(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 4, 2)
        batches = await store.list_batches(campaign.id)
        await _finish(orchestrator, batches[0], BatchOutcome.FAILED, "boom")

        retried = await orchestrator.retry_batch(scope_of("owner"), campaign.id, batches[0].id)

        assert retried.status == BatchStatus.PENDING
        assert retried.retry_count == 1
        assert retried.error_message is None
        assert (await store.get_campaign(campaign.id)).batches_failed == 0

    @pytest.mark.asyncio
    async def test_retried_batch_can_complete_the_campaign(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 4, 2)
        first, second = await store.list_batches(campaign.id)
        await _finish(orchestrator, first, BatchOutcome.FAILED)
        await orchestrator.retry_batch(scope_of("owner"), campaign.id, first.id)
        await _finish(orchestrator, second, BatchOutcome.SENT)

        result = await _finish(orchestrator, first, BatchOutcome.SENT)

        assert result.status == CampaignStatus.COMPLETED
        assert (result.batches_sent, result.batches_failed) == (2, 0)

    @pytest.mark.asyncio
    async def test_only_failed_batches_can_be_retried(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 4, 2)
        batch = (await store.list_batches(campaign.id))[0]

        with pytest.raises(BatchTransitionError):
            await orchestrator.retry_batch(scope_of("owner"), campaign.id, batch.id)

    @pytest.mark.asyncio
    async def test_completed_campaign_cannot_be_retried(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 1, 1)
        batch = (await store.list_batches(campaign.id))[0]
        await _finish(orchestrator, batch, BatchOutcome.FAILED)

        with pytest.raises(BatchTransitionError):
            await orchestrator.retry_batch(scope_of("owner"), campaign.id, batch.id)

        assert (await store.get_batch(batch.id)).status == BatchStatus.FAILED

    @pytest.mark.asyncio
    async def test_batch_must_belong_to_campaign(self, orchestrator, store, scope_of):
        first = await _launch(orchestrator, 2, 1)
        second = await _launch(orchestrator, 2, 1)
        other_batch = (await store.list_batches(second.id))[0]

        with pytest.raises(NotFoundError):
            await orchestrator.retry_batch(scope_of("owner"), first.id, other_batch.id)

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_retry(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 2, 1)
        batch = (await store.list_batches(campaign.id))[0]

        with pytest.raises(AccessDeniedError):
            await orchestrator.retry_batch(scope_of("other-owner"), campaign.id, batch.id)

    @pytest.mark.asyncio
    async def test_failed_counter_update_leaves_batch_failed(self, orchestrator, store, scope_of, monkeypatch):
        campaign = await _launch(orchestrator, 4, 2)
        batch = (await store.list_batches(campaign.id))[0]
        await _finish(orchestrator, batch, BatchOutcome.FAILED, "boom")

        def broken_counter(*args):
            raise ConnectionError("counter update timed out")

        with monkeypatch.context() as patched:
            patched.setattr(store, "_counted", broken_counter)
            with pytest.raises(ConnectionError):
                await orchestrator.retry_batch(scope_of("owner"), campaign.id, batch.id)

        unchanged = await store.get_batch(batch.id)
        assert (unchanged.status, unchanged.retry_count) == (BatchStatus.FAILED, 0)
        assert (await store.get_campaign(campaign.id)).batches_failed == 1

        retried = await orchestrator.retry_batch(scope_of("owner"), campaign.id, batch.id)
        assert retried.retry_count == 1
        assert (await store.get_campaign(campaign.id)).batches_failed == 0


class TestQueries:
    """Tests for campaign listing and read views"""

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped(self, orchestrator, scope_of):
        await _launch(orchestrator, 2, 1)
        await _launch(orchestrator, 2, 1, tenant_id="tenant-2")

        campaigns, total = await orchestrator.list_campaigns(scope_of("owner"))
        assert total == 1
        assert campaigns[0].tenant_id == "tenant-1"

        _, all_total = await orchestrator.list_campaigns(scope_of("admin"))
        assert all_total == 2

    @pytest.mark.asyncio
    async def test_get_campaign_cross_tenant_denied(self, orchestrator, scope_of):
        campaign = await _launch(orchestrator, 2, 1)

        with pytest.raises(AccessDeniedError):
            await orchestrator.get_campaign(scope_of("other-owner"), campaign.id)

    @pytest.mark.asyncio
    async def test_campaign_contacts_carry_batch_state(self, orchestrator, store, scope_of):
        campaign = await _launch(orchestrator, 3, 2)
        first, _ = await store.list_batches(campaign.id)
        await _finish(orchestrator, first, BatchOutcome.SENT)

        contacts = await orchestrator.get_campaign_contacts(scope_of("owner"), campaign.id)

        assert [(c.id, c.batch_number, c.batch_status) for c in contacts] == [
            ("ct-0", 1, BatchStatus.SENT),
            ("ct-1", 1, BatchStatus.SENT),
            ("ct-2", 2, BatchStatus.PENDING),
        ]
        assert contacts[0].sent_at == NOW + timedelta(minutes=5)
        assert contacts[2].sent_at is None


class TestDeliveryPayload:
    """Tests for build_batch_payload() / delivery_payload()"""

    @pytest.mark.asyncio
    async def test_payload_resolves_template_parameters(self, orchestrator, store):
        contacts = await store.get_contacts(["c1", "c2"])
        mapping = [
            TemplateVariableMapping(position=2, source=CustomFieldSource(field_name="city")),
            TemplateVariableMapping(position=1, source=FixedFieldSource(field="nombre")),
            TemplateVariableMapping(position=3, source=StaticValueSource(value="ACME")),
        ]
        campaign = await orchestrator.create_campaign(
            "tenant-1",
            CampaignChannel.WHATSAPP,
            contacts,
            batch_size=20,
            now=NOW,
            delivery_settings={"template_name": "promo_marzo"},
            variable_mapping=mapping,
        )
        batch = (await store.list_batches(campaign.id))[0]

        payload = await orchestrator.delivery_payload(batch)

        assert payload["template_name"] == "promo_marzo"
        assert payload["channel"] == "whatsapp"
        assert payload["campaign_id"] == campaign.id
        assert payload["batch_id"] == batch.id
        assert payload["batch_info"] == {
            "batch_number": 1,
            "total_batches": 1,
            "contacts_in_batch": 2,
        }
        assert payload["contacts"][0]["template_parameters"] == ["Ana", "Madrid", "ACME"]
        assert payload["contacts"][1]["template_parameters"] == ["Luis", "", "ACME"]

    @pytest.mark.asyncio
    async def test_payload_without_mapping(self, orchestrator, store):
        campaign = await _launch(orchestrator, 2, 2)
        batch = (await store.list_batches(campaign.id))[0]

        payload = build_batch_payload(batch)

        assert "template_parameters" not in payload["contacts"][0]
        assert payload["contacts"][0]["numero"] == "+34600000000"
