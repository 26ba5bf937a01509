"""
Unit Tests for the Supabase Store
PostgREST query building against a mocked client
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from crm_core.domain.models import (
    BatchOutcome,
    BatchStatus,
    CampaignStatus,
    ComercialRole,
    ContactQuery,
)
from crm_core.infrastructure.storage.supabase_store import SupabaseStore
from crm_core.utils.tenant_filter import apply_contact_query, apply_tenant_filter

_BUILDER_METHODS = (
    "select", "insert", "update", "delete", "eq", "neq", "is_", "or_", "in_",
    "order", "range", "limit",
)

CAMPAIGN_ROW = {
    "id": "camp-1",
    "tenant_id": "tenant-1",
    "channel": "calls",
    "status": "in_progress",
    "total_contacts": 3,
    "total_batches": 3,
    "batches_sent": 2,
    "batches_failed": 0,
    "created_at": "2026-03-02T10:00:00+00:00",
}

BATCH_ROW = {
    "id": "batch-1",
    "campaign_id": "camp-1",
    "tenant_id": "tenant-1",
    "batch_number": 1,
    "total_batches": 3,
    "status": "failed",
    "scheduled_for": "2026-03-02T10:00:00+00:00",
    "retry_count": 1,
    "contacts": [{"id": "c1", "nombre": "Ana", "numero": "+34600000001"}],
}


def _builder(data=None, count=None):
    """Query builder mock whose filter methods all chain back to itself"""
    builder = MagicMock()
    for name in _BUILDER_METHODS:
        getattr(builder, name).return_value = builder
    builder.execute.return_value = MagicMock(data=data, count=count)
    return builder


@pytest.fixture
def client():
    return MagicMock()


class TestTenantFilter:
    """Tests for apply_tenant_filter / apply_contact_query"""

    def test_tenant_filter_applied(self):
        query = _builder()
        apply_tenant_filter(query, "tenant-1")
        query.eq.assert_called_once_with("tenant_id", "tenant-1")

    def test_no_tenant_means_no_filter(self):
        query = _builder()
        assert apply_tenant_filter(query, None) is query
        query.eq.assert_not_called()

    def test_contact_query_predicates(self):
        query = _builder()
        contact_query = (
            ContactQuery()
            .for_tenant("tenant-1")
            .where_eq("assigned_to", "com-1")
            .where_eq_or_null("location_id", "loc-a")
            .where_eq("status_id", None)
        )

        apply_contact_query(query, contact_query)

        assert query.eq.call_args_list[0].args == ("tenant_id", "tenant-1")
        assert query.eq.call_args_list[1].args == ("assigned_to", "com-1")
        query.or_.assert_called_once_with("location_id.eq.loc-a,location_id.is.null")
        query.is_.assert_called_once_with("status_id", "null")


class TestSupabaseStore:
    """Tests for SupabaseStore"""

    @pytest.mark.asyncio
    async def test_deny_all_query_skips_database(self, client):
        store = SupabaseStore(client)

        assert await store.list_contacts(ContactQuery().none()) == []
        assert await store.list_contact_ids(ContactQuery().none(), limit=10) == []
        client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_contacts_pages_with_range(self, client):
        builder = _builder(data=[{"id": "c1", "tenant_id": "tenant-1", "numero": "+34600000001"}])
        client.table.return_value = builder

        contacts = await SupabaseStore(client).list_contacts(
            ContactQuery().for_tenant("tenant-1"), limit=25, offset=50
        )

        assert [c.id for c in contacts] == ["c1"]
        client.table.assert_called_with("crm_contacts")
        builder.range.assert_called_once_with(50, 74)

    @pytest.mark.asyncio
    async def test_role_compare_and_set_on_role_less_user(self, client):
        builder = _builder(data=[])
        client.table.return_value = builder

        result = await SupabaseStore(client).compare_and_set_role(
            "u1", None, ComercialRole.COMERCIAL, None, "ext-1"
        )

        assert result is None
        builder.is_.assert_called_once_with("comercial_role", "null")
        update = builder.update.call_args.args[0]
        assert update["comercial_role"] == "comercial"
        assert update["external_id"] == "ext-1"

    @pytest.mark.asyncio
    async def test_role_compare_and_set_guards_expected_role(self, client):
        builder = _builder(data=[{"id": "u1", "tenant_id": "tenant-1", "comercial_role": "director_sede",
                                  "location_id": "loc-a"}])
        client.table.return_value = builder

        result = await SupabaseStore(client).compare_and_set_role(
            "u1", ComercialRole.COMERCIAL, ComercialRole.DIRECTOR_SEDE, "loc-a", "ext-1"
        )

        assert result.comercial_role == ComercialRole.DIRECTOR_SEDE
        builder.eq.assert_any_call("comercial_role", "comercial")

    @pytest.mark.asyncio
    async def test_role_compare_and_set_from_unknown_role(self, client):
        builder = _builder(data=[{"id": "u1", "tenant_id": "tenant-1", "comercial_role": "comercial"}])
        client.table.return_value = builder

        result = await SupabaseStore(client).compare_and_set_role(
            "u1", "jefe_regional", ComercialRole.COMERCIAL, None, "ext-1"
        )

        assert result.comercial_role is ComercialRole.COMERCIAL
        builder.eq.assert_any_call("comercial_role", "jefe_regional")

    @pytest.mark.asyncio
    async def test_profile_with_unknown_role_loads(self, client):
        client.table.return_value = _builder(data=[{"id": "u1", "tenant_id": "tenant-1",
                                                     "comercial_role": "jefe_regional"}])

        profile = await SupabaseStore(client).get_profile("u1")

        assert profile.comercial_role == "jefe_regional"

    @pytest.mark.asyncio
    async def test_outcome_goes_through_one_rpc(self, client):
        completed = dict(CAMPAIGN_ROW, batches_sent=3, status="completed",
                         completed_at="2026-03-02T10:05:00+00:00")
        sent = dict(BATCH_ROW, status="sent", retry_count=0, processed_at="2026-03-02T10:05:00+00:00")
        client.rpc.return_value.execute.return_value = MagicMock(data={"batch": sent, "campaign": completed})

        batch, campaign = await SupabaseStore(client).complete_batch(
            "batch-1", BatchOutcome.SENT, datetime(2026, 3, 2, 10, 5, tzinfo=timezone.utc)
        )

        client.rpc.assert_called_once_with("complete_campaign_batch", {
            "p_batch_id": "batch-1",
            "p_outcome": "sent",
            "p_processed_at": "2026-03-02T10:05:00+00:00",
            "p_error_message": None,
        })
        client.table.assert_not_called()
        assert batch.status == BatchStatus.SENT
        assert campaign.status == CampaignStatus.COMPLETED
        assert campaign.batches_sent == 3

    @pytest.mark.asyncio
    async def test_outcome_for_batch_not_processing(self, client):
        client.rpc.return_value.execute.return_value = MagicMock(data=None)

        result = await SupabaseStore(client).complete_batch(
            "batch-1", BatchOutcome.FAILED, datetime(2026, 3, 2, 10, 5, tzinfo=timezone.utc), "timeout"
        )

        assert result is None
        assert client.rpc.call_args.args[1]["p_error_message"] == "timeout"

    @pytest.mark.asyncio
    async def test_retry_goes_through_one_rpc(self, client):
        pending = dict(BATCH_ROW, status="pending", retry_count=2)
        client.rpc.return_value.execute.return_value = MagicMock(
            data={"batch": pending, "campaign": CAMPAIGN_ROW}
        )

        batch, campaign = await SupabaseStore(client).reopen_batch("batch-1")

        client.rpc.assert_called_once_with("retry_campaign_batch", {"p_batch_id": "batch-1"})
        assert (batch.status, batch.retry_count) == (BatchStatus.PENDING, 2)
        assert campaign.id == "camp-1"

    @pytest.mark.asyncio
    async def test_transition_is_conditional_on_status(self, client):
        builder = _builder(data=[])
        client.table.return_value = builder

        result = await SupabaseStore(client).transition_batch(
            "batch-1", BatchStatus.PENDING, BatchStatus.PROCESSING
        )

        assert result is None
        builder.eq.assert_any_call("status", "pending")
        assert builder.update.call_args.args[0]["status"] == "processing"

    @pytest.mark.asyncio
    async def test_list_campaigns_returns_exact_count(self, client):
        builder = _builder(data=[CAMPAIGN_ROW], count=12)
        client.table.return_value = builder

        campaigns, total = await SupabaseStore(client).list_campaigns("tenant-1", limit=1)

        assert total == 12
        assert campaigns[0].id == "camp-1"
        builder.select.assert_called_once_with("*", count="exact")

    @pytest.mark.asyncio
    async def test_insert_batches_counts_returned_rows(self, client):
        builder = _builder(data=[BATCH_ROW])
        client.table.return_value = builder
        batch = (await SupabaseStore(client).list_batches("camp-1"))[0]

        inserted = await SupabaseStore(client).insert_batches([batch])

        assert inserted == 1
        rows = builder.insert.call_args.args[0]
        assert rows[0]["contacts"][0]["id"] == "c1"
        assert rows[0]["status"] == "failed"
