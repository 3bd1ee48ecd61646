# tests/unit/test_access_policy.py
# Role table sets, row predicates and session lifecycle on the sync context

import pytest

from villa_sync.services import access_policy
from villa_sync.services.access_policy import ADMIN, DENY_ALL, MANAGER, OWNER

from tests.conftest import wait_until


class TestRelevantTables:

    def test_admin_sees_credentials(self):
        assert "OTACredentials" in access_policy.relevant_tables(ADMIN)

    def test_manager_has_no_financials(self):
        tables = access_policy.relevant_tables(MANAGER)
        assert "BankDetails" not in tables
        assert "OTACredentials" not in tables

    def test_unknown_role_gets_base_tables(self):
        assert access_policy.relevant_tables("guest") == ["Villa", "Photo"]

    def test_result_is_a_copy(self):
        access_policy.relevant_tables(ADMIN).append("Extra")
        assert "Extra" not in access_policy.relevant_tables(ADMIN)


class TestWhereFor:

    def test_admin_is_unrestricted(self):
        assert access_policy.where_for("BankDetails", ADMIN) is None

    @pytest.mark.parametrize("table", ["Villa", "Photo", "OnboardingSession"])
    def test_manager_sees_operational_tables(self, table):
        assert access_policy.where_for(table, MANAGER) is None

    def test_owner_sees_own_villa_only(self):
        assert access_policy.where_for("Villa", OWNER, "v1") == '"id" = \'v1\''
        assert access_policy.where_for("Photo", OWNER, "v1") == '"villaId" = \'v1\''
        assert access_policy.where_for("BankDetails", OWNER, "v1") == '"villaId" = \'v1\''

    def test_owner_without_villa_sees_nothing(self):
        assert access_policy.where_for("Villa", OWNER) == DENY_ALL
        assert access_policy.where_for("Photo", OWNER) == '"villaId" IS NULL'

    def test_manager_cannot_read_restricted_rows(self):
        assert access_policy.where_for("ContractualDetails", MANAGER, "v1") == '"villaId" IS NULL'

    def test_unlisted_table_is_denied(self):
        assert access_policy.where_for("AdminAction", MANAGER) == DENY_ALL


class TestSyncSession:

    @pytest.mark.asyncio
    async def test_start_sync_subscribes_role_tables(self, sync_ctx, fake_client):
        session = sync_ctx.start_sync("u1", OWNER, villa_id="v1")

        assert session.tables == access_policy.relevant_tables(OWNER)
        assert len(sync_ctx.registry) == len(session.tables)
        assert await wait_until(lambda: fake_client.calls_for("Photo", '"villaId" = \'v1\'') >= 1)
        assert sync_ctx.sync_status().session == session

    @pytest.mark.asyncio
    async def test_stop_sync_releases_session_subscriptions(self, sync_ctx):
        shared = sync_ctx.subscribe("Villa")
        sync_ctx.start_sync("u1", MANAGER)

        sync_ctx.stop_sync()

        assert sync_ctx.session is None
        assert list(sync_ctx.registry.list()) == [shared.subscription]
        assert shared.subscription.consumers == 1

    @pytest.mark.asyncio
    async def test_restart_replaces_previous_session(self, sync_ctx):
        sync_ctx.start_sync("u1", MANAGER)
        sync_ctx.start_sync("u2", "guest")

        assert sync_ctx.session.user_id == "u2"
        assert {s.table for s in sync_ctx.registry.list()} == {"Villa", "Photo"}

    @pytest.mark.asyncio
    async def test_force_sync_refetches_table(self, sync_ctx, fake_client):
        sync_ctx.start_sync("u1", ADMIN)
        await wait_until(lambda: fake_client.calls_for("Villa") >= 1)
        fake_client.responder = lambda table, where, columns: [{"id": "fresh"}]

        entry = await sync_ctx.force_sync("Villa")

        assert entry.data == [{"id": "fresh"}]

    @pytest.mark.asyncio
    async def test_force_sync_outside_session_is_none(self, sync_ctx):
        assert await sync_ctx.force_sync("Villa") is None
