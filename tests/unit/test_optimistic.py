# tests/unit/test_optimistic.py

import pytest

from villa_sync.hooks import OptimisticOverlay, same_field, use_optimistic_overlay, use_shape

from tests.conftest import wait_until


class TestOverlay:

    def test_pending_items_follow_base_data(self):
        overlay = use_optimistic_overlay([{"id": "a"}], is_loading=False)
        overlay.add_pending({"id": "tmp-1", "villaName": "Sunset"}, "p1")

        assert overlay.data == [{"id": "a"}, {"id": "tmp-1", "villaName": "Sunset"}]
        assert overlay.has_pending_updates is True
        assert overlay.pending_count == 1
        assert overlay.pending_ids == ["p1"]

    def test_remove_pending(self):
        overlay = OptimisticOverlay([{"id": "a"}])
        overlay.add_pending({"id": "tmp-1"}, "p1")
        overlay.remove_pending("p1")
        overlay.remove_pending("unknown")

        assert overlay.data == [{"id": "a"}]
        assert overlay.has_pending_updates is False

    def test_base_is_not_replaced_while_loading(self):
        overlay = OptimisticOverlay([{"id": "a"}])
        overlay.sync([], is_loading=True)
        assert overlay.data == [{"id": "a"}]

        overlay.sync([{"id": "a"}, {"id": "b"}], is_loading=False)
        assert overlay.data == [{"id": "a"}, {"id": "b"}]

    def test_pending_survives_until_removed_without_matcher(self):
        overlay = OptimisticOverlay([])
        overlay.add_pending({"villaCode": "SUN-01"}, "p1")
        overlay.sync([{"id": "v9", "villaCode": "SUN-01"}], is_loading=False)
        assert overlay.pending_count == 1

    def test_matcher_drops_confirmed_items(self):
        overlay = OptimisticOverlay([], confirms=same_field("villaCode"))
        overlay.add_pending({"villaCode": "SUN-01"}, "p1")
        overlay.add_pending({"villaCode": "SUN-02"}, "p2")

        overlay.sync([{"id": "v9", "villaCode": "SUN-01"}], is_loading=False)

        assert overlay.pending_ids == ["p2"]
        assert overlay.data == [{"id": "v9", "villaCode": "SUN-01"}, {"villaCode": "SUN-02"}]

    def test_same_field_ignores_missing_values(self):
        confirms = same_field("villaCode")
        assert confirms({"villaCode": None}, {"villaName": "x"}) is False


class TestFollowView:

    @pytest.mark.asyncio
    async def test_overlay_follows_cache_writes(self, sync_ctx, fake_client):
        fake_client.responder = lambda table, where, columns: [{"id": "v1", "villaCode": "SUN-01"}]
        view = use_shape(sync_ctx, "Villa")
        overlay = OptimisticOverlay(confirms=same_field("villaCode")).follow(view)
        overlay.add_pending({"villaCode": "SUN-01"}, "p1")

        assert await wait_until(lambda: not overlay.has_pending_updates)
        assert overlay.data == [{"id": "v1", "villaCode": "SUN-01"}]

        overlay.detach()
        view.close()
