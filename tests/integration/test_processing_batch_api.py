"""Integration tests for processing batch API endpoints."""

import httpx
import pytest
from sqlmodel import select

from processing_inventory.cache.processing_batch_cache import DETAIL_KEY_PREFIX, LIST_KEY_PREFIX
from processing_inventory.domain.models import ProcessingBatch, ProcessingStage

FIRST_STAGE = {
    "processMethod": "wet",
    "dateOfProcessing": "2025-05-10T08:00:00Z",
    "doneBy": "Ravi",
}


def batch_payload(procurement_ids: list[int], crop: str = "Turmeric", lot_no: int = 1, **stage) -> dict:
    return {
        "crop": crop,
        "lotNo": lot_no,
        "procurementIds": procurement_ids,
        "firstStageDetails": {**FIRST_STAGE, **stage},
    }


async def create_batch(client: httpx.AsyncClient, headers: dict, procurement_ids: list[int], **kwargs) -> dict:
    """Helper to create a batch and return response JSON."""
    response = await client.post(
        "/api/processing-batches/", json=batch_payload(procurement_ids, **kwargs), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateProcessingBatch:
    """Tests for POST /api/processing-batches/."""

    @pytest.mark.asyncio
    async def test_create_batch_success(self, client, session, staff_headers, add_procurement):
        """Happy path: two procurements become one batch with an open P1."""
        p1 = await add_procurement("PR-001", quantity=120.0)
        p2 = await add_procurement("PR-002", quantity=80.0)

        data = await create_batch(client, staff_headers, [p1.id, p2.id])

        assert data["batchCode"] == "TURMERIC-1-20250510"
        assert data["initialBatchQuantity"] == 200.0
        assert data["netAvailableQuantity"] == 200.0
        assert data["totalQuantitySoldFromBatch"] == 0
        assert data["createdById"] == 7
        assert data["latestStageSummary"]["status"] == "IN_PROGRESS"
        assert data["latestStageSummary"]["processingCount"] == 1
        assert data["latestStageSummary"]["initialQuantity"] == 200.0
        assert len(data["processingStages"]) == 1
        assert {p["procurementNumber"] for p in data["procurements"]} == {"PR-001", "PR-002"}

        await session.refresh(p1)
        await session.refresh(p2)
        assert p1.processing_batch_id == data["id"]
        assert p2.processing_batch_id == data["id"]

    @pytest.mark.asyncio
    async def test_same_crop_lot_and_day_gets_suffixed_code(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        p2 = await add_procurement("PR-002")

        first = await create_batch(client, staff_headers, [p1.id])
        second = await create_batch(client, staff_headers, [p2.id])

        assert first["batchCode"] == "TURMERIC-1-20250510"
        assert second["batchCode"] == "TURMERIC-1-20250510-01"

    @pytest.mark.asyncio
    async def test_crop_matches_case_insensitively(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001", crop="turmeric")

        data = await create_batch(client, staff_headers, [p1.id], crop="TURMERIC")

        assert data["initialBatchQuantity"] == 100.0

    @pytest.mark.asyncio
    async def test_duplicate_ids_count_once(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001", quantity=50.0)

        data = await create_batch(client, staff_headers, [p1.id, p1.id])

        assert data["initialBatchQuantity"] == 50.0

    @pytest.mark.asyncio
    async def test_empty_procurement_ids_returns_400(self, client, session, staff_headers):
        """No procurements means nothing is written."""
        response = await client.post(
            "/api/processing-batches/", json=batch_payload([]), headers=staff_headers
        )

        assert response.status_code == 400
        assert "At least one procurement" in response.json()["detail"]
        assert (await session.exec(select(ProcessingBatch))).all() == []

    @pytest.mark.asyncio
    async def test_unknown_procurement_returns_400(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")

        response = await client.post(
            "/api/processing-batches/", json=batch_payload([p1.id, 9999]), headers=staff_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_lot_mismatch_returns_400(self, client, session, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001", lot_no=1)
        p2 = await add_procurement("PR-002", lot_no=2)

        response = await client.post(
            "/api/processing-batches/", json=batch_payload([p1.id, p2.id]), headers=staff_headers
        )

        assert response.status_code == 400
        assert "do not match crop/lot" in response.json()["detail"]
        await session.refresh(p1)
        assert p1.processing_batch_id is None

    @pytest.mark.asyncio
    async def test_already_batched_procurement_returns_400(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        await create_batch(client, staff_headers, [p1.id])

        response = await client.post(
            "/api/processing-batches/", json=batch_payload([p1.id]), headers=staff_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_zero_total_quantity_returns_400(self, client, session, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001", quantity=0.0)

        response = await client.post(
            "/api/processing-batches/", json=batch_payload([p1.id]), headers=staff_headers
        )

        assert response.status_code == 400
        assert "must be positive" in response.json()["detail"]
        assert (await session.exec(select(ProcessingBatch))).all() == []

    @pytest.mark.asyncio
    async def test_invalid_processing_date_returns_400(self, client, session, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")

        response = await client.post(
            "/api/processing-batches/",
            json=batch_payload([p1.id], dateOfProcessing="10th of May"),
            headers=staff_headers,
        )

        assert response.status_code == 400
        assert "Invalid date of processing" in response.json()["detail"]
        assert (await session.exec(select(ProcessingStage))).all() == []

    @pytest.mark.asyncio
    async def test_missing_first_stage_returns_422(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        payload = batch_payload([p1.id])
        del payload["firstStageDetails"]

        response = await client.post("/api/processing-batches/", json=payload, headers=staff_headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unauthenticated_returns_401(self, client, add_procurement):
        p1 = await add_procurement("PR-001")

        response = await client.post("/api/processing-batches/", json=batch_payload([p1.id]))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_cookie_is_accepted(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        client.cookies.set("token", staff_headers["Authorization"].removeprefix("Bearer "))

        response = await client.post("/api/processing-batches/", json=batch_payload([p1.id]))

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_garbage_token_returns_401(self, client, add_procurement):
        p1 = await add_procurement("PR-001")

        response = await client.post(
            "/api/processing-batches/",
            json=batch_payload([p1.id]),
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_create_invalidates_list_cache(self, client, cache_store, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        p2 = await add_procurement("PR-002")
        await create_batch(client, staff_headers, [p1.id])

        listed = await client.get("/api/processing-batches/", headers=staff_headers)
        assert listed.json()["pagination"]["totalCount"] == 1
        assert any(k.startswith(LIST_KEY_PREFIX) for k in cache_store.data)

        await create_batch(client, staff_headers, [p2.id])

        assert not any(k.startswith(LIST_KEY_PREFIX) for k in cache_store.data)
        listed = await client.get("/api/processing-batches/", headers=staff_headers)
        assert listed.json()["pagination"]["totalCount"] == 2

    @pytest.mark.asyncio
    async def test_create_succeeds_with_cache_down(self, client, cache_store, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        cache_store.unavailable = True

        data = await create_batch(client, staff_headers, [p1.id])

        assert data["netAvailableQuantity"] == 100.0


class TestListProcessingBatches:
    """Tests for GET /api/processing-batches/."""

    @pytest.mark.asyncio
    async def test_list_empty(self, client, staff_headers):
        response = await client.get("/api/processing-batches/", headers=staff_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["processingBatches"] == []
        assert data["pagination"] == {"page": 1, "limit": 10, "totalCount": 0, "totalPages": 0}

    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        p2 = await add_procurement("PR-002", crop="Ginger")
        first = await create_batch(client, staff_headers, [p1.id])
        second = await create_batch(client, staff_headers, [p2.id], crop="Ginger")

        response = await client.get("/api/processing-batches/", headers=staff_headers)

        ids = [b["id"] for b in response.json()["processingBatches"]]
        assert ids == [second["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_search_matches_code_or_crop(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        p2 = await add_procurement("PR-002", crop="Ginger")
        await create_batch(client, staff_headers, [p1.id])
        await create_batch(client, staff_headers, [p2.id], crop="Ginger")

        by_crop = await client.get(
            "/api/processing-batches/", params={"search": "ging"}, headers=staff_headers
        )
        by_code = await client.get(
            "/api/processing-batches/", params={"search": "TURMERIC-1"}, headers=staff_headers
        )

        assert [b["crop"] for b in by_crop.json()["processingBatches"]] == ["Ginger"]
        assert [b["crop"] for b in by_code.json()["processingBatches"]] == ["Turmeric"]

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        await create_batch(client, staff_headers, [p1.id])

        response = await client.get(
            "/api/processing-batches/", params={"search": "%"}, headers=staff_headers
        )

        assert response.json()["processingBatches"] == []

    @pytest.mark.asyncio
    async def test_status_filter_uses_derived_status(self, client, staff_headers, add_procurement):
        """A finished stage with everything sold lists as SOLD_OUT, not FINISHED."""
        p1 = await add_procurement("PR-001")
        p2 = await add_procurement("PR-002", crop="Ginger")
        sold_out = await create_batch(client, staff_headers, [p1.id])
        in_progress = await create_batch(client, staff_headers, [p2.id], crop="Ginger")

        stage_id = sold_out["processingStages"][0]["id"]
        await client.post(
            f"/api/processing-stages/{stage_id}/finalize",
            json={"quantityAfterProcess": 40.0, "dateOfCompletion": "2025-05-20"},
            headers=staff_headers,
        )
        await client.post(
            "/api/sales/",
            json={"processingStageId": stage_id, "quantitySold": 40.0, "dateOfSale": "2025-06-01T10:00:00"},
            headers=staff_headers,
        )

        finished = await client.get(
            "/api/processing-batches/", params={"status": "FINISHED"}, headers=staff_headers
        )
        sold = await client.get(
            "/api/processing-batches/", params={"status": "SOLD_OUT"}, headers=staff_headers
        )
        running = await client.get(
            "/api/processing-batches/", params={"status": "IN_PROGRESS"}, headers=staff_headers
        )

        assert finished.json()["processingBatches"] == []
        assert [b["id"] for b in sold.json()["processingBatches"]] == [sold_out["id"]]
        assert sold.json()["processingBatches"][0]["netAvailableQuantity"] == 0.0
        assert [b["id"] for b in running.json()["processingBatches"]] == [in_progress["id"]]

    @pytest.mark.asyncio
    async def test_unknown_status_returns_422(self, client, staff_headers):
        response = await client.get(
            "/api/processing-batches/", params={"status": "DRYING"}, headers=staff_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_pagination(self, client, staff_headers, add_procurement):
        for n in range(5):
            procurement = await add_procurement(f"PR-{n:03d}")
            await create_batch(client, staff_headers, [procurement.id])

        response = await client.get(
            "/api/processing-batches/", params={"page": 3, "limit": 2}, headers=staff_headers
        )

        data = response.json()
        assert len(data["processingBatches"]) == 1
        assert data["pagination"] == {"page": 3, "limit": 2, "totalCount": 5, "totalPages": 3}

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        await create_batch(client, staff_headers, [p1.id])

        response = await client.get(
            "/api/processing-batches/", params={"page": 4}, headers=staff_headers
        )

        assert response.json()["processingBatches"] == []
        assert response.json()["pagination"]["totalCount"] == 1

    @pytest.mark.asyncio
    async def test_limit_above_100_returns_422(self, client, staff_headers):
        response = await client.get(
            "/api/processing-batches/", params={"limit": 101}, headers=staff_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_rows_carry_latest_stage_only(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        await create_batch(client, staff_headers, [p1.id])

        response = await client.get("/api/processing-batches/", headers=staff_headers)

        row = response.json()["processingBatches"][0]
        assert row["latestStageSummary"]["processingCount"] == 1
        assert "processingStages" not in row
        assert "procurements" not in row


class TestGetProcessingBatch:
    """Tests for GET /api/processing-batches/{id}."""

    @pytest.mark.asyncio
    async def test_get_batch_success(self, client, cache_store, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])

        response = await client.get(f"/api/processing-batches/{created['id']}", headers=staff_headers)

        assert response.status_code == 200
        assert response.json() == created
        assert f"{DETAIL_KEY_PREFIX}{created['id']}" in cache_store.data
        assert cache_store.ttls[f"{DETAIL_KEY_PREFIX}{created['id']}"] == 3600

    @pytest.mark.asyncio
    async def test_get_batch_not_found(self, client, cache_store, staff_headers):
        response = await client.get("/api/processing-batches/9999", headers=staff_headers)

        assert response.status_code == 404
        assert cache_store.data == {}

    @pytest.mark.asyncio
    async def test_get_batch_with_cache_down(self, client, cache_store, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])
        cache_store.unavailable = True

        response = await client.get(f"/api/processing-batches/{created['id']}", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["batchCode"] == created["batchCode"]


class TestDeleteProcessingBatch:
    """Tests for DELETE /api/processing-batches/{id}."""

    @pytest.mark.asyncio
    async def test_delete_unlinks_procurements(
        self, client, session, cache_store, staff_headers, admin_headers, add_procurement
    ):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])
        await client.get(f"/api/processing-batches/{created['id']}", headers=staff_headers)
        await client.get("/api/processing-batches/", headers=staff_headers)

        response = await client.delete(f"/api/processing-batches/{created['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Processing batch TURMERIC-1-20250510 deleted.",
        }
        assert cache_store.data == {}

        await session.refresh(p1)
        assert p1.processing_batch_id is None
        assert (await session.exec(select(ProcessingStage))).all() == []

        gone = await client.get(f"/api/processing-batches/{created['id']}", headers=staff_headers)
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_unlinked_procurements_can_be_batched_again(
        self, client, staff_headers, admin_headers, add_procurement
    ):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])
        await client.delete(f"/api/processing-batches/{created['id']}", headers=admin_headers)

        again = await create_batch(client, staff_headers, [p1.id])

        assert again["batchCode"] == "TURMERIC-1-20250510"

    @pytest.mark.asyncio
    async def test_delete_removes_stage_history(
        self, client, session, staff_headers, admin_headers, add_procurement
    ):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])
        stage_id = created["processingStages"][0]["id"]
        await client.post(
            f"/api/processing-stages/{stage_id}/drying-entries",
            json={"day": 1, "currentQuantity": 95.0},
            headers=staff_headers,
        )
        await client.post(
            f"/api/processing-stages/{stage_id}/finalize",
            json={"quantityAfterProcess": 90.0, "dateOfCompletion": "2025-05-12"},
            headers=staff_headers,
        )
        await client.post(
            "/api/sales/",
            json={"processingStageId": stage_id, "quantitySold": 10.0, "dateOfSale": "2025-06-01T10:00:00"},
            headers=staff_headers,
        )

        response = await client.delete(f"/api/processing-batches/{created['id']}", headers=admin_headers)

        assert response.status_code == 200
        listed = await client.get(f"/api/processing-stages/{stage_id}/drying-entries", headers=staff_headers)
        assert listed.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_twice_returns_404(self, client, staff_headers, admin_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])

        await client.delete(f"/api/processing-batches/{created['id']}", headers=admin_headers)
        response = await client.delete(f"/api/processing-batches/{created['id']}", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_not_found(self, client, admin_headers):
        response = await client.delete("/api/processing-batches/9999", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_staff_cannot_delete(self, client, staff_headers, add_procurement):
        p1 = await add_procurement("PR-001")
        created = await create_batch(client, staff_headers, [p1.id])

        response = await client.delete(f"/api/processing-batches/{created['id']}", headers=staff_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_requires_token(self, client):
        response = await client.delete("/api/processing-batches/1")

        assert response.status_code == 401


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_ok(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_health_degraded_when_cache_down(self, client, cache_store):
        cache_store.unavailable = True

        response = await client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["cache"] is False
        assert response.json()["database"] is True

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
