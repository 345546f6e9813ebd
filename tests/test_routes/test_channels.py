"""Tests for channel REST routes.

Tests FastAPI route integration with the scheduler:
- CRUD and the jobs each request leaves behind
- Manual start/stop and status changes
- Countdown columns always matching the written status
- Bulk operations
- Error mapping (404, 400, 422, 500)
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from channel_scheduler.exceptions import PersistenceError
from channel_scheduler.services.job_registry import JobKind


@pytest.fixture
def channel_payload() -> dict:
    """Valid create payload."""
    return {
        "sequence_number": 1,
        "name": "d2kg",
        "title": "D2KG LIVE 1",
        "source_file": "Looping Video Live 1.mp4",
        "duration": "0h 2m",
        "repeat_policy": "Setiap Hari",
    }


def create(client: TestClient, payload: dict, **overrides) -> dict:
    response = client.post("/api/channels", json={**payload, **overrides})
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def registry(client: TestClient):
    return client.app.state.scheduler.registry


def assert_lifecycle_invariants(client: TestClient, channel: dict) -> None:
    """Check a channel response against the lifecycle rules and the job registry."""
    jobs = registry(client).kinds_for(channel["id"])
    if channel["status"] == "running":
        assert channel["countdown_kind"] == "ends"
        assert channel["countdown_seconds"]
        assert JobKind.COUNTDOWN in jobs
    else:
        assert JobKind.COUNTDOWN not in jobs
    if channel["status"] == "stopped":
        assert channel["countdown_seconds"] is None
        assert channel["countdown_kind"] is None
    if channel["status"] == "scheduled" and channel["countdown_seconds"] is not None:
        assert channel["countdown_kind"] == "start"


class TestListAndGet:
    def test_list_empty(self, client: TestClient):
        response = client.get("/api/channels")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"data": [], "count": 0}

    def test_list_ordered_by_sequence_number(self, client: TestClient, channel_payload):
        for number in (2, 3, 1):
            create(client, channel_payload, sequence_number=number, title=f"LIVE {number}")

        data = client.get("/api/channels").json()

        assert data["count"] == 3
        assert [item["sequence_number"] for item in data["data"]] == [1, 2, 3]

    def test_get_unknown_channel_returns_404(self, client: TestClient):
        """[P0] Unknown ids map to 404."""
        response = client.get("/api/channels/999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Channel 999 not found"

    def test_persistence_error_returns_500(self, client: TestClient, mocker):
        """[P1] Store failures surface as 500 without leaking database details."""
        mocker.patch.object(
            client.app.state.store,
            "list_channels",
            side_effect=PersistenceError("list_channels", "database is locked"),
        )

        response = client.get("/api/channels")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Database operation failed"


class TestCreate:
    def test_create_normalizes_policy_and_installs_recurrence(
        self, client: TestClient, channel_payload
    ):
        """[P0] POST persists, normalizes the policy alias and reschedules."""
        channel = create(client, channel_payload)

        assert channel["id"] is not None
        assert channel["repeat_policy"] == "daily"
        assert channel["status"] == "scheduled"
        assert channel["stream_key"].startswith("d2kg-live-key-")
        assert channel["duration_seconds"] == 120
        assert registry(client).kinds_for(channel["id"]) == {JobKind.RECURRENCE}
        assert_lifecycle_invariants(client, channel)

    def test_create_running_channel_counts_down_its_duration(
        self, client: TestClient, channel_payload
    ):
        channel = create(client, channel_payload, status="running", repeat_policy="none")

        assert channel["countdown_seconds"] == 120
        assert channel["countdown"] == "00:02:00"
        assert channel["countdown_kind"] == "ends"
        assert registry(client).kinds_for(channel["id"]) == {JobKind.COUNTDOWN}
        assert_lifecycle_invariants(client, channel)

    def test_create_scheduled_with_countdown(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload, countdown="00:30:57")

        assert channel["countdown_seconds"] == 1857
        assert channel["countdown_kind"] == "start"
        assert_lifecycle_invariants(client, channel)

    def test_create_with_malformed_countdown_returns_400(
        self, client: TestClient, channel_payload
    ):
        response = client.post("/api/channels", json={**channel_payload, "countdown": "soon"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert client.get("/api/channels").json()["count"] == 0

    def test_create_missing_title_returns_422(self, client: TestClient, channel_payload):
        del channel_payload["title"]

        response = client.post("/api/channels", json=channel_payload)

        assert response.status_code == 422


class TestUpdateAndDelete:
    def test_update_fields(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.put(
            f"/api/channels/{channel['id']}", json={"title": "Renamed", "duration": "1h 0m"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == "Renamed"
        assert response.json()["duration_seconds"] == 3600
        assert_lifecycle_invariants(client, response.json())

    def test_removing_policy_cancels_recurrence(self, client: TestClient, channel_payload):
        """[P0] PUT reschedules: stripping the policy drops the recurrence job."""
        channel = create(client, channel_payload)

        client.put(f"/api/channels/{channel['id']}", json={"repeat_policy": "Tidak"})

        assert registry(client).kinds_for(channel["id"]) == set()

    def test_update_title_keeps_running_countdown(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload, status="running", countdown="00:10:00")

        response = client.put(f"/api/channels/{channel['id']}", json={"title": "Renamed"})

        body = response.json()
        assert body["countdown_seconds"] == 600
        assert_lifecycle_invariants(client, body)

    def test_update_unknown_channel_returns_404(self, client: TestClient):
        response = client.put("/api/channels/999", json={"title": "x"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_removes_channel_and_jobs(self, client: TestClient, channel_payload):
        """[P0] DELETE leaves no jobs behind."""
        channel = create(client, channel_payload)
        client.post(f"/api/channels/{channel['id']}/start")

        response = client.delete(f"/api/channels/{channel['id']}")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(f"/api/channels/{channel['id']}").status_code == 404
        assert len(registry(client)) == 0

    def test_delete_unknown_channel_returns_404(self, client: TestClient):
        assert client.delete("/api/channels/999").status_code == status.HTTP_404_NOT_FOUND


class TestLifecycleConsistency:
    """Status written through POST/PUT always comes with matching countdown columns."""

    def test_put_running_counts_down_the_duration(self, client: TestClient, channel_payload):
        """[P0] PUT status=running behaves like a start, not like an expired row.

        GIVEN: A scheduled channel without a countdown
        WHEN: PUT sets status to running
        THEN: It counts down its duration (kind ends) and survives a tick
        """
        # GIVEN: A scheduled channel
        channel = create(client, channel_payload, repeat_policy="none")

        # WHEN: Status is set to running through PUT
        body = client.put(f"/api/channels/{channel['id']}", json={"status": "running"}).json()

        # THEN: Countdown is the nominal duration, counting to the end
        assert body["status"] == "running"
        assert body["countdown_seconds"] == 120
        assert body["countdown_kind"] == "ends"
        assert_lifecycle_invariants(client, body)

        # THEN: The next tick decrements instead of stopping the channel
        client.portal.call(client.app.state.scheduler.tick)
        fresh = client.get(f"/api/channels/{channel['id']}").json()
        assert fresh["status"] == "running"
        assert fresh["countdown_seconds"] == 119

    def test_put_running_with_countdown_forces_kind_ends(
        self, client: TestClient, channel_payload
    ):
        """[P0] A start countdown never survives a switch to running."""
        channel = create(client, channel_payload, countdown="00:30:00")
        assert channel["countdown_kind"] == "start"

        body = client.put(
            f"/api/channels/{channel['id']}",
            json={"status": "running", "countdown": "00:10:00"},
        ).json()

        assert body["countdown_seconds"] == 600
        assert body["countdown_kind"] == "ends"
        assert_lifecycle_invariants(client, body)

    def test_post_stopped_with_countdown_clears_it(self, client: TestClient, channel_payload):
        """[P0] A stopped channel never carries a countdown."""
        channel = create(client, channel_payload, status="stopped", countdown="00:10:00")

        assert channel["status"] == "stopped"
        assert channel["countdown_seconds"] is None
        assert channel["countdown_kind"] is None
        assert_lifecycle_invariants(client, channel)

    def test_put_stopped_clears_countdown_and_job(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload, status="running")

        body = client.put(f"/api/channels/{channel['id']}", json={"status": "stopped"}).json()

        assert body["countdown_seconds"] is None
        assert_lifecycle_invariants(client, body)

    def test_put_scheduled_with_countdown_forces_kind_start(
        self, client: TestClient, channel_payload
    ):
        channel = create(client, channel_payload, status="running")

        body = client.put(
            f"/api/channels/{channel['id']}",
            json={"status": "scheduled", "countdown": "00:05:00"},
        ).json()

        assert body["countdown_seconds"] == 300
        assert body["countdown_kind"] == "start"
        assert_lifecycle_invariants(client, body)

    def test_put_scheduled_drops_the_running_countdown(
        self, client: TestClient, channel_payload
    ):
        channel = create(client, channel_payload, status="running")

        body = client.put(f"/api/channels/{channel['id']}", json={"status": "scheduled"}).json()

        assert body["countdown_seconds"] is None
        assert body["countdown_kind"] is None
        assert_lifecycle_invariants(client, body)

    def test_client_supplied_countdown_kind_is_ignored(
        self, client: TestClient, channel_payload
    ):
        channel = create(
            client, channel_payload, status="running", countdown="00:10:00", countdown_kind="start"
        )

        assert channel["countdown_kind"] == "ends"


class TestStartStop:
    def test_start_uses_stored_duration(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.post(f"/api/channels/{channel['id']}/start")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "id": channel["id"],
            "countdown_seconds": 120,
            "countdown": "00:02:00",
        }
        assert registry(client).kinds_for(channel["id"]) == {JobKind.COUNTDOWN, JobKind.RECURRENCE}

    def test_start_with_duration_override(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.post(
            f"/api/channels/{channel['id']}/start", json={"duration": "0h 30m"}
        )

        assert response.json()["countdown"] == "00:30:00"

    def test_start_with_malformed_duration_returns_400(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.post(f"/api/channels/{channel['id']}/start", json={"duration": "later"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not registry(client).has(channel["id"], JobKind.COUNTDOWN)

    def test_start_unknown_channel_returns_404(self, client: TestClient):
        assert client.post("/api/channels/999/start").status_code == status.HTTP_404_NOT_FOUND

    def test_stop_disarms_jobs(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)
        client.post(f"/api/channels/{channel['id']}/start")

        response = client.post(f"/api/channels/{channel['id']}/stop")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "stopped"
        assert response.json()["countdown"] is None
        assert registry(client).kinds_for(channel["id"]) == set()
        assert_lifecycle_invariants(client, response.json())

    def test_ticks_count_down_and_stop_the_channel(self, client: TestClient, channel_payload):
        """[P0] End to end: start over HTTP, drive 120 ticks, channel is stopped."""
        channel = create(client, channel_payload, duration="0h 2m", repeat_policy="none")
        client.post(f"/api/channels/{channel['id']}/start")
        scheduler = client.app.state.scheduler

        for _ in range(119):
            client.portal.call(scheduler.tick)
        assert client.get(f"/api/channels/{channel['id']}").json()["countdown"] == "00:00:01"

        client.portal.call(scheduler.tick)
        fresh = client.get(f"/api/channels/{channel['id']}").json()
        assert fresh["status"] == "stopped"
        assert fresh["countdown_seconds"] is None


class TestStatusPatch:
    def test_patch_running_starts_channel(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.patch(f"/api/channels/{channel['id']}/status", json={"status": "running"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "running"
        assert response.json()["countdown_seconds"] == 120
        assert_lifecycle_invariants(client, response.json())

    def test_patch_stopped_stops_channel(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload, status="running")

        response = client.patch(f"/api/channels/{channel['id']}/status", json={"status": "stopped"})

        assert response.json()["status"] == "stopped"
        assert registry(client).kinds_for(channel["id"]) == set()
        assert_lifecycle_invariants(client, response.json())

    def test_patch_scheduled_with_countdown(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload, status="running")

        response = client.patch(
            f"/api/channels/{channel['id']}/status",
            json={"status": "scheduled", "countdown": "00:30:00"},
        )

        body = response.json()
        assert body["status"] == "scheduled"
        assert body["countdown_seconds"] == 1800
        assert body["countdown_kind"] == "start"
        assert registry(client).kinds_for(channel["id"]) == {JobKind.RECURRENCE}
        assert_lifecycle_invariants(client, body)

    def test_patch_invalid_status_returns_422(self, client: TestClient, channel_payload):
        channel = create(client, channel_payload)

        response = client.patch(f"/api/channels/{channel['id']}/status", json={"status": "paused"})

        assert response.status_code == 422

    def test_patch_unknown_channel_returns_404(self, client: TestClient):
        response = client.patch("/api/channels/999/status", json={"status": "running"})

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestBulkUpdate:
    def test_bulk_start_skips_unknown_ids(self, client: TestClient, channel_payload):
        ids = [
            create(client, channel_payload, sequence_number=number)["id"] for number in (1, 2, 3)
        ]

        response = client.post(
            "/api/channels/bulk/update", json={"channel_ids": ids + [999], "action": "start"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"action": "start", "changes": 3}
        statuses = [item["status"] for item in client.get("/api/channels").json()["data"]]
        assert statuses == ["running"] * 3

    def test_bulk_delete(self, client: TestClient, channel_payload):
        ids = [create(client, channel_payload, sequence_number=n)["id"] for n in (1, 2)]

        response = client.post(
            "/api/channels/bulk/update", json={"channel_ids": ids, "action": "delete"}
        )

        assert response.json()["changes"] == 2
        assert client.get("/api/channels").json()["count"] == 0
        assert len(registry(client)) == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"channel_ids": [1], "action": "pause"},
            {"channel_ids": [], "action": "start"},
            {"action": "start"},
        ],
    )
    def test_invalid_bulk_payload_returns_422(self, client: TestClient, payload: dict):
        response = client.post("/api/channels/bulk/update", json=payload)

        assert response.status_code == 422
