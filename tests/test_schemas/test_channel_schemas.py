"""Tests for channel request/response schemas."""

import pytest
from pydantic import ValidationError

from channel_scheduler.models import BulkAction, Channel, ChannelStatus, CountdownKind
from channel_scheduler.schemas.channel import (
    BulkUpdateRequest,
    ChannelCreate,
    ChannelResponse,
    ChannelUpdate,
)


def make_channel(**overrides) -> Channel:
    fields = {
        "id": 1,
        "sequence_number": 1,
        "name": "d2kg",
        "title": "D2KG LIVE 1",
        "source_file": "Looping Video Live 1.mp4",
        "stream_key": "d2kg-live-key-001",
        "duration": "11h 55m",
        "repeat_policy": "daily",
        "status": ChannelStatus.RUNNING,
        "countdown_seconds": 30359,
        "countdown_kind": CountdownKind.ENDS,
    }
    fields.update(overrides)
    return Channel(**fields)


class TestChannelCreate:
    def test_defaults(self):
        """[P1] Duration defaults to 11h 55m, policy to none, status to scheduled."""
        body = ChannelCreate(sequence_number=1, name="d2kg", title="T", source_file="f.mp4")

        assert body.duration == "11h 55m"
        assert body.repeat_policy == "none"
        assert body.status == ChannelStatus.SCHEDULED
        assert body.stream_key is None

    @pytest.mark.parametrize(
        "policy, expected",
        [("Setiap Hari", "daily"), ("HOURLY", "hourly"), ("every blue moon", "every blue moon")],
    )
    def test_policy_normalization(self, policy: str, expected: str):
        """[P1] Aliases are canonicalized; unknown names pass through unchanged."""
        body = ChannelCreate(
            sequence_number=1, name="d2kg", title="T", source_file="f.mp4", repeat_policy=policy
        )

        assert body.repeat_policy == expected

    def test_negative_sequence_number_rejected(self):
        with pytest.raises(ValidationError):
            ChannelCreate(sequence_number=-1, name="d2kg", title="T", source_file="f.mp4")

    def test_update_tracks_only_sent_fields(self):
        body = ChannelUpdate(title="Renamed", countdown=None)

        assert body.model_dump(exclude_unset=True) == {"title": "Renamed", "countdown": None}


class TestChannelResponse:
    def test_from_orm_adds_formatted_fields(self):
        """[P0] Responses carry countdown as HH:MM:SS and the derived duration."""
        data = ChannelResponse.model_validate(make_channel()).model_dump(mode="json")

        assert data["countdown"] == "08:25:59"
        assert data["countdown_seconds"] == 30359
        assert data["duration_seconds"] == 42900
        assert data["status"] == "running"
        assert data["countdown_kind"] == "ends"

    def test_legacy_text_countdown_is_decoded(self):
        data = ChannelResponse.model_validate(make_channel(countdown_seconds="00:30:57"))

        assert data.countdown_seconds == 1857
        assert data.countdown == "00:30:57"

    def test_undecodable_countdown_becomes_none(self):
        data = ChannelResponse.model_validate(make_channel(countdown_seconds="soon"))

        assert data.countdown_seconds is None
        assert data.countdown is None

    def test_malformed_duration_falls_back(self):
        data = ChannelResponse.model_validate(make_channel(duration="forever"))

        assert data.duration_seconds == 42900


class TestBulkUpdateRequest:
    def test_valid_request(self):
        body = BulkUpdateRequest(channel_ids=[1, 2], action="stop")

        assert body.action is BulkAction.STOP

    def test_empty_ids_rejected(self):
        with pytest.raises(ValidationError):
            BulkUpdateRequest(channel_ids=[], action="start")
