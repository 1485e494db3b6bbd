import orjson

from aioradiosync.models import (
    ClientMessage,
    Mode,
    PlaylistEntry,
    ServerMessage,
    SyncMessage,
    SyncPayload,
    TrackDurationMessage,
    TrackEndMessage,
)


def test_sync_message_uses_wire_names() -> None:
    message = SyncMessage(
        payload=SyncPayload(
            track="sub/d.flac",
            title="d",
            artist="Unknown Artist",
            mode=Mode.NIGHT,
            seek=12.5,
            is_playing=True,
            playlist=[PlaylistEntry(id="a.mp3", title="a", artist="Band")],
            current_index=3,
            total_tracks=9,
            station="Radio SOSUN",
        )
    )
    data = orjson.loads(message.to_json())
    assert data["type"] == "sync"
    payload = data["payload"]
    assert payload["track"] == "sub/d.flac"
    assert payload["mode"] == "night"
    assert payload["isPlaying"] is True
    assert payload["isPreparing"] is False
    assert payload["currentIndex"] == 3
    assert payload["totalTracks"] == 9
    assert payload["playlist"] == [{"id": "a.mp3", "title": "a", "artist": "Band"}]
    assert "is_playing" not in payload


def test_preparing_payload_has_null_track() -> None:
    payload = SyncPayload(
        track=None,
        title=None,
        artist=None,
        mode=Mode.DAY,
        seek=0.0,
        is_playing=False,
        is_preparing=True,
    )
    data = orjson.loads(payload.to_json())
    assert data["track"] is None
    assert data["isPreparing"] is True


def test_parse_sync_message() -> None:
    raw = (
        '{"type": "sync", "payload": {"track": "a.mp3", "title": "a", "artist": "X",'
        ' "mode": "day", "seek": 42.0, "isPlaying": true, "playlist": []}}'
    )
    message = ServerMessage.from_json(raw)
    assert isinstance(message, SyncMessage)
    assert message.payload.track == "a.mp3"
    assert message.payload.seek == 42.0
    assert message.payload.is_playing
    assert not message.payload.is_preparing
    assert message.payload.mode is Mode.DAY


def test_parse_client_messages() -> None:
    assert isinstance(ClientMessage.from_json('{"type": "trackEnd"}'), TrackEndMessage)
    message = ClientMessage.from_json('{"type": "trackDuration", "payload": 231.5}')
    assert isinstance(message, TrackDurationMessage)
    assert message.payload == 231.5


def test_client_messages_carry_type() -> None:
    assert orjson.loads(TrackEndMessage().to_json()) == {"type": "trackEnd"}
    assert orjson.loads(TrackDurationMessage(payload=3.0).to_json()) == {
        "type": "trackDuration",
        "payload": 3.0,
    }
