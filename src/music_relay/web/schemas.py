"""Wire models and realtime message builders."""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from music_relay.domain.exceptions import MessageParseError
from music_relay.domain.library.models import CatalogEntry
from music_relay.domain.playback.session import PlaybackState


class CatalogEntryModel(BaseModel):
    """Catalog entry as sent to clients (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    artist: str
    album: str
    genre: list[str]
    duration_seconds: float
    year: int
    track_number: int
    disc_number: int
    file_path: str
    file_name: str
    format: str
    has_cover_art: bool
    cover_mime_type: str
    bitrate: int
    sample_rate: int
    channel_count: int
    file_size: int
    added_at: str
    modified_at: str

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "CatalogEntryModel":
        data = entry._asdict()
        data["genre"] = list(entry.genre)
        return cls(**data)


def entry_payload(entry: Optional[CatalogEntry]) -> Optional[dict[str, Any]]:
    """JSON-ready dict for an entry, or None."""
    if entry is None:
        return None
    return CatalogEntryModel.from_entry(entry).model_dump(by_alias=True, mode="json")


# Inbound realtime commands


class PlayCommand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    id: str = Field(min_length=1)


class SearchCommand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    query: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)


def parse_message(raw: Any) -> dict[str, Any]:
    """Decode a realtime message into a dict with a string "type".

    Raises:
        MessageParseError: If the message is not a JSON object with a type
    """
    if isinstance(raw, dict):
        data = raw
    else:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MessageParseError(f"Malformed message: {e}") from e
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise MessageParseError(f"Malformed message: could not parse JSON ({e})") from e

    if not isinstance(data, dict):
        raise MessageParseError("Malformed message: expected a JSON object")

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise MessageParseError("Malformed message: missing 'type'")
    return data


def validate_command(model: type[BaseModel], data: dict[str, Any]) -> Any:
    """Validate a command payload, turning pydantic errors into MessageParseError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'message'}: {err['msg']}"
            for err in e.errors()
        )
        raise MessageParseError(f"Malformed '{data.get('type')}' message: {problems}") from e


# Outbound realtime messages


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def welcome_message(client_id: str, version: str) -> dict[str, Any]:
    return {
        "type": "welcome",
        "clientId": client_id,
        "message": "Connected to Music Relay",
        "version": version,
    }


def playback_status_message(state: PlaybackState) -> dict[str, Any]:
    return {
        "type": "playback_status",
        "current": entry_payload(state.entry),
        "status": state.status.value,
    }


def playback_update_message(
    music: Optional[CatalogEntry], status: str, **extra: Any
) -> dict[str, Any]:
    return {"type": "playback_update", **extra, "music": entry_payload(music), "status": status}


def search_results_message(
    query: str, filters: dict[str, Any], results: list[CatalogEntry]
) -> dict[str, Any]:
    return {
        "type": "search_results",
        "success": True,
        "query": query,
        "filters": filters,
        "results": [entry_payload(entry) for entry in results],
        "total": len(results),
    }


def error_message(message: str, code: Optional[str] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": "error", "message": message}
    if code:
        payload["code"] = code
    return payload


def pong_message() -> dict[str, Any]:
    return {"type": "pong", "timestamp": utc_timestamp()}


def heartbeat_message() -> dict[str, Any]:
    return {"type": "heartbeat", "timestamp": utc_timestamp()}
