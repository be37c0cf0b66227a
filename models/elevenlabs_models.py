"""Data models for ElevenLabs API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, Undefined, dataclass_json

__all__: list[str] = ["ElevenLabsVoice", "ElevenLabsVoicesResponse"]


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class ElevenLabsVoice(DataClassJsonMixin):
    """One entry of the ``/v1/voices`` listing."""

    voice_id: str
    name: str
    category: str | None = None


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class ElevenLabsVoicesResponse(DataClassJsonMixin):
    voices: list[ElevenLabsVoice] = field(default_factory=list)
