"""Speech synthesis providers and audio playback.

This package provides provider-agnostic synthesis through pluggable provider adapters,
the voice catalog, artifact persistence and the playback state machine.
"""

from core.tts.audio_output import AudioDecodeError, PyAudioOutput
from core.tts.audio_playback_manager import (
    AudioPlaybackManager,
    PlaybackErrorKind,
    PlaybackSnapshot,
    PlaybackState,
)
from core.tts.credentials import ConfigCredentialStore, CredentialStore, StaticCredentialStore
from core.tts.file_manager import ArtifactStore, ArtifactStoreError
from core.tts.interface import (
    EncodedRequest,
    ProviderAdapter,
    SynthesisResult,
    TTSDecodingError,
    TTSEncodingError,
    TTSExceptionError,
    TTSInvalidURLError,
    TTSNoAPIKeyError,
    TTSNotSupportedError,
    TTSTransportError,
)
from core.tts.synthesis_manager import SynthesisManager

__all__: list[str] = [
    "ArtifactStore",
    "ArtifactStoreError",
    "AudioDecodeError",
    "AudioPlaybackManager",
    "ConfigCredentialStore",
    "CredentialStore",
    "EncodedRequest",
    "PlaybackErrorKind",
    "PlaybackSnapshot",
    "PlaybackState",
    "ProviderAdapter",
    "PyAudioOutput",
    "StaticCredentialStore",
    "SynthesisManager",
    "SynthesisResult",
    "TTSDecodingError",
    "TTSEncodingError",
    "TTSExceptionError",
    "TTSInvalidURLError",
    "TTSNoAPIKeyError",
    "TTSNotSupportedError",
    "TTSTransportError",
]
