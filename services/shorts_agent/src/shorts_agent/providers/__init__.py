"""Script, voice, avatar and upload providers."""

from .avatars import DIDAvatarRenderer, HeyGenAvatarRenderer
from .base import AvatarRenderer, Providers, ScriptWriter, Uploader, VoiceSynth
from .elevenlabs import ElevenLabsVoiceSynth
from .factory import ProviderRegistry, ProviderResolver, build_provider_resolver
from .openai_writer import OpenAIScriptWriter
from .stub import StubAvatarRenderer, StubScriptWriter, StubUploader, StubVoiceSynth
from .youtube import YouTubeUploader

__all__ = [
    "AvatarRenderer",
    "DIDAvatarRenderer",
    "ElevenLabsVoiceSynth",
    "HeyGenAvatarRenderer",
    "OpenAIScriptWriter",
    "ProviderRegistry",
    "ProviderResolver",
    "Providers",
    "ScriptWriter",
    "StubAvatarRenderer",
    "StubScriptWriter",
    "StubUploader",
    "StubVoiceSynth",
    "Uploader",
    "VoiceSynth",
    "YouTubeUploader",
    "build_provider_resolver",
]
