"""
voice-cache services layer.

    - coordinator.py: RequestCoordinator (lookup + single-flight generation)
    - regeneration.py: RegenerationEngine (forced single and bulk regeneration)
    - directory.py: MessageDirectory implementations
    - validators.py: input validation
    - voice_service.py: VoiceCacheService composition root
"""
from .coordinator import GenerationResult, RequestCoordinator
from .directory import InMemoryMessageDirectory, MessageDirectory, SpokenMessage, YamlMessageDirectory
from .regeneration import RegenerationEngine
from .voice_service import VoiceCacheService

__all__ = [
    "GenerationResult",
    "InMemoryMessageDirectory",
    "MessageDirectory",
    "RegenerationEngine",
    "RequestCoordinator",
    "SpokenMessage",
    "VoiceCacheService",
    "YamlMessageDirectory",
]
