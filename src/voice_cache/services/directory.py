"""
Message directory: the corpus of spoken messages.

The cache does not own message text. A directory answers two questions:
which owners exist, and what text and voice each one should speak.

Two implementations:
    InMemoryMessageDirectory  dict-backed, for tests and embedding
    YamlMessageDirectory      reads config/messages.yaml

messages.yaml:
    messages:
      - id: msg_42
        text: "Welcome back"
        voice:
          voiceId: v1
          stability: 0.6
      - id: lesson_intro_3
        text: "Today we look at fractions."
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from voice_cache.cache.models import VoiceConfig
from voice_cache.core.logging import get_logger, info, warn

_LOG = get_logger("voice-cache.directory")


@dataclass(frozen=True)
class SpokenMessage:
    owner_id: str
    text: str
    voice_config: VoiceConfig


class MessageDirectory:
    """Abstract source of spoken messages."""

    def list_owner_ids(self) -> List[str]:
        """All known owner ids, in a stable order."""
        raise NotImplementedError

    def get_message(self, owner_id: str) -> Optional[SpokenMessage]:
        """The message for `owner_id`, or None if unknown."""
        raise NotImplementedError


class InMemoryMessageDirectory(MessageDirectory):
    """Thread-safe dict-backed directory. Owners keep insertion order."""

    def __init__(self, messages: Iterable[SpokenMessage] = ()):
        self._lock = threading.Lock()
        self._messages: Dict[str, SpokenMessage] = {}
        for message in messages:
            self._messages[message.owner_id] = message

    def put(self, message: SpokenMessage) -> None:
        with self._lock:
            self._messages[message.owner_id] = message

    def remove(self, owner_id: str) -> bool:
        with self._lock:
            return self._messages.pop(owner_id, None) is not None

    def list_owner_ids(self) -> List[str]:
        with self._lock:
            return list(self._messages)

    def get_message(self, owner_id: str) -> Optional[SpokenMessage]:
        with self._lock:
            return self._messages.get(owner_id)


def _parse_messages(raw: Any, default_voice: VoiceConfig, source: str) -> List[SpokenMessage]:
    items = (raw or {}).get("messages", []) if isinstance(raw, dict) else []
    if not isinstance(items, list):
        raise ValueError(f"{source}: 'messages' must be a list")

    messages: List[SpokenMessage] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{source}: message #{i} must be a mapping")
        owner_id = item.get("id") or item.get("owner_id")
        if not owner_id:
            raise ValueError(f"{source}: message #{i} has no id")
        voice = item.get("voice") or item.get("voiceSettings") or {}
        messages.append(SpokenMessage(
            owner_id=str(owner_id),
            text=str(item.get("text", "")),
            voice_config=VoiceConfig.from_dict(voice, base=default_voice),
        ))
    return messages


class YamlMessageDirectory(InMemoryMessageDirectory):
    """
    Directory loaded from a YAML file.

    Messages without their own voice use `default_voice`, and partial
    voice blocks are filled from it. A missing file gives an empty
    directory; a malformed one raises ValueError.
    """

    def __init__(self, path: str | Path, default_voice: Optional[VoiceConfig] = None):
        super().__init__()
        self.path = Path(path)
        self.default_voice = default_voice or VoiceConfig()
        self.reload()

    def reload(self) -> int:
        """Re-read the file. Returns the number of messages loaded."""
        if not self.path.exists():
            warn(_LOG, "messages_file_missing", path=str(self.path))
            messages: List[SpokenMessage] = []
        else:
            with self.path.open("r", encoding="utf-8") as f:
                try:
                    raw = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ValueError(f"{self.path}: invalid YAML: {e}") from e
            messages = _parse_messages(raw, self.default_voice, str(self.path))

        with self._lock:
            self._messages = {m.owner_id: m for m in messages}
        info(_LOG, "messages_loaded", path=str(self.path), count=len(messages))
        return len(messages)
