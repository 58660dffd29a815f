"""
Staleness rules for cached entries.

An entry is stale when it is missing or when its key no longer matches
the fingerprint of the desired text and voice. Age never makes an entry
stale; removing old entries is left to maintenance.
"""
from __future__ import annotations

from typing import Optional, Union

from voice_cache.cache.fingerprint import fingerprint
from voice_cache.cache.models import CacheEntry, EntryInfo, VoiceConfig


def is_stale(
    entry: Optional[Union[CacheEntry, EntryInfo]],
    desired_text: str,
    desired_voice_config: VoiceConfig,
) -> bool:
    if entry is None:
        return True
    return fingerprint(desired_text, desired_voice_config) != entry.key
