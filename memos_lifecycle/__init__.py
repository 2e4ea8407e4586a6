"""MemOS lifecycle plugin: long-term memory for an agent host."""

from memos_lifecycle.config import Settings
from memos_lifecycle.plugin import HostAPI, MemosLifecyclePlugin

__all__ = ["HostAPI", "MemosLifecyclePlugin", "Settings"]
