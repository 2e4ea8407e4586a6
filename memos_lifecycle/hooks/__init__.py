"""Lifecycle hook handlers, one module per host event."""

from memos_lifecycle.hooks.compaction import CompactionFlush
from memos_lifecycle.hooks.context_injection import ContextInjector
from memos_lifecycle.hooks.fact_extraction import FactExtractionHook
from memos_lifecycle.hooks.session_start import SessionStartHook
from memos_lifecycle.hooks.tool_trace import ToolTraceHook

__all__ = [
    "CompactionFlush",
    "ContextInjector",
    "FactExtractionHook",
    "SessionStartHook",
    "ToolTraceHook",
]
