"""Data models for memories as they come back from MemOS."""

from typing import Any

from pydantic import BaseModel, Field


class MemoryItem(BaseModel):
    """A retrieved memory, normalized from any MemOS response shape.

    MemOS has used ``memory``, ``content``, and ``memory_content`` for the
    text across API versions, and puts ``info`` either at the top level or
    under ``metadata``. :meth:`from_api` folds all of those into one shape.
    """

    content: str = ""
    tags: list[str] = Field(default_factory=list)
    info: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_api(cls, raw: Any) -> "MemoryItem":
        if not isinstance(raw, dict):
            return cls()
        meta = raw.get("metadata") or {}
        if not isinstance(meta, dict):
            meta = {}
        info = meta.get("info") or raw.get("info") or {}
        tags = raw.get("tags") or meta.get("tags") or []
        content = raw.get("memory") or raw.get("content") or raw.get("memory_content") or ""
        return cls(
            content=content if isinstance(content, str) else str(content),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            info=info if isinstance(info, dict) else {},
            metadata=meta,
            created_at=str(meta.get("created_at") or raw.get("created_at") or ""),
            updated_at=str(meta.get("updated_at") or raw.get("updated_at") or ""),
        )

    # -- Skill fields ----------------------------------------------------------

    @property
    def skill_name(self) -> str:
        return self.metadata.get("name") or self.metadata.get("key") or "unnamed"

    @property
    def skill_description(self) -> str:
        return self.metadata.get("description") or self.content

    @property
    def skill_procedure(self) -> str:
        return self.metadata.get("procedure") or ""


class SearchResult(BaseModel):
    """The three parallel channels returned by a MemOS search."""

    text: list[MemoryItem] = Field(default_factory=list)
    skills: list[MemoryItem] = Field(default_factory=list)
    preferences: list[MemoryItem] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.text or self.skills or self.preferences)
