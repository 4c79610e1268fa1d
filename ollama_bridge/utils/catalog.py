"""Provider model catalog.

The registry is an immutable snapshot (ids + entries) replaced by a single
attribute assignment, so a reader never observes a half-built registry. Refreshes
are serialized with an asyncio.Lock; concurrent callers that find an empty
registry wait for the one refresh in flight instead of issuing their own.
"""
import asyncio
from dataclasses import dataclass, field
from functools import lru_cache

from ollama_bridge.config import get_settings, load_model_filter
from ollama_bridge.providers import ChatProvider, get_provider
from ollama_bridge.utils import compat
from ollama_bridge.utils.logging import logger


def short_name(model_id: str) -> str:
    return model_id.split('/')[-1]


@dataclass(frozen=True)
class CatalogEntry:
    model_id: str
    name: str
    modified_at: str
    details: dict = field(default_factory=lambda: dict(compat.MODEL_DETAILS))

    def to_tag(self) -> dict:
        return {
            'name': self.name,
            'model': self.name,
            'modified_at': self.modified_at,
            'size': compat.TAG_SIZE,
            'digest': compat.TAG_DIGEST,
            'details': dict(self.details),
        }


@dataclass(frozen=True)
class _Snapshot:
    ids: tuple[str, ...] = ()
    entries: tuple[CatalogEntry, ...] = ()


class ModelCatalog:
    def __init__(self, provider: ChatProvider, model_filter: frozenset[str] = frozenset()):
        self.provider = provider
        self.model_filter = model_filter
        self._snapshot = _Snapshot()
        self._refresh_lock = asyncio.Lock()

    def snapshot(self) -> tuple[str, ...]:
        """Current registry without triggering a refresh."""
        return self._snapshot.ids

    async def refresh(self) -> tuple[str, ...]:
        async with self._refresh_lock:
            return await self._refresh_locked()

    async def registry(self) -> tuple[str, ...]:
        snapshot = self._snapshot
        if snapshot.ids:
            return snapshot.ids
        async with self._refresh_lock:
            # another request may have refreshed while we waited
            if self._snapshot.ids:
                return self._snapshot.ids
            return await self._refresh_locked()

    async def list(self, model_filter: frozenset[str] | None = None) -> list[CatalogEntry]:
        await self.registry()
        active = self.model_filter if model_filter is None else model_filter
        entries = self._snapshot.entries
        if not active:
            return list(entries)
        return [e for e in entries if e.model_id in active or e.name in active]

    async def _refresh_locked(self) -> tuple[str, ...]:
        model_ids = await self.provider.list_models()
        modified_at = compat.rfc3339_now()
        entries = tuple(
            CatalogEntry(model_id=model_id, name=short_name(model_id), modified_at=modified_at)
            for model_id in model_ids
        )
        self._snapshot = _Snapshot(ids=tuple(model_ids), entries=entries)
        logger.info("catalog_refreshed", models=len(entries))
        return self._snapshot.ids


@lru_cache(maxsize=1)
def get_catalog() -> ModelCatalog:
    return ModelCatalog(get_provider(), load_model_filter(get_settings().filter_path))
