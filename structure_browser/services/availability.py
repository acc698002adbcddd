from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional, Set

from structure_browser.services.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_AVAILABILITY_ENDPOINT = "/api/search/availability"


def normalize_structure_id(structure_id: Optional[str]) -> str:
    return structure_id.strip().lower() if structure_id else ""


def build_motif_key(
        species: Optional[str],
        chain: Optional[str],
        mhc_class: Optional[str],
        gene: Optional[str],
        epitope: Optional[str],
) -> Optional[str]:
    """
    Pipe-join the normalised parts of a motif key, or None if any part is empty.
    """
    parts = [normalize_structure_id(p) for p in (species, chain, mhc_class, gene, epitope)]
    if any(len(p) == 0 for p in parts):
        return None
    return "|".join(parts)


class AvailabilityIndex:
    """
    Lazily loaded membership index of structures and motifs that actually exist.

    The first query triggers exactly one fetch; concurrent queries await the
    same task and later queries reuse the loaded sets. A failed fetch clears
    the sets and forgets the task so that the next query retries.
    """

    def __init__(self, transport: Transport, endpoint: str = DEFAULT_AVAILABILITY_ENDPOINT):
        self._transport = transport
        self._endpoint = endpoint
        self._load_task: Optional[asyncio.Task] = None
        self._structure_ids: Set[str] = set()
        self._motif_keys: Set[str] = set()

    async def _ensure_loaded(self) -> None:
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._fetch())
        await self._load_task

    async def _fetch(self) -> None:
        try:
            payload = await self._transport.get_json(self._endpoint)
        except Exception:
            self._structure_ids.clear()
            self._motif_keys.clear()
            self._load_task = None
            logger.warning("Availability index failed to load; will retry on next query")
            raise

        if not isinstance(payload, dict):
            logger.warning("Availability payload is not an object; index stays empty")
            payload = {}
        self._structure_ids.update(self._normalized(payload.get("structures")))
        self._motif_keys.update(self._normalized(payload.get("motifs")))
        logger.info(
            "Availability index loaded",
            extra={"n_structures": len(self._structure_ids), "n_motifs": len(self._motif_keys)},
        )

    @staticmethod
    def _normalized(values: Any) -> Iterable[str]:
        if not isinstance(values, list):
            return []
        return [n for n in (normalize_structure_id(str(v)) for v in values if v) if n]

    async def has_structure(self, structure_id: Optional[str]) -> bool:
        await self._ensure_loaded()
        normalized = normalize_structure_id(structure_id)
        return len(normalized) > 0 and normalized in self._structure_ids

    async def has_motif(
            self,
            species: Optional[str],
            chain: Optional[str],
            mhc_class: Optional[str],
            gene: Optional[str],
            epitope: Optional[str],
    ) -> bool:
        await self._ensure_loaded()
        key = build_motif_key(species, chain, mhc_class, gene, epitope)
        return key is not None and key in self._motif_keys

    @property
    def is_loaded(self) -> bool:
        task = self._load_task
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    def reset(self) -> None:
        """Drop the cached index; the next query fetches again."""
        self._load_task = None
        self._structure_ids.clear()
        self._motif_keys.clear()
