from __future__ import annotations

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from structure_browser.config.model import BrowserConfig
from structure_browser.core.exceptions import TransportError
from structure_browser.core.scheduler import VirtualScheduler
from structure_browser.services.notifications import RecordingNotifier
from structure_browser.services.session_service import StructureSearchSession
from structure_browser.services.transport import Transport


class FakeTransport(Transport):
    """
    In-memory stand-in for the structures API.

    routes: path -> payload | Exception | callable(body) -> payload | list of those
    (a list is consumed one response per call, the last one repeating).
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Any]] = []

    async def get_json(self, path: str) -> Any:
        return await self._respond("GET", path, None)

    async def post_json(self, path: str, body: Any) -> Any:
        return await self._respond("POST", path, body)

    async def _respond(self, method: str, path: str, body: Any) -> Any:
        self.calls.append((method, path, copy.deepcopy(body)))
        # Yield once so concurrent callers interleave like real I/O.
        await asyncio.sleep(0)
        handler = self.routes.get(path)
        if isinstance(handler, list):
            handler = handler.pop(0) if len(handler) > 1 else handler[0]
        if handler is None:
            raise TransportError(f"No route for {method} {path}")
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(body)
        return copy.deepcopy(handler)

    def count(self, path: str) -> int:
        return sum(1 for _, p, _ in self.calls if p == path)


def _leaf(value: str, hash_value: str) -> Dict[str, Any]:
    return {"value": value, "hash": hash_value, "next": None, "isOpened": False, "isSelected": False}


def _node(value: str, level: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"value": value, "next": {"name": level, "values": children}, "isOpened": False}


def make_metadata_payload() -> Dict[str, Any]:
    """
    species -> gene -> mhc.class -> mhc.a -> antigen.epitope

    HomoSapiens/TRA/MHCI/A*02: GILGFVFTL (h-gil-tra), NLVPMVATV (h-nlv-tra)
    HomoSapiens/TRB/MHCI/A*02: GILGFVFTL (h-gil-trb)
    MusMusculus/TRB/MHCII/H2-IAb: HGFVRIH (h-mus)
    """
    return {
        "root": {
            "name": "species",
            "values": [
                _node("HomoSapiens", "gene", [
                    _node("TRA", "mhc.class", [
                        _node("MHCI", "mhc.a", [
                            _node("A*02", "antigen.epitope", [
                                _leaf("GILGFVFTL", "h-gil-tra"),
                                _leaf("NLVPMVATV", "h-nlv-tra"),
                            ]),
                        ]),
                    ]),
                    _node("TRB", "mhc.class", [
                        _node("MHCI", "mhc.a", [
                            _node("A*02", "antigen.epitope", [
                                _leaf("GILGFVFTL", "h-gil-trb"),
                            ]),
                        ]),
                    ]),
                ]),
                _node("MusMusculus", "gene", [
                    _node("TRB", "mhc.class", [
                        _node("MHCII", "mhc.a", [
                            _node("H2-IAb", "antigen.epitope", [
                                _leaf("HGFVRIH", "h-mus"),
                            ]),
                        ]),
                    ]),
                ]),
            ],
        }
    }


def make_cluster(cluster_id: str, size: int, structure_id: Optional[str] = "1AO7", subset: str = "CD8") -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "species": "HomoSapiens",
        "gene": "TRA",
        "mhc.class": "MHCI",
        "mhc.a": "HLA-A*02:01",
        "antigen.epitope": "GILGFVFTL",
        "cell.subset": subset,
    }
    if structure_id is not None:
        meta["structure.id"] = structure_id
    return {
        "clusterId": cluster_id,
        "size": size,
        "length": 13,
        "vsegm": "TRAV27",
        "jsegm": "TRAJ42",
        "entries": [{"cdr3": "CAGAGSQGNLIF", "v": "TRAV27", "j": "TRAJ42", "cdr3vEnd": 4, "cdr3jStart": 8}],
        "meta": meta,
    }


@pytest.fixture
def metadata_payload() -> Dict[str, Any]:
    return make_metadata_payload()


@pytest.fixture
def cluster_factory():
    return make_cluster


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def session_factory():
    """
    Build (session, transport, notifier, scheduler) around a FakeTransport
    already serving the sample metadata tree.
    """

    def _make(routes: Optional[Dict[str, Any]] = None, config: Optional[BrowserConfig] = None):
        cfg = config or BrowserConfig()
        all_routes: Dict[str, Any] = {cfg.metadata_endpoint: make_metadata_payload()}
        all_routes.update(routes or {})
        transport = FakeTransport(all_routes)
        notifier = RecordingNotifier()
        scheduler = VirtualScheduler()
        session = StructureSearchSession(transport, notifier=notifier, scheduler=scheduler, config=cfg)
        return session, transport, notifier, scheduler

    return _make
