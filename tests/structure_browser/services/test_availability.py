from __future__ import annotations

import asyncio

from structure_browser.core.exceptions import TransportError
from structure_browser.services.availability import AvailabilityIndex, build_motif_key, normalize_structure_id

ENDPOINT = "/api/search/availability"


def _payload():
    return {
        "structures": ["1AO7", " 5d2l "],
        "motifs": ["HomoSapiens|TRA|MHCI|A*02|GILGFVFTL"],
    }


def test_normalize_and_motif_key():
    assert normalize_structure_id("  1AO7 ") == "1ao7"
    assert normalize_structure_id(None) == ""
    assert build_motif_key("HomoSapiens", "TRA", "MHCI", "A*02", "GILGFVFTL") == "homosapiens|tra|mhci|a*02|gilgfvftl"
    assert build_motif_key("HomoSapiens", "TRA", "", "A*02", "GILGFVFTL") is None


def test_concurrent_queries_share_one_fetch(transport_factory):
    transport = transport_factory({ENDPOINT: _payload()})
    index = AvailabilityIndex(transport, ENDPOINT)

    async def main():
        return await asyncio.gather(
            index.has_structure("1ao7"),
            index.has_structure("5D2L"),
            index.has_structure("9XYZ"),
            index.has_motif("homosapiens", "tra", "mhci", "a*02", "gilgfvftl"),
        )

    assert asyncio.run(main()) == [True, True, False, True]
    assert transport.count(ENDPOINT) == 1
    assert index.is_loaded


def test_failed_fetch_is_retried_on_next_query(transport_factory):
    transport = transport_factory({ENDPOINT: [TransportError("down"), _payload()]})
    index = AvailabilityIndex(transport, ENDPOINT)

    async def main():
        first_error = None
        try:
            await index.has_structure("1AO7")
        except TransportError as e:
            first_error = e
        second = await index.has_structure("1AO7")
        return first_error, second

    first_error, second = asyncio.run(main())
    assert isinstance(first_error, TransportError)
    assert second is True
    assert transport.count(ENDPOINT) == 2


def test_empty_identifiers_and_parts_are_never_available(transport_factory):
    transport = transport_factory({ENDPOINT: _payload()})
    index = AvailabilityIndex(transport, ENDPOINT)

    async def main():
        return (
            await index.has_structure(""),
            await index.has_structure(None),
            await index.has_motif("HomoSapiens", "TRA", "MHCI", None, "GILGFVFTL"),
        )

    assert asyncio.run(main()) == (False, False, False)


def test_non_object_payload_gives_empty_index(transport_factory):
    transport = transport_factory({ENDPOINT: "1AO7"})
    index = AvailabilityIndex(transport, ENDPOINT)

    assert asyncio.run(index.has_structure("1AO7")) is False
    assert transport.count(ENDPOINT) == 1


def test_reset_forces_refetch(transport_factory):
    transport = transport_factory({ENDPOINT: _payload()})
    index = AvailabilityIndex(transport, ENDPOINT)

    async def main():
        await index.has_structure("1AO7")
        index.reset()
        assert not index.is_loaded
        return await index.has_structure("1AO7")

    assert asyncio.run(main()) is True
    assert transport.count(ENDPOINT) == 2
