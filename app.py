import asyncio
import os
import sys
from pathlib import Path

from structure_browser.config.loader import load_browser_config
from structure_browser.core.deep_link import DeepLink, parse_query_params
from structure_browser.export.cluster_table import epitopes_to_frame, search_result_to_frame, write_tsv
from structure_browser.logging_config import configure_logging
from structure_browser.services.session_service import StructureSearchSession
from structure_browser.services.transport import HttpxTransport

configure_logging()


def parse_args(argv: list) -> dict:
    """key=value pairs, same names as the structure page query string."""
    params = {}
    for arg in argv:
        key, sep, value = arg.partition("=")
        if sep:
            params[key] = value
        else:
            params["query"] = arg
    return params


async def run(params: dict) -> int:
    cfg = load_browser_config()
    async with HttpxTransport.from_config(cfg) as transport:
        session = StructureSearchSession(transport, config=cfg)
        target = parse_query_params(params)

        if isinstance(target, DeepLink):
            await session.filter_by_url(target)
            frame = epitopes_to_frame(session.epitopes.value)
        elif target:
            result = await session.search_cdr3_by_url(target)
            if result is None:
                return 1
            frame = search_result_to_frame(result, normalized=os.getenv("STRUCTURE_BROWSER_NORMALIZED", "0") == "1")
        else:
            tree = await session.load()
            print(f"Loaded metadata: {len(tree.root.values)} top-level values")
            return 0

    out = os.getenv("STRUCTURE_BROWSER_OUT")
    if out:
        write_tsv(frame, Path(out))
    else:
        frame.to_csv(sys.stdout, sep="\t", index=False)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run(parse_args(sys.argv[1:]))))
