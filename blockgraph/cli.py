"""
blockgraph — command line entry point
======================================

Usage
-----
    blockgraph validate <my_flow.flow.json>
    blockgraph compile  <my_flow.flow.json> [--out ir.json]
    blockgraph generate <my_flow.flow.json> [--out my_flow.rs]
    blockgraph serve    [--host HOST] [--port PORT]

``compile`` lowers a saved flow to the IR posted to the code generator.
``generate`` goes one step further and asks the code-generation service
(``BLOCKGRAPH_SERVICE_URL``) for the source.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .compiler.lowering import compile_graph
from .config import LOG_DATEFMT, LOG_FORMAT, Settings
from .core.Errors import GraphError
from .registry.PluginRegistry import PluginRegistry
from .serializers.flow_serializer import read_flow
from .services.codegen_client import CodegenClient

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="blockgraph",
        description="Block editor core: validate, lower and generate flows.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("--log-level", default=None, help="Logging level (default: BLOCKGRAPH_LOG_LEVEL or INFO).")
    sub = p.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Check a .flow.json file.")
    validate.add_argument("flow", metavar="flow.json")

    compile_ = sub.add_parser("compile", help="Lower a .flow.json file to IR JSON.")
    compile_.add_argument("flow", metavar="flow.json")
    compile_.add_argument("--out", metavar="FILE", help="Write the IR here instead of stdout.")

    generate = sub.add_parser("generate", help="Generate source code through the service.")
    generate.add_argument("flow", metavar="flow.json")
    generate.add_argument("--out", metavar="FILE", help="Write the code here instead of stdout.")

    serve = sub.add_parser("serve", help="Run the editor API.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")
    return p


def _registry(settings: Settings) -> PluginRegistry:
    registry = PluginRegistry.builtin()
    if settings.plugin_dir:
        registry.load_directory(settings.plugin_dir)
    return registry


def _write(text: str, out: Optional[str]) -> None:
    if out:
        Path(out).write_text(text, encoding="utf-8")
        logger.info("wrote %s", out)
    else:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = Settings.from_env()

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "blockgraph.server.main:socket_app",
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload,
        )
        return 0

    try:
        registry = _registry(settings)
        snapshot = read_flow(args.flow, registry)

        if args.command == "validate":
            print(f"{args.flow}: OK ({len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges)")
            return 0

        ir = compile_graph(snapshot, registry)
        if args.command == "compile":
            _write(json.dumps(ir.to_dict(), indent=2, ensure_ascii=False), args.out)
            return 0

        client = CodegenClient(settings.service_url, settings.service_timeout)
        code = asyncio.run(client.compile_flow(ir))
        _write(code, args.out)
        return 0
    except FileNotFoundError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except GraphError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
