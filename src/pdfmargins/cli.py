"""Command-line entrypoint for the margin pipeline."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import MARGIN_SIDES, STRATEGIES, EnhancerConfig, load_config
from .driver import MarginEnhancer, enhance_batch
from .errors import EnhanceError

LOGGER = logging.getLogger(__name__)


def output_name(path: Path) -> str:
    return f"enhanced_{path.stem}.pdf"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Add annotation margins to PDF pages")
    parser.add_argument("inputs", nargs="+", type=Path, help="PDF documents to enhance")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("-o", "--output", type=Path, default=None, help="Output path (single input only)")
    target.add_argument("--outdir", type=Path, default=None, help="Directory for enhanced_<name>.pdf files")
    parser.add_argument("--config", type=Path, default=None, help="Optional configuration YAML")
    parser.add_argument("--side", choices=MARGIN_SIDES, default=None)
    parser.add_argument("--target-width", type=float, default=None)
    parser.add_argument("--target-height", type=float, default=None)
    parser.add_argument("--padding", type=float, default=None)
    parser.add_argument("--strategy", choices=STRATEGIES, default=None)
    parser.add_argument("--workers", type=int, default=None, help="Worker processes for several inputs")
    parser.add_argument("--json", action="store_true", help="Emit a JSON summary per document")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING)")
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    layout: Dict[str, Any] = {}
    if args.side is not None:
        layout["margin_side"] = args.side
    if args.target_width is not None:
        layout["target_width"] = args.target_width
    if args.target_height is not None:
        layout["target_height"] = args.target_height
    if args.padding is not None:
        layout["padding"] = args.padding
    overrides: Dict[str, Any] = {}
    if layout:
        overrides["layout"] = layout
    if args.strategy is not None:
        overrides["detection"] = {"strategy": args.strategy}
    if args.workers is not None:
        overrides["batch"] = {"max_workers": args.workers}
    return overrides


def _destination(args: argparse.Namespace, source: Path) -> Path:
    if args.output is not None:
        return args.output
    directory = args.outdir if args.outdir is not None else source.parent
    return directory / output_name(source)


def _run_single(source: Path, destination: Path, config: EnhancerConfig, as_json: bool) -> bool:
    try:
        with MarginEnhancer(config) as enhancer:
            data, report = enhancer.run_with_report(source.read_bytes())
    except EnhanceError as exc:
        print(json.dumps({"event": "cli_failed", "input": str(source), **exc.to_dict()}))
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    if as_json:
        print(json.dumps({"event": "cli_summary", "input": str(source), "output": str(destination), **report.to_dict()}))
    else:
        LOGGER.info("Wrote %s (%s pages)", destination, report.page_count)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    if args.output is not None and len(args.inputs) > 1:
        parser.error("--output accepts a single input; use --outdir for several")
    try:
        config = load_config(args.config, overrides=_overrides(args))
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    if len(args.inputs) == 1:
        source = args.inputs[0]
        return 0 if _run_single(source, _destination(args, source), config, args.json) else 1

    items = [(str(path), path.read_bytes()) for path in args.inputs]
    ok = True
    for source, result in zip(args.inputs, enhance_batch(items, config)):
        if result.error is not None:
            ok = False
            print(json.dumps({"event": "cli_failed", "input": str(source), **result.error.to_dict()}))
            continue
        destination = _destination(args, source)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(result.data or b"")
        if args.json:
            print(json.dumps({"event": "cli_summary", "input": str(source), "output": str(destination)}))
    return 0 if ok else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
