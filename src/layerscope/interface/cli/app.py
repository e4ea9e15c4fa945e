from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, configuration resolution
(defaults, persistent storage and CLI overrides), image analysis, range cache
warm-up and report rendering.
"""

import json
import os
import sys
from typing import Any, Dict, List, Optional

from layerscope.core.config_validator import validate_config
from layerscope.core.filetree.cache import TreeCache, aggregate_compare_key, layer_compare_key
from layerscope.core.image.analyzer import analyze_image
from layerscope.domain.analysis_models import AnalysisResult
from layerscope.domain.config import get_default_config, load_config, tree_options_from_config
from layerscope.domain.errors import LayerscopeError
from layerscope.infra.fs import normalize_path
from layerscope.infra.logging import LoggingConfig, configure_logging, get_logger
from layerscope.interface.cli import args as cli_args
from layerscope.utils.formatting import format_bytes, format_percent

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the main CLI application workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code (0 success, 1 analysis failure, 2 bad input,
             130 interrupted).
    """
    # 1. Argument parsing phase
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 2. Logging bootstrap (console only until the config is known)
    configure_logging(LoggingConfig(level="DEBUG" if args.debug else "WARNING"))
    logger.debug("CLI execution initiated. Resolving configuration hierarchy...")

    # 3. Resolve base configuration (Default vs Persistent state)
    base_conf = get_default_config() if args.use_defaults else load_config()

    # 4. Merge command-line overrides and validate
    raw_conf = _merge_config(base_conf, cli_args.args_to_overrides(args))
    clean_conf, warnings = validate_config(raw_conf, strict=False)
    for w in warnings:
        logger.warning(f"Configuration Constraint: {w}")

    configure_logging(
        LoggingConfig(
            level=clean_conf["log_level"],
            console=True,
            log_file=clean_conf["log_file"] or None,
        ),
        force=True,
    )

    # 5. Pre-flight input verification
    archive_path = normalize_path(args.image_archive)
    if not os.path.isfile(archive_path):
        msg = f"Image archive does not exist: {archive_path}"
        logger.error(msg)
        print(f"ERROR: {msg}", file=sys.stderr)
        return 2

    # 6. Analysis phase
    try:
        result = analyze_image(archive_path, tree_options_from_config(clean_conf))
        cache = TreeCache(result.ref_trees)
        if clean_conf["prewarm_cache"]:
            cache.build()
    except KeyboardInterrupt:
        msg = "Analysis interrupted by user."
        logger.warning(msg)
        print(msg, file=sys.stderr)
        return 130
    except (LayerscopeError, OSError) as e:
        msg = f"Image analysis failed: {e}"
        logger.critical(msg, exc_info=True)
        print(f"ERROR: {msg}", file=sys.stderr)
        return 1

    # 7. Output rendering phase
    if args.json_output:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return 0

    _print_layers(result)
    _print_image_details(result, clean_conf["max_report_rows"])

    if not args.tree:
        return 0
    try:
        return _print_tree(result, cache, args, clean_conf)
    except LayerscopeError as e:
        logger.critical(f"Tree rendering failed: {e}", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

# -----------------------------------------------------------------------------
# CONFIGURATION MERGING
# -----------------------------------------------------------------------------

def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow merge of known override keys into the base configuration."""
    out = dict(base)
    keys_to_merge = [
        "collapse_dirs", "show_attributes", "prewarm_cache",
        "tree_rows", "max_report_rows", "log_level", "log_file",
    ]
    for k in keys_to_merge:
        if k in overrides and overrides[k] is not None:
            out[k] = overrides[k]
    return out

# -----------------------------------------------------------------------------
# VIEW RENDERING (HUMAN READABLE)
# -----------------------------------------------------------------------------

def _print_layers(result: AnalysisResult) -> None:
    print("Layers")
    print(f"{'Idx':>4}  {'Size':>10}  {'Id':<15}  Command")
    for layer in result.layers:
        print(f"{layer.index:>4}  {format_bytes(layer.size):>10}  {layer.short_id:<15}  {layer.command}")


def _print_image_details(result: AnalysisResult, max_rows: int) -> None:
    """
    Print the image totals and the worst offenders of the inefficiency report.

    Args:
        result: The analysis aggregate.
        max_rows: Maximum number of inefficient paths listed.
    """
    print()
    print("Image Details")
    print(f"Total Image size: {format_bytes(result.size_bytes)}")
    print(f"Potential wasted space: {format_bytes(result.wasted_bytes)}")
    print(f"Image efficiency score: {format_percent(result.efficiency)}")

    if not result.inefficiencies:
        return

    print()
    print(f"{'Count':>5}  {'Total Space':>11}  Path")
    worst_first = list(reversed(result.inefficiencies))[:max_rows]
    for data in worst_first:
        print(f"{len(data.nodes):>5}  {format_bytes(data.cumulative_size):>11}  {data.path}")


def _print_tree(result: AnalysisResult, cache: TreeCache, args: Any, conf: Dict[str, Any]) -> int:
    layer_count = len(result.layers)
    if layer_count == 0:
        print("Image has no layers.", file=sys.stderr)
        return 1

    layer_idx = layer_count - 1 if args.layer is None else args.layer
    if not 0 <= layer_idx < layer_count:
        msg = f"Layer index {layer_idx} out of range (0..{layer_count - 1})."
        logger.error(msg)
        print(f"ERROR: {msg}", file=sys.stderr)
        return 2

    key = aggregate_compare_key(layer_idx) if args.aggregate else layer_compare_key(layer_idx)
    tree = cache.get(key)

    start = max(args.start_row, 0)
    stop = start + conf["tree_rows"] - 1
    print()
    print(f"Layer {layer_idx} ({tree.visible_size()} visible rows)")
    print(tree.string_between(start, stop, show_attributes=conf["show_attributes"]), end="")
    return 0

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
