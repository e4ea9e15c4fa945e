from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line schema and translates the parsed namespace into
configuration overrides understood by the validator.
"""

import argparse
from typing import Any, Dict

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the layerscope CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="layerscope",
        description="Inspect the layers of a container image archive and report wasted space.",
    )

    p.add_argument(
        "image_archive",
        help="Path to an image tarball produced by `docker save`.",
    )

    # --- Layer Selection ---
    p.add_argument(
        "--layer",
        type=int,
        default=None,
        help="Layer index to inspect (default: the topmost layer).",
    )
    p.add_argument(
        "--aggregate",
        action="store_true",
        help="Compare against the base layer instead of the previous layer.",
    )

    # --- Tree Rendering ---
    p.add_argument(
        "--tree",
        action="store_true",
        help="Print the diff-annotated file tree of the selected layer.",
    )
    p.add_argument(
        "--start-row",
        dest="start_row",
        type=int,
        default=0,
        help="First visible tree row to print.",
    )
    p.add_argument(
        "--rows",
        dest="tree_rows",
        type=int,
        default=None,
        help="Number of tree rows to print.",
    )
    p.add_argument(
        "--attributes",
        dest="show_attributes",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show permission, owner and size columns in the tree.",
    )
    p.add_argument(
        "--collapse",
        action="store_true",
        help="Start with every directory collapsed.",
    )

    # --- Session ---
    p.add_argument(
        "--no-prewarm",
        dest="no_prewarm",
        action="store_true",
        help="Compose layer ranges lazily instead of up front.",
    )

    # --- Configuration and Diagnostic Tools ---
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help="Ignore the saved configuration file.",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Elevate logging verbosity to DEBUG.",
    )

    # --- Format Selection ---
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the analysis result as JSON.",
    )

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into configuration overrides.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    if args.collapse:
        overrides["collapse_dirs"] = True
    if args.show_attributes is not None:
        overrides["show_attributes"] = args.show_attributes
    if args.tree_rows is not None:
        overrides["tree_rows"] = args.tree_rows
    if args.no_prewarm:
        overrides["prewarm_cache"] = False
    if args.debug:
        overrides["log_level"] = "DEBUG"

    return overrides
