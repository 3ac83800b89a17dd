#!/usr/bin/env python3
"""
jflow/__main__.py
=================

Command-line entry point.

Usage
-----
    python -m jflow PROGRAM.jir [-a ID ...] [--plan PLAN.json]
                                [--entry SIG] [-v]

Examples
--------
    # Constant propagation on every method
    python -m jflow Example.jir -a constprop

    # Dead code, iterating the constant propagation round-robin
    python -m jflow Example.jir --plan plan.json

    # Call graph and interprocedural constants from a chosen entry
    python -m jflow Example.jir -a cha -a inter-constprop \\
        --entry "<Main: void main()>"

Output
------
    constprop, inter-constprop   ``index: stmt  OUT-fact`` per statement
    deadcode                     dead statements of each method
    cha                          reachable methods, then call edges
    cfg                          Graphviz DOT of each CFG (with ``--dot``)

Exit codes
----------
    0   Success.
    1   The program or the plan was rejected (JFlowError).
    2   Infrastructure failure (missing file, bad arguments).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import (
    List,
    Optional,
    Sequence,
    TextIO,
)

from jflow import __version__
from jflow.callgraph import CALLGRAPH_ID, CallGraph
from jflow.classes import JMethod
from jflow.config import KNOWN_ANALYSES, AnalysisConfig, AnalysisPlan, load_plan
from jflow.ctrlflow_graph import CFG_ID
from jflow.dataflow_analyses import ConstantPropagation, DeadCodeDetection
from jflow.dataflow_engine import DataflowResult
from jflow.errors import JFlowError
from jflow.interproc_analysis import (
    ICFG_ID,
    InterConstantPropagation,
    InterproceduralCFG,
)
from jflow.ir_parser import load_program
from jflow.pipeline import AnalysisManager

_log = logging.getLogger("jflow")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``jflow`` logger: 0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("jflow")
    root.setLevel(level)
    root.handlers[:] = [handler]


def _method_order(methods: Sequence[JMethod]) -> List[JMethod]:
    return sorted(methods, key=lambda m: m.signature)


# ===========================================================================
# Output
# ===========================================================================

def _print_facts(
    title: str,
    methods: Sequence[JMethod],
    result_of,
    stream: TextIO,
) -> None:
    stream.write(f"== {title} ==\n")
    for method in _method_order(methods):
        result: DataflowResult = result_of(method)
        stream.write(f"{method.signature}\n")
        for stmt in method.ir:
            stream.write(f"  {stmt.index}: {stmt}  {result.get_out_fact(stmt)}\n")


def _print_dead_code(methods: Sequence[JMethod], stream: TextIO) -> None:
    stream.write(f"== {DeadCodeDetection.ID} ==\n")
    for method in _method_order(methods):
        dead = method.ir.get_result(DeadCodeDetection.ID)
        stream.write(f"{method.signature}: {len(dead)} dead\n")
        for stmt in dead:
            stream.write(f"  {stmt.index}: {stmt}\n")


def _print_call_graph(call_graph: CallGraph, stream: TextIO) -> None:
    stream.write(f"== {CALLGRAPH_ID} ==\n")
    stream.write("reachable methods:\n")
    for method in call_graph.reachable_methods:
        stream.write(f"  {method.signature}\n")
    stream.write("call edges:\n")
    for edge in call_graph.edges:
        stream.write(
            f"  {edge.caller.signature}[{edge.call_site.index}: "
            f"{edge.call_site}] -> {edge.callee.signature} [{edge.kind}]\n"
        )


def _report(
    manager: AnalysisManager,
    requested: Sequence[str],
    dot: bool,
    stream: TextIO,
) -> None:
    methods = manager.analysed_methods
    for analysis_id in requested:
        if analysis_id == ConstantPropagation.ID:
            _print_facts(
                analysis_id, methods,
                lambda m: m.ir.get_result(ConstantPropagation.ID), stream,
            )
        elif analysis_id == DeadCodeDetection.ID:
            _print_dead_code(methods, stream)
        elif analysis_id == CALLGRAPH_ID:
            call_graph = manager.get_result(CALLGRAPH_ID)
            _print_call_graph(call_graph, stream)
            if dot:
                stream.write(call_graph.to_dot() + "\n")
        elif analysis_id == InterConstantPropagation.ID:
            icfg: InterproceduralCFG = manager.get_result(ICFG_ID)
            result = manager.get_result(analysis_id)
            _print_facts(analysis_id, icfg.methods, lambda m: result, stream)
        elif analysis_id == CFG_ID and dot:
            for method in _method_order(methods):
                stream.write(method.ir.get_result(CFG_ID).to_dot() + "\n")
        else:
            _log.debug("Nothing to print for %s", analysis_id)


# ===========================================================================
# Argument parsing
# ===========================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jflow",
        description=(
            "Constant propagation, dead code detection and CHA call graphs "
            "over a Jimple-like three-address IR."
        ),
    )
    parser.add_argument("program", metavar="PROGRAM", help="textual IR file")
    parser.add_argument(
        "-a", "--analysis",
        action="append",
        dest="analyses",
        choices=list(KNOWN_ANALYSES),
        metavar="ID",
        help=f"analysis to run (repeatable; one of {', '.join(KNOWN_ANALYSES)})",
    )
    parser.add_argument(
        "--plan",
        metavar="PLAN.json",
        help="JSON analysis plan; combined with -a",
    )
    parser.add_argument(
        "--entry",
        metavar="SIG",
        help='entry method, e.g. "<Main: void main()>" (default: main)',
    )
    parser.add_argument(
        "--solver",
        choices=["worklist", "iterative"],
        default=None,
        help="solver for constprop (default: worklist)",
    )
    parser.add_argument(
        "--dot",
        action="store_true",
        help="print the CFGs and call graph as Graphviz DOT",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="increase verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _build_plan(args: argparse.Namespace) -> AnalysisPlan:
    plan = load_plan(args.plan) if args.plan else AnalysisPlan()
    for analysis_id in args.analyses or []:
        if analysis_id not in plan:
            plan.add(AnalysisConfig(analysis_id))
    if len(plan) == 0:
        plan.add(AnalysisConfig(ConstantPropagation.ID))
    constprop = plan.get(ConstantPropagation.ID)
    if args.solver and constprop is not None:
        # also reaches the constprop pulled in as a requirement of deadcode
        options = dict(constprop.options, solver=args.solver)
        plan.add(AnalysisConfig(ConstantPropagation.ID, options))
    return plan


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI; return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    path = Path(args.program)
    if not path.is_file():
        _log.error("program file not found: %s", path)
        return EXIT_INFRA
    if args.plan and not Path(args.plan).is_file():
        _log.error("plan file not found: %s", args.plan)
        return EXIT_INFRA

    try:
        plan = _build_plan(args)
        program = load_program(path, args.entry)
        manager = AnalysisManager(program)
        manager.run(plan)
        requested = list(args.analyses or []) or [
            c.id for c in plan if c.id not in (CFG_ID, "livevar", ICFG_ID)
        ]
        _report(manager, requested, args.dot, sys.stdout)
    except JFlowError as exc:
        print(f"jflow: error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
