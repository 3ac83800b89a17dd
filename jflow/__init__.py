"""jflow - dataflow and call-graph analyses over a Jimple-like IR.

Submodules
----------
abstract_domains
    The constant lattice (``Value``, ``meet_value``) and the mutable flow
    facts ``CPFact`` and ``SetFact``.

dataflow_engine
    ``DataflowAnalysis`` base class, ``WorkListSolver`` (forward) and
    ``IterativeSolver`` (both directions).

dataflow_analyses
    ``ConstantPropagation``, ``LiveVariableAnalysis`` and
    ``DeadCodeDetection``.

callgraph
    Class hierarchy analysis: ``CHABuilder`` and ``CallGraph``.

interproc_analysis
    ``InterproceduralCFG``, ``InterSolver`` and
    ``InterConstantPropagation``.

ir, classes, ctrlflow_graph
    The program representation: statements, classes and CFGs.

ir_parser
    Textual IR front end (``load_program``, ``parse_program``).

config, pipeline
    Analysis plans and the ``AnalysisManager`` that runs them.

Usage
-----
Command-line::

    python -m jflow Example.jir -a deadcode
    python -m jflow Example.jir -a cha -a inter-constprop -v

Programmatic::

    from jflow.ir_parser import load_program
    from jflow.pipeline import AnalysisManager
    from jflow.config import AnalysisPlan

    program = load_program("Example.jir")
    manager = AnalysisManager(program)
    manager.run(AnalysisPlan.from_ids(["deadcode", "cha"]))
"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "abstract_domains",
    "callgraph",
    "classes",
    "config",
    "ctrlflow_graph",
    "dataflow_analyses",
    "dataflow_engine",
    "errors",
    "interproc_analysis",
    "ir",
    "ir_parser",
    "pipeline",
]
