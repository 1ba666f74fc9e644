#!/usr/bin/env python3
"""
StackForge Command Line

Responsibility:
- Load a graph file, plan it, and print the plan (json, yaml or tree)
- Run a simulated deployment and print the report
- List the kind contracts

Usage:
    stackforge plan blueprints/frontend.yaml --format tree
    stackforge apply blueprints/frontend.yaml --fail compute
    stackforge kinds
"""

import argparse
import logging
import sys
from typing import List, Optional

from applier import SimulatedApplier
from config import get_settings
from contracts import KIND_CONTRACTS
from dependency_resolver import plan as compute_plan
from deployment_engine import DeploymentEngine
from errors import StackForgeError
from graph_loader import load_graph_file
from report_renderer import (
    render_dependency_tree,
    render_plan_json,
    render_plan_yaml,
    render_report_json,
    render_report_yaml,
)


def print_header(title: str):
    print()
    print("=" * 80)
    print(title)
    print("=" * 80)
    print()


def parse_context(pairs: Optional[List[str]]) -> dict:
    """Turn repeated KEY=VALUE arguments into a context mapping."""
    context = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise StackForgeError(f"Context value '{pair}' must look like KEY=VALUE")
        key, value = pair.split("=", 1)
        context[key.strip()] = value
    return context


def cmd_plan(args) -> int:
    graph = load_graph_file(args.file, context=parse_context(args.context))
    plan = compute_plan(graph, strict_contracts=args.strict)

    if args.format == "yaml":
        print(render_plan_yaml(plan), end="")
    elif args.format == "tree":
        print(render_dependency_tree(graph, plan), end="")
    else:
        print(render_plan_json(plan))
    return 0


def cmd_apply(args) -> int:
    graph = load_graph_file(args.file, context=parse_context(args.context))
    applier = SimulatedApplier(fail_nodes=args.fail or (), fail_reapply_nodes=args.fail_patch or ())

    engine = DeploymentEngine(graph, applier)
    engine.prepare(strict_contracts=args.strict)
    report = engine.run()

    if args.format == "json":
        print(render_report_json(report))
    else:
        print(render_report_yaml(report), end="")

    print(report.summary(), file=sys.stderr)
    return 0 if report.succeeded else 1


def cmd_kinds(args) -> int:
    print_header("KIND CONTRACTS")
    for kind, contract in sorted(KIND_CONTRACTS.items()):
        pinned = f" (pinned to {contract['pinned_region']})" if contract["pinned_region"] else ""
        print(f"{kind}{pinned}")
        print(f"  inputs:  {', '.join(contract['required_inputs']) or '-'}")
        print(f"  outputs: {', '.join(contract['outputs'])}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackforge", description="Plan and apply deployment graphs")
    parser.add_argument("--log-level", default=None, help="Override STACKFORGE_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("plan", "Print the application plan"), ("apply", "Run a simulated deployment")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file", help="Graph definition (YAML or JSON)")
        sub.add_argument("--context", action="append", metavar="KEY=VALUE", help="Context value (repeatable)")
        sub.add_argument(
            "--no-strict", dest="strict", action="store_false", default=None,
            help="Skip kind contract checks"
        )

    plan_parser = subparsers.choices["plan"]
    plan_parser.add_argument("--format", choices=["json", "yaml", "tree"], default="json")
    plan_parser.set_defaults(handler=cmd_plan)

    apply_parser = subparsers.choices["apply"]
    apply_parser.add_argument("--format", choices=["json", "yaml"], default="yaml")
    apply_parser.add_argument("--fail", action="append", metavar="NODE", help="Simulate a failure of NODE")
    apply_parser.add_argument("--fail-patch", action="append", metavar="NODE", help="Simulate a patch failure of NODE")
    apply_parser.set_defaults(handler=cmd_apply)

    kinds_parser = subparsers.add_parser("kinds", help="List kind contracts")
    kinds_parser.set_defaults(handler=cmd_kinds)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=(args.log_level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )

    try:
        return args.handler(args)
    except StackForgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
