#!/usr/bin/env python3
"""
Automated Demo Module

Responsibility:
- Plan and deploy the frontend blueprint against the simulated applier
- Show the placeholder-then-reconnect flow for the CDN's load balancer origin
- Show the partial-failure policy by failing the compute node

This demo runs without user input.
"""

from pathlib import Path

from applier import SimulatedApplier
from deployment_engine import DeploymentEngine
from graph_loader import load_graph_file
from report_renderer import render_dependency_tree

BLUEPRINT = Path(__file__).resolve().parent.parent / "blueprints" / "frontend.yaml"


def run_scenario(title: str, fail_nodes=()) -> DeploymentEngine:
    print()
    print("=" * 80)
    print(title)
    print("=" * 80)
    print()

    graph = load_graph_file(BLUEPRINT)
    engine = DeploymentEngine(graph, SimulatedApplier(fail_nodes=fail_nodes))
    plan = engine.prepare()

    print("Plan:")
    print()
    print(render_dependency_tree(graph, plan))

    report = engine.run()

    for line in report.log:
        print(f"  {line}")
    print()

    cdn = graph.nodes["cdn"]
    print(f"cdn state: {cdn.state}, final: {cdn.is_final}")
    print(f"cdn lb_origin: {cdn.resolved_inputs.get('lb_origin')}")
    print()
    print(report.summary())
    return engine


def main():
    """
    Automated demo: full deployment, then the same graph with compute failing.
    """
    run_scenario("DEMO 1 - FULL FRONTEND DEPLOYMENT")
    engine = run_scenario("DEMO 2 - COMPUTE FAILS", fail_nodes=["compute"])

    print()
    print("=" * 80)
    print("DEMO COMPLETE")
    print("=" * 80)
    print()

    report = engine.report
    print("Failure policy demonstrated:")
    print(f"  ✓ failed:     {', '.join(report.failed) or '-'}")
    print(f"  ✓ skipped:    {', '.join(report.skipped) or '-'}")
    print(f"  ✓ incomplete: {', '.join(report.incomplete) or '-'}")
    print(f"  ✓ independent branches still applied: {len(report.applied)} nodes")


if __name__ == "__main__":
    main()
