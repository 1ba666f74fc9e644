"""
Report Renderer Module

Responsibility:
- Deterministically render plans and deployment reports as JSON or YAML
- Render a human-readable dependency tree of a planned graph
- No inference, no mutations

This is PURE rendering logic.
"""

import json

import yaml

from models import ApplicationPlan, DependencyGraph, DeploymentReport


def render_plan_json(plan: ApplicationPlan) -> str:
    """
    Render a plan as the JSON execution report.

    Returns:
        '[{"wave": 0, "nodes": [...], "patches": [...]}, ...]'
    """
    return json.dumps(plan.to_list(), indent=2)


def render_plan_yaml(plan: ApplicationPlan) -> str:
    return yaml.dump({"plan": plan.to_list()}, sort_keys=False, default_flow_style=False, allow_unicode=True)


def report_to_dict(report: DeploymentReport) -> dict:
    """Plain-data form of a report, in the order a reader wants it."""
    return {
        "status": "complete" if report.succeeded else "partial",
        "summary": report.summary(),
        "applied": list(report.applied),
        "failed": dict(report.failed),
        "skipped": list(report.skipped),
        "incomplete": list(report.incomplete),
        "patches": [
            {"node": entry.node_id, "slot": entry.slot_name, "value": entry.value}
            for entry in report.patches
        ],
        "outputs": {node_id: dict(outputs) for node_id, outputs in report.outputs.items()},
        "log": list(report.log),
    }


def render_report_json(report: DeploymentReport) -> str:
    return json.dumps(report_to_dict(report), indent=2, default=str)


def render_report_yaml(report: DeploymentReport) -> str:
    return yaml.dump({"report": report_to_dict(report)}, sort_keys=False, default_flow_style=False, allow_unicode=True)


def render_dependency_tree(graph: DependencyGraph, plan: ApplicationPlan) -> str:
    """
    Render the plan as a tree, one branch per step.

    Example:
        Step 2
        └── cdn (cdn_distribution) → depends on: [cert, compute, s3]
            ~ lb_origin ← compute.load_balancer_dns (deferred)
    """
    lines = []

    for step in plan.steps:
        lines.append(f"Step {step.index}")
        entries = [("node", node_id) for node_id in step.nodes] + [("patch", patch) for patch in step.patches]

        for i, (entry_type, entry) in enumerate(entries):
            last = i == len(entries) - 1
            branch = "└──" if last else "├──"
            indent = "    " if last else "│   "

            if entry_type == "patch":
                node_id, slot_name = entry
                slot = graph.nodes[node_id].inputs[slot_name]
                lines.append(
                    f"{branch} patch {node_id}.{slot_name} ← {slot.target_node_id}.{slot.target_output_name}"
                )
                continue

            node = graph.nodes[entry]
            waits_on = sorted({req[1] for req in plan.requires[("apply", entry)] if req[1] != entry})
            if waits_on:
                lines.append(f"{branch} {node.id} ({node.kind}) → depends on: [{', '.join(waits_on)}]")
            else:
                lines.append(f"{branch} {node.id} ({node.kind}) (no dependencies)")

            for slot_name, slot in node.deferred_slots().items():
                lines.append(
                    f"{indent}~ {slot_name} ← {slot.target_node_id}.{slot.target_output_name} (deferred)"
                )

        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
