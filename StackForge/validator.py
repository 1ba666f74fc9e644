"""
Validation Engine Module

Responsibility:
- Check that every reference names an existing node and a declared output
- Detect cycles among non-deferred edges
- Enforce kind contracts (required inputs, pinned regions)
- Raise the structural errors before any provisioning side effect

This is PURE deterministic validation logic. It never mutates the graph.
"""

from typing import List, Optional

from config import get_settings
from contracts import declared_outputs, get_kind_contract
from errors import ContractViolationError, UnbreakableCycleError, UnresolvedReferenceError
from models import DependencyGraph, GraphIssue


def validate_graph(graph: DependencyGraph, strict_contracts: Optional[bool] = None):
    """
    Validate the entire graph.

    Order matters: references are checked first so cycle detection only
    ever walks edges between existing nodes.

    Raises:
        UnresolvedReferenceError: a slot or depends_on names a missing node/output
        UnbreakableCycleError: a cycle exists with no deferred edge in it
        ContractViolationError: strict contracts are enabled and a node breaks its kind's contract
    """
    unresolved = find_unresolved_references(graph)
    if unresolved:
        raise UnresolvedReferenceError(unresolved)

    cycle = find_cycle(graph)
    if cycle:
        raise UnbreakableCycleError(cycle)

    if strict_contracts is None:
        strict_contracts = get_settings().strict_contracts

    if strict_contracts:
        violations = check_kind_contracts(graph)
        if violations:
            raise ContractViolationError(violations)


def find_unresolved_references(graph: DependencyGraph) -> List[GraphIssue]:
    """Collect every reference to a nonexistent node or undeclared output."""
    issues = []
    known_ids = sorted(graph.nodes)

    for node_id, node in graph.nodes.items():
        for dep_id in node.depends_on:
            if dep_id not in graph.nodes:
                issues.append(GraphIssue(
                    node_id=node_id,
                    path="depends_on",
                    reason=f"Node '{dep_id}' does not exist",
                    options=known_ids
                ))

        for slot_name, slot in sorted(node.reference_slots().items()):
            producer = graph.nodes.get(slot.target_node_id)
            if producer is None:
                issues.append(GraphIssue(
                    node_id=node_id,
                    path=f"inputs.{slot_name}",
                    reason=f"Node '{slot.target_node_id}' does not exist",
                    options=known_ids
                ))
                continue

            outputs = declared_outputs(producer.kind)
            if outputs is not None and slot.target_output_name not in outputs:
                issues.append(GraphIssue(
                    node_id=node_id,
                    path=f"inputs.{slot_name}",
                    reason=f"Output '{slot.target_output_name}' is not declared by kind '{producer.kind}' of node '{producer.id}'",
                    options=list(outputs)
                ))

    return issues


def find_cycle(graph: DependencyGraph) -> Optional[List[str]]:
    """
    Find one cycle among non-deferred edges.

    Walks nodes and their dependencies in ascending id order so the same
    graph always reports the same cycle. The cycle is returned in
    dependency order: each node depends on the next, the last on the first.
    """
    white, grey, black = 0, 1, 2
    color = {node_id: white for node_id in graph.nodes}

    for start in sorted(graph.nodes):
        if color[start] != white:
            continue

        path = [start]
        color[start] = grey
        pending = [iter(graph.dependencies_of(start))]

        while pending:
            try:
                next_id = next(pending[-1])
            except StopIteration:
                color[path.pop()] = black
                pending.pop()
                continue

            if next_id not in color:
                continue
            if color[next_id] == grey:
                return path[path.index(next_id):]
            if color[next_id] == white:
                color[next_id] = grey
                path.append(next_id)
                pending.append(iter(graph.dependencies_of(next_id)))

    return None


def check_kind_contracts(graph: DependencyGraph, default_region: Optional[str] = None) -> List[GraphIssue]:
    """Collect required-input and pinned-region violations for kinds with a contract."""
    issues = []
    if default_region is None:
        default_region = get_settings().default_region

    for node_id, node in graph.nodes.items():
        contract = get_kind_contract(node.kind)
        if not contract:
            continue

        for required_input in contract["required_inputs"]:
            if required_input not in node.inputs:
                issues.append(GraphIssue(
                    node_id=node_id,
                    path=f"inputs.{required_input}",
                    reason=f"Required input '{required_input}' for kind '{node.kind}' is missing"
                ))

        pinned = contract.get("pinned_region")
        region = node.region or default_region
        if pinned and region != pinned:
            issues.append(GraphIssue(
                node_id=node_id,
                path="region",
                reason=f"Kind '{node.kind}' must be created in {pinned}, not {region}",
                options=[pinned]
            ))

    return issues
