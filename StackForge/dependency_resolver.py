"""
Dependency Resolver Module

Responsibility:
- Turn a validated DependencyGraph into an ApplicationPlan
- Order node applications so every non-deferred dependency comes first
- Schedule each deferred slot's patch after both its owner and its producer
- Make consumers of a node with deferred slots wait for the patched
  (final) node whenever that does not close a cycle
- Group independent events into steps (Kahn layers) with a deterministic
  tie-break so the same graph always yields the same plan

This is PURE deterministic logic. No provisioning happens here.
"""

import logging
from typing import Optional

from errors import CycleError
from models import (
    ApplicationPlan,
    DependencyGraph,
    PlanStep,
    apply_event,
    describe_event,
    patch_event,
)

logger = logging.getLogger(__name__)


def plan(graph: DependencyGraph, strict_contracts: Optional[bool] = None) -> ApplicationPlan:
    """
    Compute the application plan for a graph.

    Structural errors (unresolved references, unbreakable cycles, contract
    violations) are raised here, before anything is applied.

    Returns:
        ApplicationPlan whose steps interleave node applications and patches
    """
    graph.validate(strict_contracts=strict_contracts)

    requires = _build_event_graph(graph)
    steps = _layer_events(requires)

    plan_result = ApplicationPlan(
        steps=steps,
        requires={event: sorted(reqs) for event, reqs in requires.items()}
    )
    logger.info(
        "Planned %d nodes in %d steps (%d patches)",
        len(graph.nodes), len(steps), sum(len(step.patches) for step in steps)
    )
    return plan_result


def _build_event_graph(graph: DependencyGraph) -> dict:
    """Map every apply/patch event to the set of events it must wait for."""
    requires = {}
    node_ids = sorted(graph.nodes)

    for node_id in node_ids:
        requires[apply_event(node_id)] = set()
        for slot_name, _slot in graph.deferred_slots_of(node_id):
            requires[patch_event(node_id, slot_name)] = set()

    # Non-deferred references and depends_on
    for node_id in node_ids:
        for producer_id in graph.dependencies_of(node_id):
            requires[apply_event(node_id)].add(apply_event(producer_id))

    # A deferred reference also orders the first application when it closes no cycle
    for node_id in node_ids:
        for _slot_name, slot in graph.deferred_slots_of(node_id):
            producer_id = slot.target_node_id
            if producer_id == node_id:
                continue
            if not _waits_for(requires, apply_event(producer_id), apply_event(node_id)):
                requires[apply_event(node_id)].add(apply_event(producer_id))

    # Patches need the owner applied and the producer's output available
    for node_id in node_ids:
        for slot_name, slot in graph.deferred_slots_of(node_id):
            requires[patch_event(node_id, slot_name)].update({
                apply_event(node_id),
                apply_event(slot.target_node_id),
            })

    # Consumers wait for the reconnected node unless the patch itself needs them
    for consumer_id in node_ids:
        for producer_id in graph.dependencies_of(consumer_id):
            for slot_name, _slot in graph.deferred_slots_of(producer_id):
                patch = patch_event(producer_id, slot_name)
                if not _waits_for(requires, patch, apply_event(consumer_id)):
                    requires[apply_event(consumer_id)].add(patch)

    return requires


def _waits_for(requires: dict, event: tuple, target: tuple) -> bool:
    """True if event transitively requires target (or is target)."""
    stack = [event]
    seen = set()

    while stack:
        current = stack.pop()
        if current == target:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(requires.get(current, ()))

    return False


def _layer_events(requires: dict) -> list:
    """Kahn's algorithm producing layers of simultaneously eligible events."""
    remaining = {event: set(reqs) for event, reqs in requires.items()}
    steps = []

    while remaining:
        ready = sorted(event for event, reqs in remaining.items() if not reqs)
        if not ready:
            # Validation guarantees this never happens for a validated graph
            stuck = sorted({describe_event(event) for event in remaining})
            raise CycleError(stuck, f"Cannot order events: {', '.join(stuck)}")

        step = PlanStep(index=len(steps))
        for event in ready:
            if event[0] == "apply":
                step.nodes.append(event[1])
            else:
                step.patches.append((event[1], event[2]))
            del remaining[event]

        for reqs in remaining.values():
            reqs.difference_update(ready)

        steps.append(step)

    return steps
