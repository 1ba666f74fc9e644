"""
Deployment Engine Module

Responsibility:
- Execute an ApplicationPlan step by step against an Applier
- Drive every node through its lifecycle state machine
- Run the two-phase patch protocol for deferred slots
- Apply the failure policy: a failed node's dependents are Skipped,
  independent branches keep going
- Produce the DeploymentReport, the authoritative account of what changed

Engine states:
IDLE → PLANNED → RUNNING → COMPLETE | PARTIAL
"""

import logging
from typing import Any, List, Optional

from applier import Applier
from config import get_settings
from dependency_resolver import plan as compute_plan
from errors import DuplicatePatchError, ProvisionError, StackForgeError
from models import (
    APPLIED,
    APPLYING,
    FAILED,
    PATCHING,
    READY,
    SKIPPED,
    ApplicationPlan,
    DependencyGraph,
    DeploymentReport,
    PatchEntry,
    ReferenceSlot,
    ResourceNode,
    apply_event,
    describe_event,
    patch_event,
)

logger = logging.getLogger(__name__)

_UNSET = object()


class DeploymentEngine:
    """
    State machine for one deployment of a graph.

    The graph is owned exclusively by the engine while run() executes.
    """

    def __init__(self, graph: DependencyGraph, applier: Applier, default_placeholder: Any = _UNSET):
        self.graph = graph
        self.applier = applier
        if default_placeholder is _UNSET:
            default_placeholder = get_settings().default_placeholder
        self.default_placeholder = default_placeholder

        self.state: str = "IDLE"
        self.plan: Optional[ApplicationPlan] = None
        self.report = DeploymentReport()
        self._done = set()  # Events that completed successfully

    def prepare(self, strict_contracts: Optional[bool] = None) -> ApplicationPlan:
        """Compute the plan. Structural errors surface here, before any side effect."""
        self.plan = compute_plan(self.graph, strict_contracts=strict_contracts)
        self.state = "PLANNED"
        return self.plan

    def run(self) -> DeploymentReport:
        """
        Execute every step of the plan.

        Provisioning failures are recorded on the report, never raised.
        """
        if self.state not in ("IDLE", "PLANNED"):
            raise StackForgeError(
                f"Deployment already {self.state.lower()}; reset the graph and start a new engine"
            )
        if self.plan is None:
            self.prepare()

        self.graph.begin_execution()
        self.state = "RUNNING"
        try:
            for step in self.plan.steps:
                logger.info(
                    "Step %d: apply %s, patch %s", step.index, step.nodes or "-",
                    [f"{n}.{s}" for n, s in step.patches] or "-"
                )
                for node_id in step.nodes:
                    self._handle_apply(node_id, step.index)
                for node_id, slot_name in step.patches:
                    self._handle_patch(node_id, slot_name, step.index)
        finally:
            self.graph.end_execution()

        self._finalize_report()
        self.state = "COMPLETE" if self.report.succeeded else "PARTIAL"
        logger.info(self.report.summary())
        return self.report

    def apply_patch(self, node_id: str, slot_name: str, value: Any) -> bool:
        """
        Patch one deferred slot through the Applier's reapply.

        Patching an already patched slot with the identical value is a
        no-op and returns False; a different value is a DuplicatePatchError.
        """
        node = self.graph.nodes[node_id]
        slot = node.inputs.get(slot_name)
        if not isinstance(slot, ReferenceSlot) or not slot.deferred:
            raise StackForgeError(f"'{node_id}.{slot_name}' is not a deferred slot")

        existing = self.report.patches.get(node_id, slot_name)
        if existing is not None:
            if slot_name in node.patched_slots and existing.value == value:
                logger.debug("Patch %s.%s already applied with the same value", node_id, slot_name)
                return False
            raise DuplicatePatchError(node_id, slot_name)

        producer = self.graph.nodes[slot.target_node_id]
        if producer.state not in (APPLIED, PATCHING):
            raise StackForgeError(
                f"Cannot patch '{node_id}.{slot_name}' before '{producer.id}' is applied"
            )
        if node.state != APPLIED:
            raise StackForgeError(f"Cannot patch '{node_id}.{slot_name}' while '{node_id}' is {node.state}")

        entry = PatchEntry(node_id, slot_name, value)
        node.transition(PATCHING)

        try:
            outputs = self.applier.reapply(node, [entry])
        except ProvisionError as e:
            self._fail(node, e)
            return True

        # Only patches that landed are part of the report
        self.report.patches.emit(node_id, slot_name, value)
        node.resolved_inputs[slot_name] = value
        node.patched_slots.append(slot_name)
        node.outputs = dict(outputs)
        node.transition(APPLIED)
        self._done.add(patch_event(node_id, slot_name))
        logger.info("Patched %s.%s from %s", node_id, slot_name, producer.id)
        return True

    def _handle_apply(self, node_id: str, step_index: int):
        """First application of a node: Pending → Ready → Applying → Applied | Failed."""
        node = self.graph.nodes[node_id]

        blocked = self._blocked_by(apply_event(node_id))
        if blocked:
            node.transition(SKIPPED)
            self.report.skipped.append(node_id)
            self.report.log.append(f"step {step_index}: skipped {node_id} (waiting on {', '.join(blocked)})")
            logger.warning("Skipping %s: prerequisites did not complete (%s)", node_id, ", ".join(blocked))
            return

        node.transition(READY)
        node.transition(APPLYING)

        try:
            node.resolved_inputs = self._resolve_inputs(node)
            outputs = self.applier.apply(node)
        except ProvisionError as e:
            self._fail(node, e)
            self.report.log.append(f"step {step_index}: failed {node_id}")
            return

        node.outputs = dict(outputs)
        node.transition(APPLIED)
        self._done.add(apply_event(node_id))
        self.report.applied.append(node_id)
        self.report.log.append(f"step {step_index}: applied {node_id}")
        logger.info("Applied %s (%s)", node_id, node.kind)

    def _handle_patch(self, node_id: str, slot_name: str, step_index: int):
        """Second phase for a deferred slot: Applied → Patching → Applied | Failed."""
        blocked = self._blocked_by(patch_event(node_id, slot_name))
        if blocked:
            self.report.log.append(
                f"step {step_index}: skipped patch {node_id}.{slot_name} (waiting on {', '.join(blocked)})"
            )
            logger.warning("Cannot patch %s.%s: %s did not complete", node_id, slot_name, ", ".join(blocked))
            return

        node = self.graph.nodes[node_id]
        if node.state != APPLIED:
            # An earlier patch of the same node failed
            self.report.log.append(f"step {step_index}: skipped patch {node_id}.{slot_name} ({node.state})")
            return

        slot = node.inputs[slot_name]
        producer = self.graph.nodes[slot.target_node_id]

        if slot.target_output_name not in producer.outputs:
            node.transition(PATCHING)
            self._fail(node, ProvisionError(
                node_id, f"producer '{producer.id}' did not expose output '{slot.target_output_name}'"
            ))
            self.report.log.append(f"step {step_index}: failed patch {node_id}.{slot_name}")
            return

        self.apply_patch(node_id, slot_name, producer.outputs[slot.target_output_name])
        outcome = "failed patch" if node.state == FAILED else "patched"
        self.report.log.append(f"step {step_index}: {outcome} {node_id}.{slot_name}")

    def _resolve_inputs(self, node: ResourceNode) -> dict:
        """Concrete values for the first application; deferred slots get their placeholder."""
        resolved = {}

        for name, value in node.inputs.items():
            if not isinstance(value, ReferenceSlot):
                resolved[name] = value
            elif value.deferred:
                resolved[name] = value.placeholder if value.placeholder is not None else self.default_placeholder
            else:
                producer = self.graph.nodes[value.target_node_id]
                if value.target_output_name not in producer.outputs:
                    raise ProvisionError(
                        node.id,
                        f"producer '{producer.id}' did not expose output '{value.target_output_name}'"
                    )
                resolved[name] = producer.outputs[value.target_output_name]

        return resolved

    def _blocked_by(self, event: tuple) -> List[str]:
        return [describe_event(req) for req in self.plan.requires[event] if req not in self._done]

    def _fail(self, node: ResourceNode, error: ProvisionError):
        node.transition(FAILED)
        node.outputs = {}
        node.error = error.message
        self.report.failed[node.id] = error.message
        if node.id in self.report.applied:
            self.report.applied.remove(node.id)
        logger.error("Failed %s: %s", node.id, error.message)

    def _finalize_report(self):
        for node_id, node in self.graph.nodes.items():
            if node.state == APPLIED:
                self.report.outputs[node_id] = dict(node.outputs)
                if not node.is_final:
                    self.report.incomplete.append(node_id)


def deploy(graph: DependencyGraph, applier: Applier, default_placeholder: Any = _UNSET) -> DeploymentReport:
    """Plan and execute a graph in one call."""
    engine = DeploymentEngine(graph, applier, default_placeholder=default_placeholder)
    engine.prepare()
    return engine.run()
