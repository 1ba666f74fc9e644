"""
Core Domain Models Module

Responsibility:
- Define core domain classes for the deployment graph
- ResourceNode: a named unit of declarative configuration with typed inputs/outputs
- ReferenceSlot: an input filled from another node's output, possibly deferred
- DependencyGraph: the nodes plus the edges implied by their reference slots
- ApplicationPlan / PlanStep: the ordered steps computed by the resolver
- PatchSet: the deferred-slot patches emitted during a deployment
- DeploymentReport: the partial-success summary of one deployment

Models hold data and lifecycle rules only. No provisioning happens here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from errors import DuplicatePatchError, GraphBusyError, GraphDefinitionError, InvalidTransitionError


# Node lifecycle states
PENDING = "Pending"
READY = "Ready"
APPLYING = "Applying"
APPLIED = "Applied"
PATCHING = "Patching"
FAILED = "Failed"
SKIPPED = "Skipped"

ALLOWED_TRANSITIONS = {
    PENDING: {READY, SKIPPED},
    READY: {APPLYING, SKIPPED},
    APPLYING: {APPLIED, FAILED},
    APPLIED: {PATCHING},
    PATCHING: {APPLIED, FAILED},
    FAILED: set(),
    SKIPPED: set(),
}

TERMINAL_STATES = {APPLIED, FAILED, SKIPPED}


def apply_event(node_id: str) -> tuple:
    """Event key for the first application of a node."""
    return ("apply", node_id)


def patch_event(node_id: str, slot_name: str) -> tuple:
    """Event key for patching one deferred slot of a node."""
    return ("patch", node_id, slot_name)


def describe_event(event: tuple) -> str:
    if event[0] == "apply":
        return event[1]
    return f"{event[1]}.{event[2]}"


@dataclass
class ReferenceSlot:
    """
    An input whose value is another node's output.

    A deferred slot is applied with a placeholder first and patched once
    its producer has been applied (the "placeholder, then reconnect" idiom).
    """
    target_node_id: str
    target_output_name: str
    deferred: bool = False

    # Value handed to the Applier before the patch (None -> configured default)
    placeholder: Any = None


@dataclass
class ResourceNode:
    """
    A single resource in the deployment graph.

    The kind is opaque to the resolver; only Appliers and kind contracts
    interpret it.
    """
    id: str
    kind: str

    # Parameter name -> literal value or ReferenceSlot
    inputs: dict = field(default_factory=dict)

    # Output name -> value (empty until applied)
    outputs: dict = field(default_factory=dict)

    state: str = PENDING

    # Ordering-only dependencies (no data flows along these)
    depends_on: list[str] = field(default_factory=list)

    region: Optional[str] = None

    # Concrete values last handed to the Applier
    resolved_inputs: dict = field(default_factory=dict)

    patched_slots: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def reference_slots(self) -> Dict[str, ReferenceSlot]:
        return {name: value for name, value in self.inputs.items() if isinstance(value, ReferenceSlot)}

    def deferred_slots(self) -> Dict[str, ReferenceSlot]:
        return {name: slot for name, slot in sorted(self.reference_slots().items()) if slot.deferred}

    @property
    def is_final(self) -> bool:
        """Applied, with every deferred slot patched."""
        if self.state != APPLIED:
            return False
        return all(name in self.patched_slots for name in self.deferred_slots())

    def transition(self, target: str):
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.id, self.state, target)
        self.state = target

    def reset(self):
        """Return the node to its freshly-constructed state."""
        self.state = PENDING
        self.outputs = {}
        self.resolved_inputs = {}
        self.patched_slots = []
        self.error = None


@dataclass
class DependencyGraph:
    """
    The complete deployment graph.

    Edges are never stored; they are derived from each node's reference
    slots and depends_on list whenever they are needed.
    """
    # Node id -> ResourceNode (insertion order only matters for display)
    nodes: dict[str, ResourceNode] = field(default_factory=dict)

    # Context values the graph was loaded with
    context: dict = field(default_factory=dict)

    _executing: bool = field(default=False, repr=False, compare=False)

    def add_node(self, node: ResourceNode) -> ResourceNode:
        if node.id in self.nodes:
            raise GraphDefinitionError(f"Duplicate node id '{node.id}'")
        self.nodes[node.id] = node
        return node

    def dependencies_of(self, node_id: str) -> List[str]:
        """Producers this node needs before its first application (non-deferred)."""
        node = self.nodes[node_id]
        producers = set(node.depends_on)
        for slot in node.reference_slots().values():
            if not slot.deferred:
                producers.add(slot.target_node_id)
        return sorted(producers)

    def deferred_slots_of(self, node_id: str) -> List[Tuple[str, ReferenceSlot]]:
        return list(self.nodes[node_id].deferred_slots().items())

    def dependents_of(self, node_id: str) -> List[str]:
        """Nodes with a non-deferred dependency on node_id."""
        return sorted(other for other in self.nodes if node_id in self.dependencies_of(other))

    def validate(self, strict_contracts: bool = None):
        """Structural check. Raises on the first class of problem found."""
        from validator import validate_graph
        validate_graph(self, strict_contracts=strict_contracts)

    def begin_execution(self):
        if self._executing:
            raise GraphBusyError("Graph is already being executed by another deployment")
        self._executing = True

    def end_execution(self):
        self._executing = False

    def reset(self):
        for node in self.nodes.values():
            node.reset()


@dataclass
class GraphIssue:
    """
    A structural problem found by the validator.

    Issues are collected for the whole graph and raised together.
    """
    node_id: str
    path: str  # Dot-path like "inputs.origin_bucket" or "depends_on"
    reason: str  # Human-readable explanation
    options: Optional[list] = None  # Valid choices if applicable


@dataclass
class PlanStep:
    """One step of a plan: nodes to apply and deferred slots to patch."""
    index: int
    nodes: list[str] = field(default_factory=list)

    # (node id, slot name) pairs
    patches: list[tuple] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "wave": self.index,
            "nodes": list(self.nodes),
            "patches": [f"{node_id}.{slot_name}" for node_id, slot_name in self.patches],
        }


@dataclass
class ApplicationPlan:
    """
    Ordered steps computed by the resolver before any side effect.

    requires maps each event key to the event keys it waits on.
    """
    steps: list[PlanStep] = field(default_factory=list)
    requires: dict = field(default_factory=dict)

    @property
    def waves(self) -> List[List[str]]:
        """Apply waves only (steps that apply at least one node)."""
        return [list(step.nodes) for step in self.steps if step.nodes]

    def step_of(self, node_id: str) -> int:
        for step in self.steps:
            if node_id in step.nodes:
                return step.index
        raise KeyError(node_id)

    def patch_step_of(self, node_id: str, slot_name: str) -> int:
        for step in self.steps:
            if (node_id, slot_name) in step.patches:
                return step.index
        raise KeyError(f"{node_id}.{slot_name}")

    def to_list(self) -> list:
        return [step.to_dict() for step in self.steps]


@dataclass
class PatchEntry:
    node_id: str
    slot_name: str
    value: Any


class PatchSet:
    """
    Ordered record of deferred-slot patches.

    Each (node, slot) pair may be emitted once.
    """

    def __init__(self):
        self._entries: List[PatchEntry] = []

    def emit(self, node_id: str, slot_name: str, value: Any) -> PatchEntry:
        if self.contains(node_id, slot_name):
            raise DuplicatePatchError(node_id, slot_name)
        entry = PatchEntry(node_id=node_id, slot_name=slot_name, value=value)
        self._entries.append(entry)
        return entry

    def contains(self, node_id: str, slot_name: str) -> bool:
        return any(e.node_id == node_id and e.slot_name == slot_name for e in self._entries)

    def get(self, node_id: str, slot_name: str) -> Optional[PatchEntry]:
        for entry in self._entries:
            if entry.node_id == node_id and entry.slot_name == slot_name:
                return entry
        return None

    def for_node(self, node_id: str) -> List[PatchEntry]:
        return [e for e in self._entries if e.node_id == node_id]

    def __iter__(self) -> Iterator[PatchEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class DeploymentReport:
    """
    Authoritative account of what one deployment changed.

    Provisioning failures never raise out of a deployment; they land here.
    """
    applied: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    # Applied nodes whose deferred slot could never be patched
    incomplete: list[str] = field(default_factory=list)

    patches: PatchSet = field(default_factory=PatchSet)
    outputs: dict[str, dict] = field(default_factory=dict)
    log: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not (self.failed or self.skipped or self.incomplete)

    def summary(self) -> str:
        status = "complete" if self.succeeded else "partial"
        return (
            f"Deployment {status}: {len(self.applied)} applied, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped, {len(self.incomplete)} incomplete, {len(self.patches)} patched"
        )
