"""
Error Taxonomy Module

Responsibility:
- Define every error the resolver and the deployment engine can raise
- Structural errors (definition, cycles, references, contracts) are raised
  at plan time, before any provisioning side effect
- ProvisionError is raised by Appliers and is node-local
"""

from typing import List


class StackForgeError(Exception):
    """Base class for all StackForge errors."""


class GraphDefinitionError(StackForgeError):
    """The graph construction input is malformed (bad shape, duplicate id, missing context)."""


class CycleError(StackForgeError):
    """A reference cycle exists among non-deferred edges."""

    def __init__(self, cycle: List[str], message: str = None):
        self.cycle = list(cycle)
        if message is None:
            message = "Dependency cycle detected: " + " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(message)


class UnbreakableCycleError(CycleError):
    """A cycle has no deferred edge that could break it."""

    def __init__(self, cycle: List[str]):
        path = " -> ".join(list(cycle) + list(cycle)[:1])
        super().__init__(
            cycle,
            f"Dependency cycle with no deferred reference to break it: {path}. "
            f"Mark one reference in the cycle as deferred."
        )


class UnresolvedReferenceError(StackForgeError):
    """One or more slots reference a nonexistent node or output."""

    def __init__(self, references: list):
        self.references = list(references)
        lines = [f"  - {ref.node_id}.{ref.path}: {ref.reason}" for ref in self.references]
        super().__init__("Unresolved references:\n" + "\n".join(lines))


class ContractViolationError(StackForgeError):
    """Nodes do not satisfy the contract of their kind."""

    def __init__(self, violations: list):
        self.violations = list(violations)
        lines = [f"  - {v.node_id}.{v.path}: {v.reason}" for v in self.violations]
        super().__init__("Kind contract violations:\n" + "\n".join(lines))


class ProvisionError(StackForgeError):
    """Raised by an Applier when a node cannot be provisioned."""

    def __init__(self, node_id: str, message: str):
        self.node_id = node_id
        self.message = message
        super().__init__(f"Provisioning '{node_id}' failed: {message}")


class DuplicatePatchError(StackForgeError):
    """The same deferred slot was patched twice. Always a programming error."""

    def __init__(self, node_id: str, slot_name: str):
        self.node_id = node_id
        self.slot_name = slot_name
        super().__init__(f"Deferred slot '{node_id}.{slot_name}' was already patched")


class InvalidTransitionError(StackForgeError):
    """A node was moved between two states the lifecycle does not connect."""

    def __init__(self, node_id: str, current: str, target: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' cannot move from {current} to {target}")


class GraphBusyError(StackForgeError):
    """A second execution was started on a graph that is already executing."""
