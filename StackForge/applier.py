"""
Applier Interface Module

Responsibility:
- Define the Applier contract the deployment engine consumes
- Dispatch to one handler per resource kind (ApplierRegistry)
- Provide a simulated applier backed by the in-memory resource database,
  used by the CLI, the demo, the HTTP service and the tests

The engine never talks to a cloud API. Real backends implement Applier.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from config import get_settings
from errors import ProvisionError
from models import PatchEntry, ReferenceSlot, ResourceNode
from resource_db import ResourceDatabase, render_outputs

logger = logging.getLogger(__name__)


class Applier(ABC):
    """
    Turns a declarative node into a live resource.

    Both operations receive a node whose resolved_inputs hold concrete
    values for every non-deferred slot, and raise ProvisionError on failure.
    Implementations enforce their own timeouts.
    """

    @abstractmethod
    def apply(self, node: ResourceNode) -> Dict:
        """Create the resource; return its output map."""

    @abstractmethod
    def reapply(self, node: ResourceNode, patches: List[PatchEntry]) -> Dict:
        """Update the resource with patched deferred slots. Must be idempotent."""


class ApplierRegistry(Applier):
    """Routes each node to the Applier registered for its kind."""

    def __init__(self, fallback: Optional[Applier] = None):
        self._handlers: Dict[str, Applier] = {}
        self.fallback = fallback

    def register(self, kind: str, handler: Applier):
        self._handlers[kind] = handler

    def handler_for(self, node: ResourceNode) -> Applier:
        handler = self._handlers.get(node.kind, self.fallback)
        if handler is None:
            raise ProvisionError(node.id, f"No applier registered for kind '{node.kind}'")
        return handler

    def kinds(self) -> List[str]:
        return sorted(self._handlers)

    def apply(self, node: ResourceNode) -> Dict:
        return self.handler_for(node).apply(node)

    def reapply(self, node: ResourceNode, patches: List[PatchEntry]) -> Dict:
        return self.handler_for(node).reapply(node, patches)


class SimulatedApplier(Applier):
    """
    Applier that provisions into a ResourceDatabase instead of a cloud.

    Failures can be injected by node id or by kind to exercise the
    partial-failure policy.
    """

    def __init__(
        self,
        database: Optional[ResourceDatabase] = None,
        fail_nodes: Iterable[str] = (),
        fail_kinds: Iterable[str] = (),
        fail_reapply_nodes: Iterable[str] = (),
        default_region: Optional[str] = None
    ):
        self.database = database if database is not None else ResourceDatabase()
        self.fail_nodes = set(fail_nodes)
        self.fail_kinds = set(fail_kinds)
        self.fail_reapply_nodes = set(fail_reapply_nodes)
        self.default_region = default_region or get_settings().default_region
        self.calls: List[tuple] = []

    def apply(self, node: ResourceNode) -> Dict:
        self.calls.append(("apply", node.id))
        _check_resolved(node)

        if node.id in self.fail_nodes or node.kind in self.fail_kinds:
            raise ProvisionError(node.id, "simulated provisioning failure")

        return self._write(node, node.resolved_inputs)

    def reapply(self, node: ResourceNode, patches: List[PatchEntry]) -> Dict:
        self.calls.append(("reapply", node.id))

        if node.id in self.fail_reapply_nodes:
            raise ProvisionError(node.id, "simulated patch failure")

        record = self.database.get_record(node.id)
        if record is None:
            raise ProvisionError(node.id, "cannot patch a resource that was never created")

        inputs = dict(record["inputs"])
        for patch in patches:
            inputs[patch.slot_name] = patch.value
        return self._write(node, inputs)

    def _write(self, node: ResourceNode, inputs: dict) -> Dict:
        region = node.region or self.default_region
        outputs = render_outputs(node.id, node.kind, region, inputs)
        record = self.database.put_record(node.id, node.kind, region, inputs, outputs)
        logger.debug("Simulated %s '%s' at version %d", node.kind, node.id, record["version"])
        return dict(record["outputs"])


def _check_resolved(node: ResourceNode):
    for name, value in node.resolved_inputs.items():
        if isinstance(value, ReferenceSlot):
            raise ProvisionError(node.id, f"input '{name}' was handed over unresolved")
