"""
Graph Loader Module

Responsibility:
- Accept graph construction input (dict, YAML or JSON file)
- Validate its shape with pydantic before building anything
- Turn input values into literals or ReferenceSlots
- Resolve context lookups ({context: key, default: ...}) at load time

Input shape:

    context:
      bucketName: my-site
    nodes:
      - id: cdn
        kind: cdn_distribution
        inputs:
          origin_bucket: {ref: s3, output: bucket_name}
          lb_origin: {ref: compute, output: load_balancer_dns, deferred: true}
        depends_on: [waf]
        region: us-east-1

A bare list of nodes is accepted as well. Loading has no side effects.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import GraphDefinitionError
from models import DependencyGraph, ReferenceSlot, ResourceNode

logger = logging.getLogger(__name__)


class RefSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ref: str
    output: str
    deferred: bool = False
    placeholder: Any = None


class ContextSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    context: str
    default: Any = None


class NodeSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    kind: str = Field(min_length=1)
    inputs: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)
    region: Optional[str] = None


class GraphSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    context: Dict[str, Any] = Field(default_factory=dict)
    nodes: List[NodeSpec] = Field(default_factory=list)


def build_graph(spec: Union[dict, list], context: Optional[dict] = None) -> DependencyGraph:
    """
    Build a DependencyGraph from graph construction input.

    Args:
        spec: {context, nodes} mapping or a bare list of node specifications
        context: values overriding the input's own context section

    Returns:
        Graph with every node Pending
    """
    if isinstance(spec, list):
        spec = {"nodes": spec}

    try:
        graph_spec = GraphSpec.model_validate(spec)
    except ValidationError as e:
        raise GraphDefinitionError(f"Invalid graph definition: {e}") from e

    merged_context = dict(graph_spec.context)
    merged_context.update(context or {})

    graph = DependencyGraph(context=merged_context)

    for node_spec in graph_spec.nodes:
        inputs = {
            name: _parse_input(node_spec.id, name, value, merged_context)
            for name, value in node_spec.inputs.items()
        }
        graph.add_node(ResourceNode(
            id=node_spec.id,
            kind=node_spec.kind,
            inputs=inputs,
            depends_on=list(node_spec.depends_on),
            region=node_spec.region
        ))

    logger.debug("Loaded graph with %d nodes", len(graph.nodes))
    return graph


def load_graph_file(path: Union[str, Path], context: Optional[dict] = None) -> DependencyGraph:
    """Load a graph from a YAML or JSON file (JSON is valid YAML)."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            spec = yaml.safe_load(fh)
    except OSError as e:
        raise GraphDefinitionError(f"Cannot read graph file '{path}': {e}") from e
    except yaml.YAMLError as e:
        raise GraphDefinitionError(f"Cannot parse graph file '{path}': {e}") from e

    if spec is None:
        raise GraphDefinitionError(f"Graph file '{path}' is empty")

    return build_graph(spec, context=context)


def graph_to_spec(graph: DependencyGraph) -> dict:
    """Render a graph back into construction input (context lookups already applied)."""
    nodes = []
    for node in graph.nodes.values():
        node_dict = {"id": node.id, "kind": node.kind, "inputs": {}}

        for name, value in node.inputs.items():
            if isinstance(value, ReferenceSlot):
                ref = {"ref": value.target_node_id, "output": value.target_output_name}
                if value.deferred:
                    ref["deferred"] = True
                if value.placeholder is not None:
                    ref["placeholder"] = value.placeholder
                node_dict["inputs"][name] = ref
            else:
                node_dict["inputs"][name] = value

        if node.depends_on:
            node_dict["depends_on"] = list(node.depends_on)
        if node.region:
            node_dict["region"] = node.region

        nodes.append(node_dict)

    return {"context": dict(graph.context), "nodes": nodes}


def _parse_input(node_id: str, name: str, value: Any, context: dict) -> Any:
    """Classify one input value as a reference, a context lookup, or a literal."""
    if not isinstance(value, dict):
        return value

    if "ref" in value:
        try:
            ref = RefSpec.model_validate(value)
        except ValidationError as e:
            raise GraphDefinitionError(f"Invalid reference in '{node_id}.{name}': {e}") from e
        return ReferenceSlot(
            target_node_id=ref.ref,
            target_output_name=ref.output,
            deferred=ref.deferred,
            placeholder=ref.placeholder
        )

    if "context" in value:
        try:
            lookup = ContextSpec.model_validate(value)
        except ValidationError as e:
            raise GraphDefinitionError(f"Invalid context lookup in '{node_id}.{name}': {e}") from e

        if lookup.context in context and context[lookup.context] is not None:
            return context[lookup.context]
        if "default" in lookup.model_fields_set:
            return lookup.default
        raise GraphDefinitionError(
            f"Context value '{lookup.context}' required by '{node_id}.{name}' is not set and has no default"
        )

    # Plain mapping literal
    return value
