from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from applier import SimulatedApplier
from config import get_settings
from contracts import KIND_CONTRACTS
from deployment_engine import DeploymentEngine
from errors import CycleError, StackForgeError
from graph_loader import NodeSpec, build_graph
from report_renderer import report_to_dict

app = FastAPI(title="StackForge")

# CORS middleware so a browser UI can call the planner
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GraphRequest(BaseModel):
    context: Dict[str, Any] = Field(default_factory=dict)
    nodes: List[NodeSpec]
    strict_contracts: Optional[bool] = None


class DeploymentRequest(GraphRequest):
    fail_nodes: List[str] = Field(default_factory=list)
    fail_patch_nodes: List[str] = Field(default_factory=list)


def _structural_error(e: StackForgeError) -> HTTPException:
    detail = {"error": type(e).__name__, "message": str(e)}
    if isinstance(e, CycleError):
        detail["cycle"] = e.cycle
    return HTTPException(status_code=422, detail=detail)


def _build(request: GraphRequest):
    spec = {
        "context": request.context,
        "nodes": [node.model_dump() for node in request.nodes],
    }
    return build_graph(spec)


@app.get("/")
async def root():
    return {"message": "StackForge planning API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/kinds")
async def get_kinds():
    return {"kinds": KIND_CONTRACTS}


@app.post("/plan")
async def create_plan(request: GraphRequest):
    try:
        graph = _build(request)
        engine = DeploymentEngine(graph, SimulatedApplier())
        plan = engine.prepare(strict_contracts=request.strict_contracts)
    except StackForgeError as e:
        raise _structural_error(e) from e

    return {"plan": plan.to_list(), "waves": plan.waves}


@app.post("/deployments")
async def create_deployment(request: DeploymentRequest):
    try:
        graph = _build(request)
        applier = SimulatedApplier(fail_nodes=request.fail_nodes, fail_reapply_nodes=request.fail_patch_nodes)
        engine = DeploymentEngine(graph, applier)
        engine.prepare(strict_contracts=request.strict_contracts)
    except StackForgeError as e:
        raise _structural_error(e) from e

    report = engine.run()
    return {"plan": engine.plan.to_list(), "report": report_to_dict(report)}
