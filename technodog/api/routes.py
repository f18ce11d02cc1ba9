"""FastAPI routes for the agent service.

Endpoint                       Method  Description
-----------------------------  ------  ------------------------------------
/functions/{agent}             POST    Run an agent action (``{action, ...}``)
/health                        GET     Health check + provider availability
/agents                        GET     Registered agents and their actions
/runs/{run_id}                 GET     One run record, status derived on read

Components are resolved from ``app.state`` (populated by ``main._build_all``)
through ``Depends`` using the ``Annotated`` pattern.  Errors are raised as
``TechnoDogError`` subclasses and turned into the error envelope by
:class:`~technodog.api.middleware.ErrorHandlingMiddleware`.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from technodog import __version__
from technodog.agents.registry import AgentRegistry
from technodog.api.schemas import (
    AgentInfo,
    AgentsResponse,
    ErrorResponse,
    HealthResponse,
    RunResponse,
    success_envelope,
)
from technodog.interfaces.agent_store import IAgentStore
from technodog.providers.llm.registry import ProviderRegistry
from technodog.utils.errors import InvalidRequestError

router = APIRouter()


def _get_agents(request: Request) -> AgentRegistry:
    return request.app.state.agents


def _get_agent_store(request: Request) -> IAgentStore:
    return request.app.state.agent_store


def _get_provider_registry(request: Request) -> ProviderRegistry:
    return request.app.state.provider_registry


AgentsDep = Annotated[AgentRegistry, Depends(_get_agents)]
AgentStoreDep = Annotated[IAgentStore, Depends(_get_agent_store)]
ProvidersDep = Annotated[ProviderRegistry, Depends(_get_provider_registry)]


async def _read_payload(request: Request) -> dict[str, Any]:
    """Decode the request body; an empty body is an empty payload."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestError("Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return payload


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@router.post(
    "/functions/{agent_name}",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Run an agent action",
)
async def invoke_agent(agent_name: str, request: Request, agents: AgentsDep) -> JSONResponse:
    agent = agents.get(agent_name)
    payload = await _read_payload(request)
    result = await agent.handle(payload)
    return JSONResponse(content=jsonable_encoder(success_envelope(result)))


@router.get("/agents", response_model=AgentsResponse, summary="List agents")
async def list_agents(agents: AgentsDep) -> AgentsResponse:
    return AgentsResponse(agents=[AgentInfo(**info) for info in agents.describe()])


@router.get(
    "/runs/{run_id}",
    response_model=RunResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one agent run",
)
async def get_run(run_id: str, store: AgentStoreDep) -> RunResponse:
    run = await store.get_run(run_id)
    return RunResponse(run=run.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, providers: ProvidersDep) -> HealthResponse:
    """LLM availability plus the scraping services the agents use."""
    status: dict[str, bool] = {name: name in providers.available() for name in providers.names()}
    for name, service in (getattr(request.app.state, "web_services", None) or {}).items():
        status[name] = service.is_available()

    return HealthResponse(
        status="healthy" if providers.available() else "degraded",
        version=__version__,
        providers=status,
        database_path=str(request.app.state.settings.database_path),
    )
