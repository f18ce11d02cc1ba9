"""End-to-end: prompt template -> provider -> JSON extraction -> stored insight.

Runs a small agent through the HTTP layer and reads the result back from
the SQLite file, so every stage between the request and the row is real
apart from the model reply.
"""

from __future__ import annotations

from typing import Any

import aiosqlite
import httpx
import pytest
from fastapi import FastAPI

from technodog.agents import ActionResult, AgentRegistry, BaseAgent, RunContext, action
from technodog.api.middleware import ErrorHandlingMiddleware, configure_cors
from technodog.api.routes import router as api_router
from technodog.models.agent import Insight
from technodog.services.prompt_builder import PromptTemplate
from technodog.utils.json_extract import extract_object

COUNT_PROMPT = PromptTemplate("Count: {n}")


class CounterAgent(BaseAgent):
    name = "counter"
    default_action = "count"

    @action("count")
    async def _count(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        prompt = COUNT_PROMPT.render(n=payload["n"])
        completion = await self.orchestrator.first_success(["openai", "anthropic"], "Count.", prompt)
        parsed = extract_object(completion.text).unwrap(completion.provider)
        insight = Insight(
            agent=self.name,
            insight_type="count",
            model_used=completion.provider,
            result_json=parsed,
        )
        return ActionResult({"parsed": parsed}, insights=[insight])


@pytest.mark.asyncio
async def test_prompt_to_persisted_insight(agent_store, orchestrator_factory, llm_factory, db_path):
    openai = llm_factory("openai", error=RuntimeError("rate limited"))
    anthropic = llm_factory("anthropic", 'Sure! {"count": 42}')
    agent = CounterAgent(agent_store, orchestrator_factory(openai, anthropic))

    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    configure_cors(app)
    app.include_router(api_router)
    app.state.agents = AgentRegistry([agent])
    app.state.agent_store = agent_store

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/functions/counter", json={"n": 42})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["parsed"] == {"count": 42}
    assert anthropic.complete.call_args.args[1] == "Count: 42"

    async with aiosqlite.connect(str(db_path)) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            "SELECT run_id, model_used, result_json FROM agent_insights WHERE agent = 'counter'"
        )
        rows = await cursor.fetchall()

    assert len(rows) == 1
    assert rows[0]["run_id"] == body["run_id"]
    assert rows[0]["model_used"] == "anthropic"
    assert rows[0]["result_json"] == '{"count": 42}'


@pytest.mark.asyncio
async def test_unparseable_reply_fails_the_run(agent_store, orchestrator_factory, llm_factory):
    orchestrator = orchestrator_factory(llm_factory("openai", "I cannot count."), llm_factory("anthropic"))
    agent = CounterAgent(agent_store, orchestrator)

    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)
    app.state.agents = AgentRegistry([agent])

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/functions/counter", json={"n": 1})

    assert resp.status_code == 502
    assert resp.json()["error_type"] == "ExtractionError"
    [run] = await agent_store.list_runs(agent="counter")
    assert run.status.value == "failed"
    assert await agent_store.list_insights(agent="counter") == []
