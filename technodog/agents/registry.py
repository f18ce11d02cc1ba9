"""Name -> agent lookup used by the API and the CLI."""

from __future__ import annotations

from typing import Iterable

from technodog.agents.base import BaseAgent
from technodog.utils.errors import RecordNotFoundError


class AgentRegistry:
    """Holds the wired agents, keyed by their edge-function name."""

    def __init__(self, agents: Iterable[BaseAgent] = ()) -> None:
        self._agents: dict[str, BaseAgent] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: BaseAgent) -> None:
        self._agents[agent.name] = agent

    def get(self, name: str) -> BaseAgent:
        try:
            return self._agents[name]
        except KeyError as exc:
            raise RecordNotFoundError(f"Unknown agent: {name}") from exc

    def names(self) -> list[str]:
        return sorted(self._agents)

    def describe(self) -> list[dict]:
        return [self._agents[name].describe() for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)
