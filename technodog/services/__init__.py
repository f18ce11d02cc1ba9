"""Shared pipeline services: prompt rendering, consensus and orchestration."""

from technodog.services.consensus import AgreementStatus, agreement_status, merge_opinions
from technodog.services.orchestrator import FanOutResult, ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate, bullet_list, to_json_block

__all__ = [
    "AgreementStatus",
    "FanOutResult",
    "ModelOrchestrator",
    "PromptTemplate",
    "agreement_status",
    "bullet_list",
    "merge_opinions",
    "to_json_block",
]
