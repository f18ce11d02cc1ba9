"""Open-source operating playbook for the techno culture archive.

Three provider roles share the work, each an ordered fallback chain
configured under ``llm.roles``:

* ``scanner``  -- fast trend scanning, returns JSON.
* ``reviewer`` -- deep analysis, validation, audits and playbook answers.
* ``writer``   -- section drafts, templates and usage instructions.

Firecrawl search, when configured, adds discovered source URLs to the
research step; a failed search is logged and the research continues on
model synthesis alone.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action, param, require
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IPlaybookStore
from technodog.interfaces.web_provider import IScrapeProvider
from technodog.models.consensus import Completion
from technodog.services.orchestrator import ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate
from technodog.utils.errors import TechnoDogError
from technodog.utils.json_extract import extract_object

ROLE_TEMPERATURE = {"scanner": 0.8, "reviewer": 0.5, "writer": 0.7}

SECTION_TOPICS: dict[str, str] = {
    "philosophy": "open-source philosophy applied to techno culture, transparency, attribution, consent-first documentation",
    "governance": "governance models for cultural documentation projects, roles, decision-making, steering committees",
    "contribution": "contribution workflows for code and content, review processes, onboarding, mentorship",
    "code_of_conduct": "code of conduct, anti-harassment, inclusive language, conflict resolution, moderation",
    "licensing": "licensing for code, content, audio, images, Creative Commons, attribution, takedown handling",
    "rituals": "community rituals, contributor spotlights, release ceremonies, public roadmaps, transparency culture",
    "sustainability": "sustainable funding, donations, sponsorships, grants, avoiding capture, commercial partnerships",
    "metrics": "community health metrics, contributor growth, burnout indicators, diversity, documentation freshness",
}

TEMPLATE_DESCRIPTIONS: dict[str, str] = {
    "issue_template": "GitHub issue template for bug reports, feature requests, and content submissions",
    "PR_template": "Pull request template for code and content contributions",
    "RFC": "Request for Comments template for proposing changes to governance or major features",
    "meeting_notes": "Template for community meeting notes and action items",
    "contributor_onboarding": "Onboarding guide template for new contributors",
    "code_review": "Code review checklist and feedback template",
    "content_submission": "Template for submitting artist interviews, scene documentation, or archives",
    "release_notes": "Release notes template for version announcements",
    "incident_report": "Template for reporting and documenting community incidents",
}

SCANNER_SYSTEM_PROMPT = (
    "You are a fast trend-aware scanner for open-source community practices. "
    "Identify emerging patterns, recent debates, and new governance models."
)
ANALYST_SYSTEM_PROMPT = (
    "You are an expert in open-source governance, community building, and ethical knowledge sharing. "
    "Provide deep, nuanced analysis."
)
WRITER_SYSTEM_PROMPT = (
    "You are an expert technical writer creating open-source community documentation. "
    "Write clear, actionable, well-organized content."
)
VALIDATOR_SYSTEM_PROMPT = (
    "You are an ethics and community governance expert. Provide critical but constructive review."
)
TEMPLATE_SYSTEM_PROMPT = (
    "You are an expert in open-source project management. Create professional, practical templates."
)
INSTRUCTIONS_SYSTEM_PROMPT = "You are a technical documentation expert."
AUDITOR_SYSTEM_PROMPT = (
    "You are an open-source community auditor. Provide thorough, actionable assessment."
)
ASSISTANT_SYSTEM_PROMPT = (
    "You are the playbook assistant for a techno culture documentation project. "
    "Provide helpful, actionable guidance based on our open-source operating system."
)

TREND_PROMPT = PromptTemplate(
    """Scan for the latest trends and emerging best practices in open-source community management related to: {topic}

Focus on:
- New governance models being adopted
- Recent debates in the open-source community
- Emerging tools and frameworks
- Shifts in contributor experience practices

Return as JSON: { "trends": [...], "emerging_practices": [...], "recent_debates": [...] }"""
)

ANALYSIS_PROMPT = PromptTemplate(
    """Analyze open-source best practices for: {topic}

Consider projects like: Go, Rust, Kubernetes, Linux, Mozilla, Apache, Debian

Provide:
1. Core principles and philosophy
2. Governance recommendations
3. Community health factors
4. Ethical considerations
5. Application to techno culture documentation

Return structured analysis with citations to known sources."""
)

SECTION_PROMPT = PromptTemplate(
    """Generate a comprehensive playbook section for: {section_key}

Topic focus: {topic}
{extra_context}

Research findings:
{research}

Create a well-structured markdown section that:
1. Explains the principles clearly
2. Provides actionable guidelines
3. Includes do's and don'ts
4. Gives concrete examples
5. Applies to techno culture documentation specifically

Format as clean markdown with headers, lists, and callouts."""
)

VALIDATION_PROMPT = PromptTemplate(
    """Review this playbook section for: {section_key}

Content:
{content}

Evaluate:
1. Ethical soundness
2. Cultural sensitivity for underground techno scenes
3. Balance between openness and privacy protection
4. Practical applicability
5. Potential gaps or risks

Return: { "score": 0-100, "strengths": [...], "concerns": [...], "suggestions": [...] }"""
)

TEMPLATE_PROMPT = PromptTemplate(
    """Create a professional {template_type} template for an open-source techno culture documentation project.

Description: {description}

The template should:
1. Be clear and easy to fill out
2. Capture all necessary information
3. Follow open-source best practices
4. Be appropriate for the techno/electronic music documentation context

Return the template in markdown format with placeholder text and instructions."""
)

INSTRUCTIONS_PROMPT = PromptTemplate(
    """Write usage instructions for this template:

Template type: {template_type}
Template content: {template}

Explain:
1. When to use this template
2. How to fill it out properly
3. Common mistakes to avoid
4. Examples of good usage

Keep it concise and practical."""
)

AUDIT_PROMPT = PromptTemplate(
    """Audit the following practices against open-source best practices:

{context}

Compare against standards from: Go, Rust, Kubernetes, Linux Foundation, Apache, Mozilla, Debian

Evaluate:
1. Governance structure
2. Contribution processes
3. Documentation quality
4. Community health
5. Licensing and attribution
6. Moderation and safety
7. Sustainability

Return: {
  "overallScore": 0-100,
  "categories": [
    { "name": "...", "score": 0-100, "status": "good|needs_work|critical", "findings": [...], "recommendations": [...] }
  ],
  "topPriorities": [...],
  "implementationPlan": [...]
}"""
)

ASK_PROMPT = PromptTemplate(
    """Answer this question about our open-source operating system / playbook:

Question: {question}

Available playbook content:
{playbook}

Provide:
1. Direct answer to the question
2. Relevant principles or policies that apply
3. Recommended actions or next steps
4. Any caveats or considerations

Be practical and specific to our techno culture documentation context."""
)


def title_from_key(key: str) -> str:
    """``code_of_conduct`` -> ``Code Of Conduct``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), key.replace("_", " "))


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


class PlaybookAgent(BaseAgent):
    name = "playbook-agent"
    default_action = None
    description = "Researches, writes and audits the project's open-source playbook"

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator,
        playbook: IPlaybookStore,
        scraper: IScrapeProvider | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, orchestrator, config)
        self._playbook = playbook
        self._scraper = scraper
        self._topics = {**SECTION_TOPICS, **(self._config.get("section_topics") or {})}
        self._search_limit = int(self._config.get("search_limit", 10))

    async def _ask(self, role: str, system_prompt: str, prompt: str) -> Completion:
        return await self.orchestrator.first_success(
            self.orchestrator.role(role),
            system_prompt,
            prompt,
            temperature=ROLE_TEMPERATURE[role],
            max_tokens=4000,
        )

    async def _discover_sources(self, topic: str) -> list[str]:
        if self._scraper is None or not self._scraper.is_available():
            return []
        query = f"open source {topic} best practices governance community"
        try:
            results = await self._scraper.search(query, limit=self._search_limit)
        except TechnoDogError as exc:
            self._logger.warning("source_search_failed", topic=topic, error=str(exc))
            return []
        return [r["url"] for r in results]

    async def research(self, topic: str) -> dict[str, Any]:
        sources = await self._discover_sources(topic)
        trends = await self._ask("scanner", SCANNER_SYSTEM_PROMPT, TREND_PROMPT.render(topic=topic))
        analysis = await self._ask("reviewer", ANALYST_SYSTEM_PROMPT, ANALYSIS_PROMPT.render(topic=topic))
        return {
            "discoveredSources": sources,
            "trendAnalysis": extract_object(trends.text).as_payload(),
            "deepAnalysis": analysis.text,
            "topic": topic,
        }

    async def generate_section(self, section_key: str, context: str | None = None) -> dict[str, Any]:
        topic = self._topics.get(section_key, section_key)
        research = await self.research(topic)

        draft = await self._ask(
            "writer",
            WRITER_SYSTEM_PROMPT,
            SECTION_PROMPT.render(
                section_key=section_key,
                topic=topic,
                extra_context=f"Additional context: {context}" if context else "",
                research=json.dumps(research["deepAnalysis"])[:2000],
            ),
        )
        validation = await self._ask(
            "reviewer",
            VALIDATOR_SYSTEM_PROMPT,
            VALIDATION_PROMPT.render(section_key=section_key, content=draft.text[:3000]),
        )
        return {
            "sectionKey": section_key,
            "content": draft.text,
            "validation": extract_object(validation.text).as_payload(),
            "sources": research["discoveredSources"],
            "generatedAt": _now_iso(),
        }

    @action("research_sources")
    async def _research_sources(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        topic = param(payload, "context", default="open-source community governance")
        result = await self.research(topic)
        return ActionResult(
            {"result": result},
            stats={"action": ctx.action, "sources": len(result["discoveredSources"])},
        )

    @action("generate_section")
    async def _generate_section(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        section_key = require(payload, "section_key", "sectionKey")
        result = await self.generate_section(section_key, param(payload, "context"))
        await ctx.heartbeat()
        row = await self._playbook.upsert_section(
            section_key,
            title_from_key(section_key),
            result["content"],
            result["sources"],
            status="draft",
        )
        result["versionNumber"] = row["version_number"]
        return ActionResult({"result": result}, stats={"action": ctx.action, "section": section_key})

    @action("generate_template")
    async def _generate_template(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        template_type = require(payload, "template_type", "templateType")
        description = TEMPLATE_DESCRIPTIONS.get(template_type, template_type)

        template = await self._ask(
            "writer",
            TEMPLATE_SYSTEM_PROMPT,
            TEMPLATE_PROMPT.render(template_type=template_type, description=description),
        )
        instructions = await self._ask(
            "writer",
            INSTRUCTIONS_SYSTEM_PROMPT,
            INSTRUCTIONS_PROMPT.render(template_type=template_type, template=template.text[:1500]),
        )
        await self._playbook.insert_template(
            template_type, title_from_key(template_type), template.text, instructions.text
        )
        return ActionResult(
            {
                "result": {
                    "templateType": template_type,
                    "template": template.text,
                    "instructions": instructions.text,
                    "generatedAt": _now_iso(),
                }
            },
            stats={"action": ctx.action, "template_type": template_type},
        )

    @action("audit_practices")
    async def _audit_practices(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        context = param(payload, "context", default="Current project practices")
        audit = await self._ask("reviewer", AUDITOR_SYSTEM_PROMPT, AUDIT_PROMPT.render(context=context))
        parsed = extract_object(audit.text)
        return ActionResult(
            {"result": parsed.as_payload()},
            stats={"action": ctx.action, "parse_status": parsed.status.value},
        )

    @action("ask_playbook")
    async def _ask_playbook(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        question = require(payload, "question")
        sections = await self._playbook.list_sections(status="active", limit=10)
        principles = await self._playbook.list_principles(limit=10)
        policies = await self._playbook.list_policies(limit=5)

        playbook = {
            "sections": [
                {k: s[k] for k in ("section_key", "section_title", "section_content_markdown")}
                for s in sections
            ],
            "principles": principles,
            "policies": policies,
        }
        answer = await self._ask(
            "reviewer",
            ASSISTANT_SYSTEM_PROMPT,
            ASK_PROMPT.render(question=question, playbook=json.dumps(playbook, default=str)[:4000]),
        )
        return ActionResult(
            {
                "result": {
                    "question": question,
                    "answer": answer.text,
                    "relevantSections": [s["section_key"] for s in sections],
                    "relevantPolicies": [p["policy_name"] for p in policies],
                }
            },
            stats={"action": ctx.action},
        )

    @action("refresh_playbook")
    async def _refresh_playbook(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        sections = await self._playbook.list_sections(status="active", limit=100)
        refreshed: list[dict[str, str]] = []
        for section in sections:
            key = section["section_key"]
            result = await self.generate_section(key)
            await self._playbook.update_section_content(
                key, result["content"], result["sources"], expected_version=section["version_number"]
            )
            refreshed.append({"section": key, "status": "refreshed"})
            await ctx.heartbeat()
        return ActionResult(
            {"result": {"refreshed": refreshed}},
            stats={"action": ctx.action, "refreshed": len(refreshed)},
        )
