"""Literal ``{name}`` placeholder substitution for agent prompts.

Prompts embed JSON examples (``{ "recommendation": ... }``), so this is
not ``str.format``: only ``{identifier}`` tokens are treated as
placeholders, and substitution is a plain text replacement in one pass.
Substituted values are never re-scanned, so a value that itself contains
``{x}`` is inserted verbatim.

Placeholders with no value are left in the output unchanged.
:meth:`PromptTemplate.render_strict` raises
:class:`~technodog.utils.errors.PromptRenderError` for them instead.
Every keyword is a value, so any identifier can be a placeholder.
"""

from __future__ import annotations

import json
import re
from typing import Any

from technodog.utils.errors import PromptRenderError

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class PromptTemplate:
    """A prompt with ``{name}`` placeholders."""

    def __init__(self, template: str) -> None:
        self._template = template

    @property
    def template(self) -> str:
        return self._template

    @property
    def placeholders(self) -> list[str]:
        """Placeholder names in first-appearance order, without duplicates."""
        seen: list[str] = []
        for match in _PLACEHOLDER.finditer(self._template):
            if match.group(1) not in seen:
                seen.append(match.group(1))
        return seen

    def render(self, /, **values: Any) -> str:
        """Substitute ``values`` into the template.

        Non-string values are passed through ``str()``.  Placeholders with
        no value are left in place.
        """
        def _replace(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in values:
                return str(values[name])
            return match.group(0)

        return _PLACEHOLDER.sub(_replace, self._template)

    def render_strict(self, /, **values: Any) -> str:
        """Like :meth:`render`, but every placeholder must have a value.

        Raises:
            PromptRenderError: At least one placeholder had no value.
        """
        missing = [name for name in self.placeholders if name not in values]
        if missing:
            raise PromptRenderError(missing)
        return self.render(**values)

    def __repr__(self) -> str:
        return f"PromptTemplate(placeholders={self.placeholders!r})"


def render(template: str, /, **values: Any) -> str:
    """Shortcut for ``PromptTemplate(template).render(...)``."""
    return PromptTemplate(template).render(**values)


def to_json_block(value: Any) -> str:
    """Pretty-print ``value`` as indented JSON for embedding in a prompt."""
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def bullet_list(items: list[str], empty: str = "None") -> str:
    """Render ``items`` as ``- item`` lines, or ``empty`` when there are none."""
    if not items:
        return empty
    return "\n".join(f"- {item}" for item in items)
