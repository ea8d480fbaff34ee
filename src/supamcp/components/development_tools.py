"""Development tool handlers: generated TypeScript types."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from supamcp.components.invoker import UpstreamInvoker
from supamcp.domains.response_cache import CacheTtl
from supamcp.domains.response_optimization import (
    EntityKind,
    filter_types_bundle,
    summarize_types_bundle,
)

if TYPE_CHECKING:
    from supamcp.container import ServiceContainer

logger = logging.getLogger(__name__)


class DevelopmentTools:
    """Handlers for ``generate_typescript_types`` and its summary variant."""

    def __init__(
        self,
        container: "ServiceContainer",
        invoker: Optional[UpstreamInvoker] = None,
    ) -> None:
        self.container = container
        self.invoker = invoker or UpstreamInvoker(container)

    async def _fetch_types(self, tool: str, project: str) -> str:
        bundle = await self.invoker.read(
            tool,
            {"project_id": project},
            lambda: self.container.platform.generate_typescript_types(project),
            ttl=float(CacheTtl.STANDARD),
            project_id=project,
        )
        types: Any = bundle.get("types") if isinstance(bundle, dict) else bundle
        return types if isinstance(types, str) else ""

    async def generate_typescript_types(
        self,
        project_id: Optional[str] = None,
        schemas: Optional[Sequence[str]] = None,
        table_filter: Optional[str] = None,
        include_views: bool = True,
        include_enums: bool = True,
        max_response_size: Optional[str] = None,
    ) -> str:
        """Generate types, keep only the requested schemas and sections, then bound the text."""
        tool = "generate_typescript_types"
        project = self.invoker.resolve_project(project_id, tool)
        tier = self.container.profiles.require(tool).tier(max_response_size)

        text = await self._fetch_types(tool, project)
        reduced = filter_types_bundle(
            text,
            schemas=schemas,
            table_filter=table_filter or None,
            include_views=include_views,
            include_enums=include_enums,
        )
        if len(reduced) != len(text):
            logger.debug(f"{tool}: section filters reduced types from {len(text)} to {len(reduced)} chars")

        parts = ["TypeScript types"]
        if schemas:
            parts.append(f"(schemas: {', '.join(schemas)})")
        if table_filter:
            parts.append(f"(tables: {table_filter})")
        if not include_views:
            parts.append("(views excluded)")
        if not include_enums:
            parts.append("(enums excluded)")
        parts.append(f"(size: {tier.name})")

        result = self.container.processor.process(
            reduced, EntityKind.TYPES_BUNDLE, tier, " ".join(parts), tool_name=tool,
        )
        return result.text

    async def generate_typescript_types_summary(
        self,
        project_id: Optional[str] = None,
        include_counts: bool = True,
    ) -> str:
        """Per-schema counts of tables, views and enums (names too without counts)."""
        tool = "generate_typescript_types_summary"
        project = self.invoker.resolve_project(project_id, tool)
        tier = self.container.profiles.require(tool).tier()

        text = await self._fetch_types("generate_typescript_types", project)
        summary = summarize_types_bundle(text, include_counts=include_counts)
        result = self.container.processor.process(
            summary, EntityKind.TYPES_BUNDLE, tier, "TypeScript types summary", tool_name=tool,
        )
        return result.text
