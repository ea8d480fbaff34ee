"""Section-aware reduction of generated TypeScript type definitions.

Generated types nest as ``schema -> section (Tables, Views, Enums, ...) ->
entry``. The text is split into brace-delimited blocks by line so whole
schemas, sections or entries can be removed without breaking the shape of
what remains.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .value_objects import compile_glob

SCHEMA_SECTIONS = frozenset({"Tables", "Views", "Functions", "Enums", "CompositeTypes"})

_DECLARATION = re.compile(r"^\s*(?:export\s+)?(?:type|interface)\s+([A-Za-z_$][\w$]*)")
_MEMBER = re.compile(r"^\s*([^\s:?|]+)\??\s*:")


@dataclass
class TypeBlock:
    """A brace-delimited block: opening line, children, closing line."""
    header: str
    depth: int = 1
    children: List[Union["TypeBlock", str]] = field(default_factory=list)
    footer: Optional[str] = None

    @property
    def name(self) -> str:
        declaration = _DECLARATION.match(self.header)
        if declaration:
            return declaration.group(1)
        member = _MEMBER.match(self.header)
        if member:
            return member.group(1).strip("\"'")
        return self.header.strip()

    @property
    def blocks(self) -> List["TypeBlock"]:
        return [child for child in self.children if isinstance(child, TypeBlock)]

    @property
    def is_schema(self) -> bool:
        return any(child.name in SCHEMA_SECTIONS for child in self.blocks)

    def section(self, name: str) -> Optional["TypeBlock"]:
        for child in self.blocks:
            if child.name == name:
                return child
        return None

    def render(self) -> List[str]:
        lines = [self.header]
        for child in self.children:
            if isinstance(child, TypeBlock):
                lines.extend(child.render())
            else:
                lines.append(child)
        if self.footer is not None:
            lines.append(self.footer)
        return lines


def parse_types(text: str) -> TypeBlock:
    """Parse generated type text into a tree rooted at a header-less block.

    Unbalanced input never raises: unclosed blocks are closed at the end.
    """
    root = TypeBlock(header="", depth=0)
    stack: List[TypeBlock] = [root]
    for line in text.split("\n"):
        delta = line.count("{") - line.count("}")
        if delta > 0:
            block = TypeBlock(header=line, depth=delta)
            stack[-1].children.append(block)
            stack.append(block)
        elif delta < 0 and len(stack) > 1:
            current = stack[-1]
            current.depth += delta
            if current.depth <= 0:
                current.footer = line
                stack.pop()
            else:
                current.children.append(line)
        else:
            stack[-1].children.append(line)
    return root


def _render_root(root: TypeBlock) -> str:
    lines: List[str] = []
    for child in root.children:
        if isinstance(child, TypeBlock):
            lines.extend(child.render())
        else:
            lines.append(child)
    return "\n".join(lines)


def _schema_blocks(block: TypeBlock) -> List[TypeBlock]:
    found: List[TypeBlock] = []
    for child in block.blocks:
        if child.is_schema:
            found.append(child)
        else:
            found.extend(_schema_blocks(child))
    return found


def _entry_names(section: Optional[TypeBlock]) -> List[str]:
    if section is None:
        return []
    names: List[str] = []
    for child in section.children:
        if isinstance(child, TypeBlock):
            name = child.name
        else:
            match = _MEMBER.match(child)
            if not match:
                continue
            name = match.group(1).strip("\"'")
        if name.startswith("[") or name in names:
            continue
        names.append(name)
    return names


def filter_types_bundle(
    text: str,
    schemas: Optional[Sequence[str]] = None,
    table_filter: Optional[str] = None,
    include_views: bool = True,
    include_enums: bool = True,
) -> str:
    """Remove schemas, sections and entries that were not asked for.

    Args:
        text: Generated type definitions.
        schemas: Schema names to keep; empty or None keeps all.
        table_filter: Glob applied to table and view entry names.
        include_views: Keep ``Views`` sections.
        include_enums: Keep ``Enums`` sections.

    Returns:
        The reduced text. Unchanged when no filter applies.
    """
    wanted = {schema.lower() for schema in schemas or ()}
    if not wanted and not table_filter and include_views and include_enums:
        return text

    root = parse_types(text)
    entry_regex = compile_glob(table_filter) if table_filter else None

    def prune(block: TypeBlock) -> None:
        kept: List[Union[TypeBlock, str]] = []
        for child in block.children:
            if isinstance(child, TypeBlock):
                if child.is_schema:
                    if wanted and child.name.lower() not in wanted:
                        continue
                    _prune_schema(child)
                else:
                    prune(child)
            kept.append(child)
        block.children = kept

    def _prune_schema(schema: TypeBlock) -> None:
        kept: List[Union[TypeBlock, str]] = []
        for child in schema.children:
            if isinstance(child, TypeBlock):
                if child.name == "Views" and not include_views:
                    continue
                if child.name == "Enums" and not include_enums:
                    continue
                if entry_regex is not None and child.name in ("Tables", "Views"):
                    child.children = [
                        entry for entry in child.children
                        if not isinstance(entry, TypeBlock) or entry_regex.match(entry.name)
                    ]
            kept.append(child)
        schema.children = kept

    prune(root)
    return _render_root(root)


def summarize_types_bundle(text: str, include_counts: bool = True) -> Dict[str, Any]:
    """Count tables, views and enums per schema without the full definitions.

    With ``include_counts`` false, the entry names are listed as well.
    """
    merged: Dict[str, Dict[str, List[str]]] = {}
    for schema in _schema_blocks(parse_types(text)):
        entry = merged.setdefault(schema.name, {"tables": [], "views": [], "enums": []})
        for key, section in (("tables", "Tables"), ("views", "Views"), ("enums", "Enums")):
            for name in _entry_names(schema.section(section)):
                if name not in entry[key]:
                    entry[key].append(name)

    summaries: List[Dict[str, Any]] = []
    total = 0
    for name, entry in merged.items():
        summary: Dict[str, Any] = {
            "name": name,
            "table_count": len(entry["tables"]),
            "view_count": len(entry["views"]),
            "enum_count": len(entry["enums"]),
        }
        if not include_counts:
            summary.update(entry)
        total += summary["table_count"] + summary["view_count"] + summary["enum_count"]
        summaries.append(summary)
    return {"schemas": summaries, "total_types": total}
