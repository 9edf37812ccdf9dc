"""
Tool catalog: the single name-indexed registry of tool definitions and handlers.

Registration happens at bootstrap, before any transport starts. After that the
catalog is only read by the dispatcher.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from zkpret_mcp.context import ContextSnapshot
from zkpret_mcp.errors import DuplicateToolNameError, InvalidDefinitionError
from zkpret_mcp.schema import check_input_shape

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any], ContextSnapshot], Union[Awaitable[Any], Any]]

DEFAULT_CATEGORY = "general"


def category_for(name: str) -> str:
    """Derive the category from the tool name prefix (``contract_deploy`` -> ``contract``)."""
    return name.split("_", 1)[0] or DEFAULT_CATEGORY


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    name: str
    description: str
    input_shape: Dict[str, Any]

    @property
    def category(self) -> str:
        return category_for(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "inputShape": copy.deepcopy(self.input_shape),
        }


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def category(self) -> str:
        return self.definition.category


def _copy_definition(definition: ToolDefinition) -> ToolDefinition:
    """Detached copy, so callers never hold the shape the dispatcher validates against."""
    return ToolDefinition(
        name=definition.name,
        description=definition.description,
        input_shape=copy.deepcopy(dict(definition.input_shape)),
    )


def _check_definition(definition: ToolDefinition, handler: ToolHandler) -> None:
    if not isinstance(definition.name, str) or not definition.name.strip():
        raise InvalidDefinitionError("Tool name must be a non-empty string")
    if definition.name != definition.name.strip():
        raise InvalidDefinitionError(f"Tool name {definition.name!r} has surrounding whitespace")
    if not isinstance(definition.description, str) or not definition.description.strip():
        raise InvalidDefinitionError(f"Tool {definition.name!r} needs a non-empty description")
    if not callable(handler):
        raise InvalidDefinitionError(f"Tool {definition.name!r} handler is not callable")
    try:
        check_input_shape(definition.input_shape)
    except InvalidDefinitionError as exc:
        raise InvalidDefinitionError(f"Tool {definition.name!r}: {exc.message}") from exc


class ToolCatalog:
    """Ordered mapping of tool name to ``CatalogEntry`` with a category index."""

    def __init__(self) -> None:
        self._entries: Dict[str, CatalogEntry] = {}
        self._categories: Dict[str, List[str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def _store(self, entry: CatalogEntry) -> None:
        self._entries[entry.name] = entry
        self._categories.setdefault(entry.category, []).append(entry.name)
        logger.debug("Registered tool %s", entry.name, extra={"tool": entry.name})

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> CatalogEntry:
        """Add one tool; raises on a duplicate name or malformed definition."""
        _check_definition(definition, handler)
        if definition.name in self._entries:
            raise DuplicateToolNameError(f"Tool {definition.name!r} is already registered")
        entry = CatalogEntry(definition=_copy_definition(definition), handler=handler)
        self._store(entry)
        return entry

    def register_many(self, entries: Iterable[Tuple[ToolDefinition, ToolHandler]]) -> List[CatalogEntry]:
        """
        Register a batch atomically.

        Every entry is checked (including duplicates inside the batch) before any
        is stored, so a failing batch leaves the catalog unchanged.
        """
        batch = list(entries)
        seen = set()
        for definition, handler in batch:
            _check_definition(definition, handler)
            if definition.name in self._entries or definition.name in seen:
                raise DuplicateToolNameError(f"Tool {definition.name!r} is already registered")
            seen.add(definition.name)
        stored = [CatalogEntry(definition=_copy_definition(definition), handler=handler) for definition, handler in batch]
        for entry in stored:
            self._store(entry)
        logger.info("Registered %d tools across %d categories", len(stored), len(self._categories))
        return stored

    def lookup(self, name: str) -> Optional[CatalogEntry]:
        return self._entries.get(name)

    def list(self) -> List[ToolDefinition]:
        return [_copy_definition(entry.definition) for entry in self._entries.values()]

    def list_by_category(self, category: str) -> List[ToolDefinition]:
        return [_copy_definition(self._entries[name].definition) for name in self._categories.get(category, [])]

    def categories(self) -> List[str]:
        return list(self._categories)

    def remove(self, name: str) -> bool:
        entry = self._entries.pop(name, None)
        if entry is None:
            return False
        names = self._categories.get(entry.category, [])
        if name in names:
            names.remove(name)
        if not names:
            self._categories.pop(entry.category, None)
        logger.debug("Removed tool %s", name, extra={"tool": name})
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._categories.clear()

    def search(self, query: str) -> List[ToolDefinition]:
        needle = query.lower()
        return [
            _copy_definition(entry.definition)
            for entry in self._entries.values()
            if needle in entry.name.lower() or needle in entry.definition.description.lower()
        ]

    def statistics(self) -> Dict[str, Any]:
        return {
            "totalTools": len(self._entries),
            "categories": [{"name": name, "count": len(names)} for name, names in self._categories.items()],
        }
