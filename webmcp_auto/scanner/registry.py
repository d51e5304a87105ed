from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

from ..models import ExportedTool, ToolDescriptor
from .errors import ToolNotFoundError

logger = logging.getLogger(__name__)


class ModelContextSink(Protocol):
    """External registry that receives every tool we register (navigator.modelContext in a browser)."""

    def register(self, descriptor: ToolDescriptor) -> None: ...

    def clear_all(self) -> None: ...


class ToolRegistry:
    """
    Insertion-ordered store of tool descriptors.

    The first descriptor registered under a name wins; later ones with the same
    name are dropped. Once max_tools descriptors are stored nothing else is
    accepted until clear().
    """

    def __init__(
        self,
        max_tools: int,
        sink: Optional[ModelContextSink] = None,
        on_tool_registered: Optional[Callable[[ToolDescriptor], Any]] = None,
        verbose: bool = True,
    ) -> None:
        self.max_tools = max_tools
        self.sink = sink
        self.on_tool_registered = on_tool_registered
        self.verbose = verbose
        self._tools: dict[str, ToolDescriptor] = {}
        self._count = 0

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def count(self) -> int:
        return self._count

    @property
    def is_full(self) -> bool:
        return self._count >= self.max_tools

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def exported(self) -> list[ExportedTool]:
        return [descriptor.export() for descriptor in self._tools.values()]

    def register(self, descriptor: ToolDescriptor) -> bool:
        if descriptor.name in self._tools:
            return False

        if self.is_full:
            logger.warning("max_tools_reached limit=%s skipped=%s", self.max_tools, descriptor.name)
            return False

        if self.sink is not None:
            try:
                self.sink.register(descriptor)
            except Exception as exc:
                logger.warning("sink_register_failed name=%s reason=%s", descriptor.name, exc)

        self._tools[descriptor.name] = descriptor
        self._count += 1

        if self.on_tool_registered is not None:
            try:
                self.on_tool_registered(descriptor)
            except Exception:
                logger.exception("on_tool_registered_failed name=%s", descriptor.name)

        if self.verbose:
            logger.info('tool_registered name=%s description="%s"', descriptor.name, descriptor.description)
        return True

    async def invoke(self, name: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise ToolNotFoundError(name)
        return await descriptor.handler(arguments or {})

    def clear(self) -> None:
        if self.sink is not None:
            try:
                self.sink.clear_all()
            except Exception as exc:
                logger.warning("sink_clear_failed reason=%s", exc)
        self._tools.clear()
        self._count = 0
