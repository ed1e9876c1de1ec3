"""Tool executor: runs the model's tool calls and turns every failure into a result part."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence

from parley.core.types import ToolPart
from parley.tools.tool import Tool

logger = logging.getLogger("parley.executor")


DEFAULT_TIMEOUT = 30.0
DEFAULT_CONCURRENCY = 8


class ToolExecutor:
    """Runs tool calls. A ``timeout`` of None lets every call run to completion."""

    def __init__(self, timeout: float | None = DEFAULT_TIMEOUT, max_concurrency: int | None = None):
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency or DEFAULT_CONCURRENCY)

    async def execute(self, call: ToolPart, tool_map: Mapping[str, Tool]) -> ToolPart:
        start = time.time()
        tool = tool_map.get(call.name)
        if tool is None:
            logger.warning("Model called unknown tool %s", call.name)
            return ToolPart.error_for(call.id, call.name, f"Unknown tool: {call.name}")
        try:
            result = await asyncio.wait_for(tool.invoke(call.arguments or {}), timeout=self.timeout)
        except TimeoutError:
            logger.warning("Tool %s timed out after %ss", call.name, self.timeout)
            return ToolPart.error_for(call.id, call.name, f"Timed out after {self.timeout}s")
        except Exception as e:
            logger.warning("Tool %s failed: %s", call.name, e)
            return ToolPart.error_for(call.id, call.name, str(e) or type(e).__name__)
        logger.debug("Tool %s finished in %.1fms", call.name, (time.time() - start) * 1000)
        return ToolPart.result_for(call.id, call.name, result)

    async def execute_all(self, calls: Sequence[ToolPart], tool_map: Mapping[str, Tool]) -> list[ToolPart]:
        """Run ``calls`` concurrently; results come back in call order."""
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(call: ToolPart) -> ToolPart:
            async with sem:
                return await self.execute(call, tool_map)

        return list(await asyncio.gather(*(_bounded(c) for c in calls)))
