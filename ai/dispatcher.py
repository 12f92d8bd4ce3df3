"""Tool-call dispatch with exactly one correlated response per invocation."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable

from ai.tools import ToolContext, ToolFn, failure_messages, function_map
from ai.transport import ToolInvocation, ToolResponse, Transport
from core.logging import log_error, log_tool_call, logger

WAKE_WORD_REJECTION = "Ignored: the wake word was not spoken, so no command was given."


class ToolDispatcher:
    """Run tool handlers concurrently and send each result back on the transport.

    Observers see every invocation, in list order, before any handler starts.
    Handlers run as independent tasks, so completions may interleave. A
    response finishing after its session was stopped or replaced is dropped.
    """

    def __init__(
        self,
        transport: Transport,
        context: ToolContext,
        *,
        is_current: Callable[[], bool] | None = None,
        allow_commands: Callable[[], bool] | None = None,
        handlers: dict[str, ToolFn] | None = None,
    ) -> None:
        self.transport = transport
        self.context = context
        self._is_current = is_current or (lambda: True)
        self._allow_commands = allow_commands or (lambda: True)
        self.handlers = function_map if handlers is None else handlers
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> frozenset[asyncio.Task[None]]:
        return frozenset(self._tasks)

    def dispatch(self, invocations: Iterable[ToolInvocation]) -> list[asyncio.Task[None]]:
        invocations = list(invocations)
        for invocation in invocations:
            args = invocation.args if isinstance(invocation.args, dict) else {}
            self.context.observer.on_tool_invocation(invocation.name, dict(args))

        # The gate is read once per batch, when the call arrives.
        allowed = self._allow_commands()
        tasks: list[asyncio.Task[None]] = []
        for invocation in invocations:
            task = asyncio.create_task(
                self._run(invocation, allowed),
                name=f"tool-{invocation.name}-{invocation.id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)
            tasks.append(task)
        return tasks

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Tool task %s failed", task.get_name(), exc_info=exc)

    async def _run(self, invocation: ToolInvocation, allowed: bool) -> None:
        response = await self.execute(invocation, allowed=allowed)
        await self._deliver(response)

    async def execute(self, invocation: ToolInvocation, *, allowed: bool | None = None) -> ToolResponse:
        """Run one handler and turn any outcome into a ``ToolResponse``."""

        name = invocation.name
        if allowed is None:
            allowed = self._allow_commands()
        if not allowed:
            logger.info("Rejected tool call %s while waiting for the wake word", name)
            return ToolResponse.failure(invocation, WAKE_WORD_REJECTION)

        if not isinstance(invocation.args, dict):
            error_message = f"Invalid arguments for function '{name}': expected an object."
            log_error(error_message)
            return ToolResponse.failure(invocation, error_message)
        args: dict[str, Any] = dict(invocation.args)

        handler = self.handlers.get(name)
        if handler is None:
            error_message = f"Function '{name}' not found."
            log_error(error_message)
            return ToolResponse.failure(invocation, error_message)

        try:
            result = await handler(self.context, **args)
        except Exception as exc:
            notice, prefix = failure_messages.get(
                name, (f"Tool '{name}' failed.", f"Error executing function '{name}'")
            )
            log_error(f"Error executing function '{name}': {exc}")
            if self._is_current():
                self.context.observer.on_error(notice)
            return ToolResponse.failure(invocation, f"{prefix}: {exc}")

        log_tool_call(name, args, result)
        return ToolResponse.success(invocation, result)

    async def _deliver(self, response: ToolResponse) -> None:
        if not self._is_current() or self.transport.closed:
            logger.debug("Discarding stale response for %s (%s)", response.name, response.id)
            return
        await self.transport.send_tool_response(response)
