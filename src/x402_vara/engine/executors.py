"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until termination conditions are met.
"""

import asyncio
from typing import AsyncGenerator, Set

from .events import BaseEvent, BreakEvent, EventBus, Dependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Events are yielded as they are produced, after their hooks ran. A
    consumer may stop iterating early (e.g. once it has a response to send);
    the remaining chain keeps running in the background.
    """

    # Strong references to running producers so they are not garbage collected.
    _background: Set[asyncio.Task] = set()

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Events encountered during chain execution.

        Raises:
            Any exception raised by a handler, once the events produced
            before it have been yielded.
        """
        events_queue: asyncio.Queue = asyncio.Queue()
        done = object()
        failure: list = []

        async def producer():
            try:
                await self.event_bus.run_hooks(initial_event, self.deps)
                async for event in self._process_event(initial_event):
                    await events_queue.put(event)
            except Exception as e:
                failure.append(e)
            finally:
                await events_queue.put(done)

        task = asyncio.create_task(producer())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        while True:
            event = await events_queue.get()
            if event is done:
                break
            yield event

        if failure:
            raise failure[0]

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Process single event and recursively handle results.

        The hooks of an event have finished before the event is yielded, so
        they observe it even when the consumer stops right after.

        Args:
            event: The event to process (its hooks already ran).

        Yields:
            Events from the chain.
        """
        if isinstance(event, BreakEvent):
            return

        async for result in self.event_bus.dispatch(event, self.deps, with_hooks=False):
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                await self.event_bus.run_hooks(result, self.deps)
                yield result
                async for e in self._process_event(result):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
