"""
clinica_juridica.orchestrator.worker

External-task worker loop.

Responsibilities:
- Long-poll the engine for tasks on the subscribed topics.
- Dispatch each task to its topic handler and report the outcome (complete / bpmnError).
- Keep polling through engine outages with a fixed backoff.

Notes:
- No retry policy: a failed backend call becomes a BPMN error immediately and the process
  model decides what happens next.
"""

from __future__ import annotations

import asyncio

from clinica_juridica.observability.logging import get_logger
from clinica_juridica.orchestrator.backend_client import BackendClient, BackendError
from clinica_juridica.orchestrator.engine import CamundaClient, EngineError, ExternalTask
from clinica_juridica.orchestrator.handlers import HANDLERS, TaskVariableError, TopicHandler
from clinica_juridica.settings import Settings

log = get_logger(__name__)

POLL_BACKOFF_SECONDS = 5.0


class ExternalTaskWorker:
    def __init__(
        self,
        *,
        engine: CamundaClient,
        backend: BackendClient,
        settings: Settings,
        handlers: tuple[TopicHandler, ...] = HANDLERS,
    ) -> None:
        self._engine = engine
        self._backend = backend
        self._settings = settings
        self._handlers = {h.topic: h for h in handlers}

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    async def poll_once(self) -> int:
        tasks = await self._engine.fetch_and_lock(
            topics=self.topics,
            max_tasks=self._settings.worker_max_tasks,
            lock_duration_ms=self._settings.worker_lock_duration_ms,
            async_response_timeout_ms=self._settings.worker_async_response_timeout_ms,
        )
        for task in tasks:
            await self.handle(task)
        return len(tasks)

    async def handle(self, task: ExternalTask) -> bool:
        log.info("task_received", task_id=task.id, topic=task.topic_name)
        handler = self._handlers.get(task.topic_name)
        if handler is None:
            # fetchAndLock only returns subscribed topics; anything else is left to expire.
            log.warning("task_unknown_topic", task_id=task.id, topic=task.topic_name)
            return False

        try:
            await handler.run(self._backend, task.variables)
        except (BackendError, TaskVariableError) as e:
            message = getattr(e, "detail", None) or handler.default_message
            log.error(
                "task_failed",
                task_id=task.id,
                topic=task.topic_name,
                error_code=handler.error_code,
                error=str(e),
                detail=message,
            )
            await self._report(
                self._engine.bpmn_error(
                    task.id, error_code=handler.error_code, error_message=message
                ),
                task,
            )
            return False
        except Exception:
            # Bad variable shapes or handler bugs still close the task with a BPMN error.
            log.error(
                "task_crashed",
                task_id=task.id,
                topic=task.topic_name,
                error_code=handler.error_code,
                exc_info=True,
            )
            await self._report(
                self._engine.bpmn_error(
                    task.id, error_code=handler.error_code, error_message=handler.default_message
                ),
                task,
            )
            return False

        log.info("task_handled", task_id=task.id, topic=task.topic_name)
        await self._report(self._engine.complete(task.id), task)
        return True

    async def _report(self, call, task: ExternalTask) -> None:
        try:
            await call
        except EngineError as e:
            # The lock expires and the engine hands the task out again.
            log.error("task_report_failed", task_id=task.id, topic=task.topic_name, error=e.message)

    async def run(self, stop: asyncio.Event) -> None:
        log.info("worker_started", topics=self.topics, worker_id=self._settings.worker_id)
        while not stop.is_set():
            try:
                await self.poll_once()
            except EngineError as e:
                log.warning("poll_failed", error=e.message)
                await _backoff(stop)
            except Exception:
                log.error("poll_crashed", exc_info=True)
                await _backoff(stop)
        log.info("worker_stopped")


async def _backoff(stop: asyncio.Event) -> None:
    try:
        await asyncio.wait_for(stop.wait(), timeout=POLL_BACKOFF_SECONDS)
    except TimeoutError:
        pass
