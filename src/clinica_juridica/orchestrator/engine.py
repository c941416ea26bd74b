"""
clinica_juridica.orchestrator.engine

HTTP client for the BPMN engine REST API (Camunda 7 `engine-rest`).

Responsibilities:
- Fetch-and-lock external tasks by topic (long polling).
- Complete tasks or report BPMN errors.
- Start process instances and complete the pending user task of an instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from clinica_juridica.observability.logging import get_logger
from clinica_juridica.orchestrator.variables import decode_variables, encode_variables

log = get_logger(__name__)


class EngineError(Exception):
    status_code: int = 502

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


@dataclass(frozen=True, slots=True)
class ExternalTask:
    id: str
    topic_name: str
    process_instance_id: str | None = None
    business_key: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ExternalTask:
        return cls(
            id=str(data["id"]),
            topic_name=str(data.get("topicName", "")),
            process_instance_id=data.get("processInstanceId"),
            business_key=data.get("businessKey"),
            variables=decode_variables(data.get("variables")),
        )


def _describe(e: httpx.HTTPError) -> str:
    if isinstance(e, httpx.HTTPStatusError):
        try:
            body = e.response.json()
        except ValueError:
            return f"HTTP {e.response.status_code}"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {e.response.status_code}"
    return str(e) or e.__class__.__name__


class CamundaClient:
    def __init__(self, *, http: httpx.AsyncClient, worker_id: str) -> None:
        # `http` carries base_url (engine-rest) and a timeout longer than the long-poll window.
        self._http = http
        self._worker_id = worker_id

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            r = await self._http.post(path, json=payload)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise EngineError(f"Error del motor de procesos en {path}: {_describe(e)}") from e
        return r

    async def fetch_and_lock(
        self,
        *,
        topics: list[str],
        max_tasks: int,
        lock_duration_ms: int,
        async_response_timeout_ms: int,
    ) -> list[ExternalTask]:
        r = await self._post(
            "/external-task/fetchAndLock",
            {
                "workerId": self._worker_id,
                "maxTasks": max_tasks,
                "usePriority": True,
                "asyncResponseTimeout": async_response_timeout_ms,
                "topics": [
                    {"topicName": topic, "lockDuration": lock_duration_ms} for topic in topics
                ],
            },
        )
        return [ExternalTask.from_json(item) for item in r.json()]

    async def complete(self, task_id: str, *, variables: dict[str, Any] | None = None) -> None:
        await self._post(
            f"/external-task/{task_id}/complete",
            {"workerId": self._worker_id, "variables": encode_variables(variables)},
        )

    async def bpmn_error(
        self,
        task_id: str,
        *,
        error_code: str,
        error_message: str,
        variables: dict[str, Any] | None = None,
    ) -> None:
        await self._post(
            f"/external-task/{task_id}/bpmnError",
            {
                "workerId": self._worker_id,
                "errorCode": error_code,
                "errorMessage": error_message,
                "variables": encode_variables(variables),
            },
        )

    async def start_process(
        self, process_key: str, *, variables: dict[str, Any], business_key: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"variables": encode_variables(variables)}
        if business_key:
            payload["businessKey"] = business_key
        r = await self._post(f"/process-definition/key/{process_key}/start", payload)
        data = r.json()
        log.info("process_started", process_key=process_key, instance_id=data.get("id"))
        return data

    async def complete_user_task(
        self, process_instance_id: str, *, variables: dict[str, Any]
    ) -> str:
        try:
            r = await self._http.get("/task", params={"processInstanceId": process_instance_id})
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise EngineError(f"Error al consultar tareas: {_describe(e)}") from e

        tasks = r.json()
        if not tasks:
            raise EngineError(
                f"No hay tareas pendientes para la instancia {process_instance_id}",
                status_code=404,
            )
        task_id = str(tasks[0]["id"])
        await self._post(f"/task/{task_id}/complete", {"variables": encode_variables(variables)})
        log.info("user_task_completed", process_instance_id=process_instance_id, task_id=task_id)
        return task_id
