"""
tests.test_orchestrator

Orchestrator microservice: typed variables, external-task dispatch against the real backend
(in-process), process endpoints, and the backend -> orchestrator start hand-off.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio
from conftest import Seed, crear_ficha, login, seed_clinica

from clinica_juridica.orchestrator import worker as worker_module
from clinica_juridica.orchestrator.app import create_app as create_orchestrator
from clinica_juridica.orchestrator.variables import (
    decode_variables,
    encode_value,
    encode_variables,
)
from clinica_juridica.settings import Settings

H = dict[str, dict[str, str]]


class FakeCamunda:
    """
    Minimal engine-rest double: queued external tasks, recorded completions/errors.
    """

    def __init__(self) -> None:
        self.queue: list[dict[str, Any]] = []
        self.user_tasks: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []

    def task(self, task_id: str, topic: str, **variables: Any) -> None:
        self.queue.append(
            {
                "id": task_id,
                "topicName": topic,
                "processInstanceId": "pi-1",
                "variables": encode_variables(variables),
            }
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/engine-rest")
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))

        if path == "/external-task/fetchAndLock":
            tasks, self.queue = self.queue[: body["maxTasks"]], self.queue[body["maxTasks"] :]
            return httpx.Response(200, json=tasks)
        if path.startswith("/process-definition/key/"):
            return httpx.Response(200, json={"id": "pi-1", "businessKey": body.get("businessKey")})
        if path == "/task" and request.method == "GET":
            instance = request.url.params["processInstanceId"]
            return httpx.Response(200, json=self.user_tasks.get(instance, []))
        if path.endswith("/complete") or path.endswith("/bpmnError"):
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "not found"})

    def posted(self, suffix: str) -> list[tuple[str, dict[str, Any]]]:
        return [(p, b) for m, p, b in self.calls if m == "POST" and p.endswith(suffix)]


@pytest.fixture
def camunda() -> FakeCamunda:
    return FakeCamunda()


@pytest.fixture
def orch_settings(settings: Settings) -> Settings:
    return settings.model_copy(
        update={"worker_autopoll": False, "camunda_url": "http://camunda/engine-rest"}
    )


@pytest_asyncio.fixture
async def orchestrator(app_factory, orch_settings: Settings, camunda: FakeCamunda, app):
    return await app_factory(
        orch_settings,
        factory=create_orchestrator,
        camunda_transport=httpx.MockTransport(camunda.handler),
        backend_transport=httpx.ASGITransport(app=app),
    )


def test_encode_value_types() -> None:
    assert encode_value(None) == {"value": None, "type": "Null"}
    assert encode_value(True) == {"value": True, "type": "Boolean"}
    assert encode_value(3) == {"value": 3, "type": "Integer"}
    assert encode_value(2**40) == {"value": 2**40, "type": "Long"}
    assert encode_value(1.5) == {"value": 1.5, "type": "Double"}
    assert encode_value("grupo_A") == {"value": "grupo_A", "type": "String"}
    assert encode_value({"a": [1]}) == {"value": '{"a": [1]}', "type": "Json"}


def test_decode_variables_handles_engine_shapes() -> None:
    typed = {
        "id_tramite": {"value": 7, "type": "Integer"},
        "validado": {"value": "true", "type": "Boolean"},
        "meta": {"value": '{"k": "v"}', "type": "Json"},
        "nada": {"value": None, "type": "Null"},
    }
    assert decode_variables(typed) == {
        "id_tramite": 7,
        "validado": True,
        "meta": {"k": "v"},
        "nada": None,
    }


@pytest.mark.asyncio
async def test_health(orchestrator) -> None:
    transport = httpx.ASGITransport(app=orchestrator)
    async with httpx.AsyncClient(transport=transport, base_url="http://orch") as c:
        r = await c.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"] == "orchestrator"
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_crear_tramite_task_creates_tramite_and_completes(
    orchestrator, camunda: FakeCamunda, client: httpx.AsyncClient, headers: H, seed: Seed
) -> None:
    camunda.task(
        "t-1",
        "crear-tramite",
        id_consultante=seed.consultante_id,
        id_grupo=seed.grupo_id,
        num_carpeta=None,
        observaciones="Desde BPMN",
    )

    assert await orchestrator.state.worker.poll_once() == 1

    (fetch,) = camunda.posted("/fetchAndLock")
    assert fetch[1]["maxTasks"] == 1
    assert fetch[1]["asyncResponseTimeout"] == 30000
    assert {t["topicName"] for t in fetch[1]["topics"]} == {
        "crear-tramite",
        "actualizar-estado",
        "enviar-notificacion",
    }
    assert [p for p, _ in camunda.posted("/complete")] == ["/external-task/t-1/complete"]
    assert camunda.posted("/bpmnError") == []

    r = await client.get("/api/tramites", headers=headers["admin"])
    (tramite,) = r.json()
    assert tramite["observaciones"] == "Desde BPMN"

    # Audited as the service identity.
    r = await client.get(
        f"/api/auditorias/tramite/{tramite['id_tramite']}", headers=headers["admin"]
    )
    assert [(a["accion"], a["id_usuario"]) for a in r.json()] == [("crear", None)]


@pytest.mark.asyncio
async def test_failed_backend_call_reports_bpmn_error_with_backend_detail(
    orchestrator, camunda: FakeCamunda, seed: Seed
) -> None:
    camunda.task("t-2", "actualizar-estado", id_tramite=999, estado="finalizado")

    await orchestrator.state.worker.poll_once()

    ((path, body),) = camunda.posted("/bpmnError")
    assert path == "/external-task/t-2/bpmnError"
    assert body["errorCode"] == "UPDATE_ERROR"
    assert body["errorMessage"] == "Trámite no encontrado"
    assert camunda.posted("/complete") == []


@pytest.mark.asyncio
async def test_unreachable_backend_reports_default_message(
    app_factory, orch_settings: Settings, camunda: FakeCamunda
) -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    orchestrator = await app_factory(
        orch_settings,
        factory=create_orchestrator,
        camunda_transport=httpx.MockTransport(camunda.handler),
        backend_transport=httpx.MockTransport(down),
    )
    camunda.task("t-3", "enviar-notificacion", id_tramite=1, tipo_notificacion="info", mensaje="Hola")

    await orchestrator.state.worker.poll_once()

    ((_, body),) = camunda.posted("/bpmnError")
    assert body["errorCode"] == "NOTIFICATION_ERROR"
    assert body["errorMessage"] == "Error al enviar notificación"


@pytest.mark.asyncio
async def test_missing_variables_report_bpmn_error(orchestrator, camunda: FakeCamunda) -> None:
    camunda.task("t-4", "crear-tramite", observaciones="sin ids")

    await orchestrator.state.worker.poll_once()

    ((_, body),) = camunda.posted("/bpmnError")
    assert body["errorCode"] == "TRAMITE_ERROR"
    assert body["errorMessage"] == "Error al crear trámite"


@pytest.mark.asyncio
async def test_unexpected_handler_failure_reports_default_message(
    orchestrator, camunda: FakeCamunda
) -> None:
    camunda.task("t-5", "actualizar-estado", id_tramite="abc", estado="finalizado")

    assert await orchestrator.state.worker.poll_once() == 1

    ((path, body),) = camunda.posted("/bpmnError")
    assert path == "/external-task/t-5/bpmnError"
    assert body["errorCode"] == "UPDATE_ERROR"
    assert body["errorMessage"] == "Error al actualizar trámite"


@pytest.mark.asyncio
async def test_worker_loop_keeps_polling_after_malformed_fetch(
    app_factory, orch_settings: Settings, camunda: FakeCamunda, monkeypatch
) -> None:
    monkeypatch.setattr(worker_module, "POLL_BACKOFF_SECONDS", 0)
    stop = asyncio.Event()
    fetches = 0

    def engine(request: httpx.Request) -> httpx.Response:
        nonlocal fetches
        if request.url.path.endswith("/fetchAndLock"):
            fetches += 1
            if fetches == 1:
                # Task without an id.
                return httpx.Response(200, json=[{"topicName": "crear-tramite"}])
        response = camunda.handler(request)
        if request.url.path.endswith("/bpmnError"):
            stop.set()
        return response

    orchestrator = await app_factory(
        orch_settings,
        factory=create_orchestrator,
        camunda_transport=httpx.MockTransport(engine),
        backend_transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    camunda.task("t-6", "actualizar-estado", id_tramite="abc")

    await asyncio.wait_for(orchestrator.state.worker.run(stop), timeout=5)

    assert fetches == 2
    ((path, _),) = camunda.posted("/bpmnError")
    assert path == "/external-task/t-6/bpmnError"


@pytest.mark.asyncio
async def test_process_endpoints(orchestrator, camunda: FakeCamunda) -> None:
    transport = httpx.ASGITransport(app=orchestrator)
    async with httpx.AsyncClient(transport=transport, base_url="http://orch") as c:
        r = await c.post(
            "/api/procesos/iniciar",
            json={"processKey": "procesoTramiteGrupos", "variables": {"id_tramite": 4, "validado": True}},
        )
        assert r.status_code == 200
        assert r.json() == {"instanceId": "pi-1", "businessKey": None}

        ((path, body),) = camunda.posted("/start")
        assert path == "/process-definition/key/procesoTramiteGrupos/start"
        assert body["variables"]["id_tramite"] == {"value": 4, "type": "Integer"}
        assert body["variables"]["validado"] == {"value": True, "type": "Boolean"}

        r = await c.post("/api/procesos/pi-1/completar-tarea", json={"variables": {"ok": True}})
        assert r.status_code == 404

        camunda.user_tasks["pi-1"] = [{"id": "ut-9"}]
        r = await c.post("/api/procesos/pi-1/completar-tarea", json={"variables": {"ok": True}})
        assert r.status_code == 200
        assert r.json()["taskId"] == "ut-9"
        assert camunda.posted("/task/ut-9/complete")


@pytest.mark.asyncio
async def test_iniciar_tramite_starts_process_through_orchestrator(
    app_factory, settings: Settings, orch_settings: Settings, camunda: FakeCamunda
) -> None:
    orchestrator = await app_factory(
        orch_settings,
        factory=create_orchestrator,
        camunda_transport=httpx.MockTransport(camunda.handler),
    )
    backend = await app_factory(
        settings.model_copy(update={"workflow_enabled": True}),
        workflow_transport=httpx.ASGITransport(app=orchestrator),
    )
    seed = await seed_clinica(backend)

    transport = httpx.ASGITransport(app=backend)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        id_tramite = await _iniciar(c, seed)

        r = await c.get(f"/api/tramites/{id_tramite}", headers=await login(c, "1000"))
        assert r.json()["process_instance_id"] == "pi-1"

    ((_, body),) = camunda.posted("/start")
    assert body["variables"]["grupoNombre"] == {"value": "grupo_Grupo A", "type": "String"}
    assert body["variables"]["estado"] == {"value": "en_tramite", "type": "String"}


@pytest.mark.asyncio
async def test_iniciar_tramite_survives_orchestrator_failure(
    app_factory, settings: Settings
) -> None:
    backend = await app_factory(
        settings.model_copy(update={"workflow_enabled": True}),
        workflow_transport=httpx.MockTransport(
            lambda request: httpx.Response(503, json={"detail": "motor caído"})
        ),
    )
    seed = await seed_clinica(backend)

    transport = httpx.ASGITransport(app=backend)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        id_tramite = await _iniciar(c, seed)
        r = await c.get(f"/api/tramites/{id_tramite}", headers=await login(c, "1000"))
        assert r.status_code == 200
        assert r.json()["process_instance_id"] is None


async def _iniciar(c: httpx.AsyncClient, seed: Seed) -> int:
    ficha = await crear_ficha(c, await login(c, "1000"), seed)
    await c.post(
        f"/api/fichas/{ficha['id_ficha']}/asignar",
        json={"id_grupo": seed.grupo_id},
        headers=await login(c, "2000"),
    )
    r = await c.post(
        f"/api/fichas/{ficha['id_ficha']}/iniciar-tramite",
        json={},
        headers=await login(c, "3000"),
    )
    assert r.status_code == 201, r.text
    return r.json()["tramite"]["id_tramite"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [httpx.Response(200, text="OK"), httpx.Response(200, json=["pi-1"])],
    ids=["not-json", "not-an-object"],
)
async def test_iniciar_tramite_survives_malformed_orchestrator_reply(
    app_factory, settings: Settings, reply: httpx.Response
) -> None:
    backend = await app_factory(
        settings.model_copy(update={"workflow_enabled": True}),
        workflow_transport=httpx.MockTransport(lambda request: reply),
    )
    seed = await seed_clinica(backend)

    transport = httpx.ASGITransport(app=backend)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        id_tramite = await _iniciar(c, seed)
        r = await c.get(f"/api/tramites/{id_tramite}", headers=await login(c, "1000"))
        assert r.json()["process_instance_id"] is None
