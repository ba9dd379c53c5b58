"""Fixtures: Evolution API falsa em memória servida via httpx.MockTransport."""
from __future__ import annotations

import json
import re

import httpx
import pytest
from kink import di

from evolution_manager.core.di import bootstrap_di
from evolution_manager.core.settings import Settings


class FakeEvolutionServer:
    """Implementa as rotas usadas pelo manager e registra cada chamada."""

    def __init__(self):
        self.groups: dict[str, dict] = {}
        self.sessions: dict[tuple[str, str, str], list[dict]] = {}
        self.instances: list[dict] = [
            {"name": "inst-a", "connectionStatus": "open", "ownerJid": "5511000000001@s.whatsapp.net"},
            {"name": "inst-b", "connectionStatus": "close"},
        ]
        self.calls: list[dict] = []
        self.fail_next: tuple[int, dict] | None = None
        # falha toda leitura (GET) enquanto definido
        self.fail_reads: tuple[int, dict] | None = None
        # resposta trocada por método, depois da rota já ter sido aplicada
        self.replies: dict[str, httpx.Response] = {}
        self._seq = 0

    # --- helpers ---
    def mutations(self) -> list[dict]:
        return [c for c in self.calls if c["method"] != "GET"]

    def seed_group(self, name="Sales", alias="sales-01", instances=("inst-a",), **extra) -> dict:
        self._seq += 1
        group = {
            "id": f"grp-{self._seq}",
            "name": name,
            "alias": alias,
            "description": extra.get("description"),
            "enabled": extra.get("enabled", True),
            "instances": list(instances),
            "createdAt": "2026-10-18T12:00:00.000Z",
        }
        self.groups[group["id"]] = group
        return group

    def seed_sessions(self, kind, bot_id, instance, sessions) -> None:
        self.sessions[(kind, bot_id, instance)] = [dict(s) for s in sessions]

    @staticmethod
    def _json(status: int, body) -> httpx.Response:
        return httpx.Response(status, json=body)

    @staticmethod
    def _not_found(message: str) -> httpx.Response:
        return httpx.Response(404, json={"status": 404, "error": "Not Found", "response": {"message": [message]}})

    # --- roteamento ---
    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.calls.append({"method": request.method, "path": path, "json": body, "headers": dict(request.headers)})
        if self.fail_next is not None:
            status, payload = self.fail_next
            self.fail_next = None
            return self._json(status, payload)
        if self.fail_reads is not None and request.method == "GET":
            return self._json(*self.fail_reads)
        response = self._route(request, body)
        return self.replies.get(request.method, response)

    def _route(self, request: httpx.Request, body) -> httpx.Response:
        path = request.url.path
        m = request.method
        if path == "/instance-group":
            if m == "GET":
                return self._json(200, list(self.groups.values()))
            self._seq += 1
            group = {"id": f"grp-{self._seq}", "createdAt": "2026-10-18T12:00:00.000Z", "enabled": True, **body}
            group.setdefault("description", None)
            self.groups[group["id"]] = group
            return self._json(201, group)

        match = re.fullmatch(r"/instance-group/([^/]+)(/instances)?", path)
        if match:
            group = self.groups.get(match.group(1))
            if group is None:
                return self._not_found("Instance group not found")
            if match.group(2):
                name = body["instanceName"]
                if m == "POST":
                    group["instances"].append(name)
                    return self._json(200, {"message": "Instance added to group successfully"})
                if len(group["instances"]) <= 1:
                    return self._json(400, {"status": 400, "error": "Bad Request",
                                            "response": {"message": ["Cannot remove the last instance"]}})
                group["instances"].remove(name)
                return self._json(200, {"message": "Instance removed from group successfully"})
            if m == "GET":
                return self._json(200, group)
            if m == "PUT":
                group.update(body)
                return self._json(200, group)
            del self.groups[group["id"]]
            return self._json(200, {"message": "Instance group deleted successfully"})

        if path == "/message/sendTextWithGroupBalancing":
            group = next((g for g in self.groups.values() if g["alias"] == body["alias"]), None)
            if group is None:
                return self._not_found("Group alias not found")
            return self._json(201, {"message": "Message sent", "instanceUsed": group["instances"][0],
                                    "messageId": "3EB0C767D26A1D"})

        if path == "/instance/fetchInstances":
            return self._json(200, self.instances)

        match = re.fullmatch(r"/([^/]+)/fetchSessions/([^/]+)/([^/]+)", path)
        if match:
            return self._json(200, self.sessions.get(match.groups(), []))

        match = re.fullmatch(r"/([^/]+)/changeStatus/([^/]+)", path)
        if match:
            kind, instance = match.groups()
            for key, items in self.sessions.items():
                if key[0] != kind or key[2] != instance:
                    continue
                for s in list(items):
                    if s["remoteJid"] == body["remoteJid"]:
                        if body["status"] == "delete":
                            items.remove(s)
                        else:
                            s["status"] = body["status"]
                        return self._json(201, {"bot": {"remoteJid": body["remoteJid"], "status": body["status"]}})
            return self._not_found("Session not found")

        return self._not_found(f"route {path}")


@pytest.fixture
def server() -> FakeEvolutionServer:
    return FakeEvolutionServer()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_url="http://evolution.test", api_key="global-key", instances_stale_ms=5_000)


@pytest.fixture
def container(server, settings):
    """Container kink ligado à API falsa."""
    bootstrap_di(settings, transport=httpx.MockTransport(server.handle))
    return di
