"""Máquina de estados das sessões de integração."""
from __future__ import annotations

import pytest

from evolution_manager.core.cache import QueryCache
from evolution_manager.core.errors import InvalidTransition, RemoteError
from evolution_manager.domain.services.session_service import (
    SessionService, available_actions, legal_transitions,
)
from evolution_manager.ports.interfaces import IntegrationKind, IntegrationSession, SessionAction, SessionScope

O, P, C, D = SessionAction.OPENED, SessionAction.PAUSED, SessionAction.CLOSED, SessionAction.DELETE

TABLE = {
    "opened": {O: False, P: True, C: True, D: True},
    "paused": {O: True, P: False, C: True, D: True},
    "closed": {O: True, P: False, C: False, D: True},
}


@pytest.mark.parametrize("current, target", [(c, t) for c in TABLE for t in (O, P, C, D)])
def test_transition_table(current, target):
    assert (target in legal_transitions(current)) is TABLE[current][target]


def test_unknown_status_offers_everything():
    assert legal_transitions("error") == frozenset({O, P, C, D})


def test_available_actions_keep_menu_order():
    session = IntegrationSession(remoteJid="551199@s.whatsapp.net", status="paused")

    assert available_actions(session) == [O, C, D]


@pytest.fixture
def scope() -> SessionScope:
    return SessionScope(integration=IntegrationKind.N8N, bot_id="bot-1", instance_name="inst-a", token="inst-token")


@pytest.fixture
def svc(container, server) -> SessionService:
    server.seed_sessions("n8n", "bot-1", "inst-a", [
        {"id": "s1", "remoteJid": "5511999999999@s.whatsapp.net", "sessionId": "abc", "pushName": "Ana",
         "status": "closed", "botId": "bot-1"},
        {"id": "s2", "remoteJid": "5511888888888@s.whatsapp.net", "sessionId": "def", "pushName": "Bia",
         "status": "opened", "botId": "bot-1"},
    ])
    return container[SessionService]


def test_closed_session_cannot_be_paused(svc, server, scope):
    closed = svc.list(scope)[0]
    before = len(server.calls)

    with pytest.raises(InvalidTransition):
        svc.transition(scope, closed, "paused")

    assert len(server.calls) == before


def test_unknown_target_is_invalid_transition(svc, scope):
    with pytest.raises(InvalidTransition):
        svc.transition(scope, svc.list(scope)[0], "archived")


def test_delete_removes_session_from_next_list(svc, server, scope, container):
    closed = svc.list(scope)[0]

    svc.transition(scope, closed, SessionAction.DELETE)

    assert [s.remote_jid for s in svc.list(scope)] == ["5511888888888@s.whatsapp.net"]
    change = next(c for c in server.calls if c["method"] == "POST")
    assert change["path"] == "/n8n/changeStatus/inst-a"
    assert change["json"] == {"remoteJid": "5511999999999@s.whatsapp.net", "status": "delete"}
    assert change["headers"]["apikey"] == "inst-token"
    assert container["notifier"].recent()[-1]["level"] == "success"


def test_transition_refreshes_session_list(svc, server, scope):
    opened = svc.list(scope)[1]

    svc.transition(scope, opened, "paused")

    assert svc.list(scope)[1].status == "paused"
    assert [c["method"] for c in server.calls] == ["GET", "POST", "GET"]


def test_failed_transition_leaves_state_unchanged(svc, server, scope, container):
    opened = svc.list(scope)[1]
    server.fail_next = (400, {"status": 400, "error": "Bad Request", "response": {"message": "Session not found"}})

    with pytest.raises(RemoteError):
        svc.transition(scope, opened, "closed")

    assert svc.list(scope)[1].status == "opened"
    assert len(server.calls) == 2
    last = container["notifier"].recent()[-1]
    assert (last["level"], last["message"]) == ("error", "Session not found")


def test_other_integrations_use_their_own_routes(container, server):
    server.seed_sessions("typebot", "tb-9", "inst-b", [{"remoteJid": "1@s.whatsapp.net", "status": "paused"}])
    scope = SessionScope(integration="typebot", bot_id="tb-9", instance_name="inst-b")

    sessions = container[SessionService].list(scope)

    assert sessions[0].status == "paused"
    assert server.calls[0]["path"] == "/typebot/fetchSessions/tb-9/inst-b"


def test_failed_reread_after_applied_transition_returns_ack(svc, server, scope, container):
    opened = svc.list(scope)[1]
    server.fail_reads = (500, {"message": "list down"})

    ack = svc.transition(scope, opened, "paused")

    assert ack.message == ""
    assert server.sessions[("n8n", "bot-1", "inst-a")][1]["status"] == "paused"
    assert [n["level"] for n in container["notifier"].recent()] == ["success"]
    server.fail_reads = None
    assert svc.list(scope)[1].status == "paused"


def test_session_cache_is_scoped_by_token(svc, server, scope, container):
    other = scope.model_copy(update={"token": "other-token"})

    svc.list(scope)
    svc.list(other)

    keys = [k for k in container[QueryCache].keys() if k[0] == "sessions"]
    assert len(keys) == 2
    assert [c["headers"]["apikey"] for c in server.calls] == ["inst-token", "other-token"]


def test_transition_invalidates_only_its_token_scope(svc, server, scope, container):
    other = scope.model_copy(update={"token": "other-token"})
    svc.list(other)
    opened = svc.list(scope)[1]

    svc.transition(scope, opened, "closed")

    assert svc.list(other)[1].status == "opened"
    assert svc.list(scope)[1].status == "closed"
