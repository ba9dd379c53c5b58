"""API Flask administrativa: grupos de instâncias, envio balanceado, sessões e notificações."""
from __future__ import annotations
import os
from flask import Flask, request, jsonify
from kink import di
from pydantic import ValidationError as SchemaError
from ..core.di import bootstrap_di
from ..core.errors import (
    ManagerError, ValidationError, InvariantViolation, DuplicateMember, InvalidTransition, RemoteError, GroupNotFound,
)
from ..core.logging import set_trace_id, get_logger
from ..core.settings import Settings
from ..domain.services.group_service import GroupService
from ..domain.services.dispatch_service import DispatchService
from ..domain.services.instance_service import InstanceService
from ..domain.services.session_service import SessionService, available_actions, legal_transitions, ACTION_ORDER
from ..ports.interfaces import CreateInstanceGroup, UpdateInstanceGroup, IntegrationSession, SessionScope
from ..tasks.instance_refresher import InstanceRefresher

app = Flask(__name__)
bootstrap_di()
log = get_logger()

STATUS_BY_ERROR = {
    ValidationError: 422,
    InvariantViolation: 409,
    DuplicateMember: 409,
    InvalidTransition: 400,
    GroupNotFound: 404,
}

def _token() -> str | None:
    return request.headers.get("apikey") or None

def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}

def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)

def _scope(integration: str, bot_id: str, instance_name: str) -> SessionScope:
    return SessionScope(integration=integration, bot_id=bot_id, instance_name=instance_name, token=_token())

@app.before_request
def _trace():
    set_trace_id(request.headers.get("X-Trace-Id"))

@app.errorhandler(ManagerError)
def handle_manager_error(exc: ManagerError):
    status = STATUS_BY_ERROR.get(type(exc))
    if status is None and isinstance(exc, RemoteError):
        status = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    log.info("request_failed", kind=exc.kind, status=status or 500)
    return jsonify(exc.to_dict()), status or 500

@app.errorhandler(SchemaError)
def handle_schema_error(exc: SchemaError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())) or None
    return jsonify({"error": ValidationError.kind, "message": first.get("msg", "payload inválido"), "field": field}), 422

@app.get("/healthz")
def healthz():
    """Health check básico."""
    return {"ok": True}

# --- Grupos ---
@app.get("/instance-groups")
def list_groups():
    groups = di[GroupService].list(search=request.args.get("search"), token=_token())
    return jsonify([_dump(g) for g in groups])

@app.post("/instance-groups")
def create_group():
    spec = CreateInstanceGroup.model_validate(_body())
    group = di[GroupService].create(spec, token=_token())
    return jsonify(_dump(group)), 201

@app.get("/instance-groups/<group_id>")
def get_group(group_id: str):
    return jsonify(_dump(di[GroupService].get(group_id, token=_token())))

@app.put("/instance-groups/<group_id>")
def update_group(group_id: str):
    patch = UpdateInstanceGroup.model_validate(_body())
    return jsonify(_dump(di[GroupService].update(group_id, patch, token=_token())))

@app.delete("/instance-groups/<group_id>")
def delete_group(group_id: str):
    return jsonify(_dump(di[GroupService].delete(group_id, token=_token())))

@app.post("/instance-groups/<group_id>/instances")
def add_group_instance(group_id: str):
    ack = di[GroupService].add_instance(group_id, _body().get("instanceName"), token=_token())
    return jsonify(_dump(ack))

@app.delete("/instance-groups/<group_id>/instances")
def remove_group_instance(group_id: str):
    ack = di[GroupService].remove_instance(group_id, _body().get("instanceName"), token=_token())
    return jsonify(_dump(ack))

@app.post("/instance-groups/<alias>/send")
def send_balanced(alias: str):
    """Envia texto pelo alias do grupo.

    Corpo esperado:
    { "number": "5511999999999", "text": "olá", "delay": 1000 }
    """
    body = _body()
    res = di[DispatchService].send(
        alias,
        body.get("number") or "",
        body.get("text") or "",
        delay_ms=body.get("delay"),
        mentions_everyone=bool(body.get("mentionsEveryOne", False)),
        mentioned=body.get("mentioned") or [],
        token=_token(),
    )
    return jsonify(_dump(res))

# --- Instâncias ---
@app.get("/instances")
def list_instances():
    return jsonify([_dump(i) for i in di[InstanceService].list()])

@app.post("/instances/refresh")
def refresh_instances():
    """Equivalente ao foco da janela: relê a listagem imediatamente."""
    items = di[InstanceService].list(force=True)
    return {"ok": True, "count": len(items)}

# --- Sessões de integração ---
@app.get("/sessions/<integration>/<bot_id>/<instance_name>")
def list_sessions(integration: str, bot_id: str, instance_name: str):
    scope = _scope(integration, bot_id, instance_name)
    sessions = di[SessionService].list(scope, force=request.args.get("refresh") == "1")
    return jsonify([_dump(s) | {"actions": [a.value for a in available_actions(s)]} for s in sessions])

@app.get("/sessions/<integration>/<bot_id>/<instance_name>/actions")
def session_actions(integration: str, bot_id: str, instance_name: str):
    status = request.args.get("status", "")
    allowed = legal_transitions(status)
    return {"status": status, "actions": [a.value for a in ACTION_ORDER if a in allowed]}

@app.post("/sessions/<integration>/<bot_id>/<instance_name>/status")
def change_session_status(integration: str, bot_id: str, instance_name: str):
    """Muda status de uma sessão: { "remoteJid": "...", "status": "paused" }."""
    body = _body()
    scope = _scope(integration, bot_id, instance_name)
    svc = di[SessionService]
    remote_jid = body.get("remoteJid")
    session = next((s for s in svc.list(scope) if s.remote_jid == remote_jid), None)
    if session is None:
        return {"error": GroupNotFound.kind, "message": "Sessão não encontrada"}, 404
    ack = svc.transition(scope, session, body.get("status", ""))
    return jsonify(_dump(ack))

# --- Notificações ---
@app.get("/notifications")
def notifications():
    return jsonify(di["notifier"].drain())

def should_start_refresher(s: Settings, environ=os.environ) -> bool:
    """Com debug o reloader do Werkzeug reexecuta o módulo; só o processo filho faz polling."""
    if not s.instances_refresh_enabled:
        return False
    return not s.flask_debug or environ.get("WERKZEUG_RUN_MAIN") == "true"

def main() -> None:
    """Sobe a API e a releitura periódica de instâncias."""
    s = di[Settings]
    refresher = InstanceRefresher()
    if should_start_refresher(s):
        refresher.start()
    try:
        app.run(host=s.host, port=s.port, debug=s.flask_debug)
    finally:
        refresher.stop(timeout=1)

if __name__ == "__main__":
    main()
