from fastapi import APIRouter, Depends, Request

from server_name_picker.common.http import require_bearer
from server_name_picker.proxmox_service.engine import HostnameEngine
from server_name_picker.proxmox_service.models import CheckHostnameRequest, CheckHostnameResponse, Host

router = APIRouter()
authenticated = [Depends(require_bearer)]


def _engine(request: Request) -> HostnameEngine:
    return request.app.state.engine


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/hosts", response_model=list[Host], dependencies=authenticated)
def list_hosts(request: Request) -> list[dict]:
    return _engine(request).list_hosts()


@router.get("/nodes", dependencies=authenticated)
def list_nodes(request: Request) -> list[dict]:
    return _engine(request).list_nodes()


@router.get("/vms", dependencies=authenticated)
def list_vms(request: Request) -> list[dict]:
    return _engine(request).list_vms()


@router.post("/check-hostname", response_model=CheckHostnameResponse, dependencies=authenticated)
def check_hostname(payload: CheckHostnameRequest, request: Request) -> CheckHostnameResponse:
    decision = _engine(request).check(payload.hostname, payload.prefix)
    return CheckHostnameResponse(
        hostname=decision.hostname,
        available=decision.available,
        suggestions=decision.suggestions,
    )
