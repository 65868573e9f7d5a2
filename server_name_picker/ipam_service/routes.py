from fastapi import APIRouter, Depends, Request

from server_name_picker.common.http import require_bearer
from server_name_picker.ipam_service.engine import IpEngine
from server_name_picker.ipam_service.models import (
    CheckIpRequest,
    CheckIpResponse,
    NextAvailableRequest,
    NextAvailableResponse,
    Subnet,
)

router = APIRouter()
authenticated = [Depends(require_bearer)]


def _engine(request: Request) -> IpEngine:
    return request.app.state.engine


def _subnet_id(value: str | int | None) -> str | None:
    return None if value is None else str(value)


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/subnets", response_model=list[Subnet], dependencies=authenticated)
def list_subnets(request: Request) -> list[dict]:
    return _engine(request).list_subnets()


@router.get("/subnet/{subnet_id}", dependencies=authenticated)
def get_subnet(subnet_id: str, request: Request) -> dict:
    return _engine(request).get_subnet(subnet_id)


@router.get("/addresses", dependencies=authenticated)
def list_addresses(request: Request) -> list[dict]:
    return _engine(request).list_addresses()


@router.post("/check-ip", response_model=CheckIpResponse, dependencies=authenticated)
def check_ip(payload: CheckIpRequest, request: Request) -> CheckIpResponse:
    decision = _engine(request).check_ip(payload.ip, _subnet_id(payload.subnetId))
    return CheckIpResponse(ip=decision.ip, subnetId=decision.subnet_id, available=decision.available)


@router.post("/next-available", response_model=NextAvailableResponse, dependencies=authenticated)
def next_available(payload: NextAvailableRequest, request: Request) -> NextAvailableResponse:
    decision = _engine(request).next_available(_subnet_id(payload.subnetId))
    return NextAvailableResponse(ip=decision.ip, subnetId=decision.subnet_id)
