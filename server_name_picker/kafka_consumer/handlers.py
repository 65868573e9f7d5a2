"""
Decision functions for the Kafka bridge.

Each takes a decoded message payload and returns the response to publish, or
None when nothing should be published. A request that is malformed or fails
upstream gets no response at all; the requester's own timeout covers it.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from server_name_picker.ipam_service.engine import IpEngine
from server_name_picker.kafka_consumer.models import (
    ActivityEvent,
    HostnameRequest,
    HostnameResponse,
    IpRequest,
    IpResponse,
)
from server_name_picker.proxmox_service.engine import HostnameEngine

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def handle_hostname_request(
    payload: dict,
    engine: HostnameEngine,
    now: Callable[[], str] = utc_now,
) -> HostnameResponse | None:
    try:
        request = HostnameRequest.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid hostname request {payload}: {e}")
        return None

    if not request.hostname:
        logger.error(f"Invalid hostname request: missing hostname: {payload}")
        return None
    if not request.requestId:
        logger.error(f"Invalid hostname request: missing requestId: {payload}")
        return None

    try:
        decision = engine.check(request.hostname, request.prefix)
    except Exception as e:
        logger.exception(f"Hostname request {request.requestId} failed, no response sent: {e}")
        return None

    logger.info(f"Processed hostname request {request.requestId} for {request.hostname}: available={decision.available}")
    return HostnameResponse(
        requestId=request.requestId,
        hostname=request.hostname,
        available=decision.available,
        suggestions=decision.suggestions,
        timestamp=now(),
    )


def handle_ip_request(
    payload: dict,
    engine: IpEngine,
    now: Callable[[], str] = utc_now,
) -> IpResponse | None:
    """Check a given ip, or find the next free one when ip is omitted."""
    try:
        request = IpRequest.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid IP request {payload}: {e}")
        return None

    if request.subnetId is None or request.subnetId == "":
        logger.error(f"Invalid IP request: missing subnetId: {payload}")
        return None
    if not request.requestId:
        logger.error(f"Invalid IP request: missing requestId: {payload}")
        return None

    subnet_id = str(request.subnetId)
    try:
        if request.ip:
            decision = engine.check_ip(request.ip, subnet_id)
        else:
            decision = engine.next_available(subnet_id)
    except Exception as e:
        logger.exception(f"IP request {request.requestId} failed, no response sent: {e}")
        return None

    logger.info(f"Processed IP request {request.requestId} for subnet {subnet_id}: ip={decision.ip} available={decision.available}")
    return IpResponse(
        requestId=request.requestId,
        subnetId=subnet_id,
        ip=decision.ip,
        available=decision.available,
        timestamp=now(),
    )


def handle_user_activity(payload: dict) -> None:
    try:
        event = ActivityEvent.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid user activity event {payload}: {e}")
        return None

    logger.info(f"User activity: {event.action} by {event.userId}")
    return None
