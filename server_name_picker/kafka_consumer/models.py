from pydantic import BaseModel


class HostnameRequest(BaseModel):
    requestId: str | None = None
    hostname: str | None = None
    prefix: str | None = None


class HostnameResponse(BaseModel):
    requestId: str
    hostname: str
    available: bool
    suggestions: list[str] = []
    timestamp: str


class IpRequest(BaseModel):
    requestId: str | None = None
    subnetId: str | int | None = None
    ip: str | None = None


class IpResponse(BaseModel):
    requestId: str
    subnetId: str
    ip: str
    available: bool
    timestamp: str


class ActivityEvent(BaseModel):
    action: str  # "login" or "logout"
    userId: str
    timestamp: str | None = None
