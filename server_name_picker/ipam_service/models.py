from pydantic import BaseModel


class CheckIpRequest(BaseModel):
    ip: str | None = None
    subnetId: str | int | None = None


class NextAvailableRequest(BaseModel):
    subnetId: str | int | None = None


class CheckIpResponse(BaseModel):
    ip: str
    subnetId: str
    available: bool


class NextAvailableResponse(BaseModel):
    ip: str
    subnetId: str


class Subnet(BaseModel):
    id: str
    cidr: str | None = None
    description: str = ""
