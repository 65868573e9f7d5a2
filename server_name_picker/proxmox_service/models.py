from pydantic import BaseModel


class CheckHostnameRequest(BaseModel):
    hostname: str | None = None
    prefix: str | None = None


class CheckHostnameResponse(BaseModel):
    hostname: str
    available: bool
    suggestions: list[str] = []


class Host(BaseModel):
    id: int | str | None = None
    name: str
    node: str | None = None
    status: str | None = None
