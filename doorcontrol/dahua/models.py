from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .errors import DahuaError

FieldValue = Union[int, str]


@dataclass(frozen=True)
class DeviceCredentials:
    """Endpoint address and login of one device, passed per call."""
    host: str
    username: str
    password: str

    def missing_fields(self) -> List[str]:
        return [
            name
            for name in ("host", "username", "password")
            if not (getattr(self, name) or "").strip()
        ]

    def __repr__(self):
        return f"DeviceCredentials(host={self.host!r}, username={self.username!r}, password='***')"


@dataclass(frozen=True)
class Challenge:
    """Parsed WWW-Authenticate Digest challenge."""
    realm: str
    nonce: str
    qop: Optional[str] = None
    opaque: Optional[str] = None
    algorithm: str = "MD5"


@dataclass(frozen=True)
class DeviceResponse:
    """HTTP response with its body already read."""
    status: int
    body: bytes = b""
    content_type: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    challenges: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode(errors="ignore")


@dataclass
class AccessRecord:
    index: int
    fields: Dict[str, FieldValue] = field(default_factory=dict)

    def to_dict(self):
        return {"index": self.index, "fields": dict(self.fields)}


@dataclass
class OperationResult:
    """Uniform outcome of every device operation."""
    success: bool
    status: int
    message: str
    body: Union[bytes, str] = b""
    content_type: Optional[str] = None
    events: Optional[List[AccessRecord]] = None
    error: Optional[DahuaError] = None

    @classmethod
    def from_response(cls, response: DeviceResponse, message=None):
        return cls(
            success=response.ok,
            status=response.status,
            message=message or ("ok" if response.ok else "failed"),
            body=response.body,
            content_type=response.content_type,
        )

    @classmethod
    def from_error(cls, error: DahuaError):
        return cls(
            success=False,
            status=error.status,
            message=error.message,
            body=error.body,
            error=error,
        )

    @property
    def text(self) -> str:
        if isinstance(self.body, bytes):
            return self.body.decode(errors="ignore")
        return self.body

    def to_dict(self):
        """Collaborator-facing mapping; binary bodies are left out."""
        data = {
            "success": self.success,
            "status": self.status,
            "message": self.message,
            "body": self.body if isinstance(self.body, str) else None,
        }
        if self.content_type:
            data["content_type"] = self.content_type
        if self.events is not None:
            data["events"] = [record.to_dict() for record in self.events]
        return data
