import json
from dataclasses import dataclass

DEFAULT_TIMEOUT = 20.0
DEFAULT_FALLBACK_ATTEMPTS = 1


@dataclass(frozen=True)
class DeviceClientConfig:
    timeout: float = DEFAULT_TIMEOUT
    fallback_attempts: int = DEFAULT_FALLBACK_ATTEMPTS
    scheme: str = "http"

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.fallback_attempts < 0:
            raise ValueError("fallback_attempts must not be negative")
        if self.scheme not in ("http", "https"):
            raise ValueError(f"Unsupported scheme: {self.scheme}")

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            fallback_attempts=int(data.get("fallback_attempts", DEFAULT_FALLBACK_ATTEMPTS)),
            scheme=data.get("scheme", "http"),
        )

    def get_config(self):
        """Return the configuration as a dictionary."""
        return {
            "timeout": self.timeout,
            "fallback_attempts": self.fallback_attempts,
            "scheme": self.scheme,
        }


def load_settings(path="settings.json"):
    with open(path) as f:
        return json.load(f)
