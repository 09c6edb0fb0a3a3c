from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

_MILLISECOND_THRESHOLD = 1e11


def parse_timestamp(value) -> float:
    """Normalize a wire expiry (epoch s, epoch ms or ISO-8601) to epoch seconds."""
    if isinstance(value, bool):
        raise RuntimeError("Timestamp must be a number or ISO-8601 string.")
    if isinstance(value, (int, float)):
        seconds = float(value)
        if seconds > _MILLISECOND_THRESHOLD:
            seconds /= 1000.0
        return seconds
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as error:
            raise RuntimeError(f"Invalid timestamp: {value!r}") from error
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    raise RuntimeError("Timestamp must be a number or ISO-8601 string.")


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token: str
    expires_at: float

    def is_expired(self, *, now: float | None = None, skew_seconds: float = 0.0) -> bool:
        current = time.time() if now is None else now
        return current + skew_seconds >= self.expires_at

    def to_payload(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "Credential":
        return cls(
            access_token=str(payload["access_token"]),
            refresh_token=str(payload.get("refresh_token") or ""),
            expires_at=float(payload["expires_at"]),
        )


@dataclass(frozen=True)
class ProfileInfo:
    name: str
    hosts: list[str] = field(default_factory=list)
    port: int = 9042
    keyspace: str = ""
    ssl_enabled: bool = False

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "hosts": list(self.hosts),
            "port": self.port,
            "keyspace": self.keyspace,
            "sslEnabled": self.ssl_enabled,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "ProfileInfo":
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise RuntimeError("Profile is missing a name.")
        hosts = payload.get("hosts") or []
        if not isinstance(hosts, list):
            raise RuntimeError(f"Profile {name!r} hosts must be a list.")
        return cls(
            name=name,
            hosts=[str(host) for host in hosts],
            port=int(payload.get("port", 9042)),
            keyspace=str(payload.get("keyspace", "")),
            ssl_enabled=bool(payload.get("sslEnabled", False)),
        )


@dataclass(frozen=True)
class LoginResult:
    credential: Credential
    profile: ProfileInfo | None


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_at: float
    refresh_token: str | None = None
