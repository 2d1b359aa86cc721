from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class RolloutStatus:
    id: str
    image: str
    port: int
    hosts: list[str]
    state: str  # running|done|failed
    message: str
    done_hosts: list[str] = field(default_factory=list)
    failed_host: str | None = None
    started_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory rollout status, for the lifetime of the process."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.rollouts: dict[str, RolloutStatus] = {}

    def upsert_rollout(self, st: RolloutStatus) -> None:
        with self.lock:
            st.updated_at = utc_now()
            self.rollouts[st.id] = st

    def list_rollouts(self) -> list[RolloutStatus]:
        with self.lock:
            return list(self.rollouts.values())
