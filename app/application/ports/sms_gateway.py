from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union


@dataclass(frozen=True)
class DispatchSuccess:
    message_id: Optional[str] = None
    request_id: Optional[str] = None
    raw: Any = None

    ok = True


@dataclass(frozen=True)
class DispatchFailure:
    reason: str
    raw: Any = None

    ok = False


DispatchResult = Union[DispatchSuccess, DispatchFailure]


class SmsGateway(Protocol):
    def send(self, phone: str, text: str) -> DispatchResult:
        """Deliver ``text`` to ``phone``; provider and transport errors come back as DispatchFailure."""
        ...
