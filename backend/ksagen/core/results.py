from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Union

StateName = Literal["loading", "ready", "failed"]


@dataclass(frozen=True)
class Ok:
    payload: Dict[str, Any]


@dataclass(frozen=True)
class Err:
    kind: str
    message: str


Result = Union[Ok, Err]


@dataclass(frozen=True)
class CapabilityState:
    """
    One observable state of a capability invocation.
    `loading` carries an echo of the request, terminal states carry a Result.
    """
    capability: str
    state: StateName
    echo: Dict[str, Any] = field(default_factory=dict)
    result: Optional[Result] = None

    @classmethod
    def loading(cls, capability: str, **echo: Any) -> "CapabilityState":
        return cls(capability=capability, state="loading", echo=echo)

    @classmethod
    def ready(cls, capability: str, payload: Dict[str, Any]) -> "CapabilityState":
        return cls(capability=capability, state="ready", result=Ok(payload))

    @classmethod
    def failed(cls, capability: str, kind: str, message: str, **echo: Any) -> "CapabilityState":
        return cls(capability=capability, state="failed", echo=echo, result=Err(kind, message))

    @property
    def terminal(self) -> bool:
        return self.state != "loading"

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.result, Ok):
            return {"state": self.state, **self.result.payload}
        if isinstance(self.result, Err):
            return {
                "state": self.state,
                **self.echo,
                "errorKind": self.result.kind,
                "errorText": self.result.message,
            }
        return {"state": self.state, **self.echo}
