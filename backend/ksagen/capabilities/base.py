from __future__ import annotations

import asyncio
import time
import traceback
from typing import Any, AsyncIterator, Dict, Optional, Type

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ValidationError

from ..core.results import CapabilityState
from ..utils.logger import JSONLLogger


class CapabilityConfigurationError(RuntimeError):
    """Raised by a capability when a collaborator it needs is not configured."""


class Capability:
    """
    Self-contained unit of work with a declared input model.

    `run` yields `loading` before any work and then exactly one terminal
    state; exceptions raised by `execute` are converted into `failed`.
    """
    name: str = ""
    description: str = ""
    input_model: Type[BaseModel] = BaseModel

    def __init__(self, logger: Optional[JSONLLogger] = None) -> None:
        self.logger = logger

    async def execute(self, args: BaseModel) -> Dict[str, Any]:
        raise NotImplementedError

    def loading_echo(self, raw_args: Dict[str, Any]) -> Dict[str, Any]:
        url = raw_args.get("url") if isinstance(raw_args, dict) else None
        return {"url": url} if url else {}

    async def run(self, raw_args: Dict[str, Any]) -> AsyncIterator[CapabilityState]:
        echo = self.loading_echo(raw_args)
        yield CapabilityState.loading(self.name, **echo)

        start_time = time.time()
        try:
            args = self.input_model.model_validate(raw_args)
        except ValidationError as e:
            state = CapabilityState.failed(self.name, "validation", str(e), **echo)
        else:
            try:
                payload = await self.execute(args)
                state = CapabilityState.ready(self.name, payload)
            except asyncio.CancelledError:
                raise
            except CapabilityConfigurationError as e:
                state = CapabilityState.failed(self.name, "configuration", str(e), **echo)
            except Exception as e:
                print(f"[Error executing capability {self.name}: {e}]")
                if self.logger is not None:
                    self.logger.log_agent_error(
                        agent_name=self.name,
                        error_message=str(e),
                        traceback=traceback.format_exc(),
                    )
                state = CapabilityState.failed(self.name, "execution", str(e) or type(e).__name__, **echo)

        if self.logger is not None:
            self.logger.log_capability(
                capability=self.name,
                args=raw_args,
                state=state.to_dict(),
                elapsed=time.time() - start_time,
            )
        yield state

    async def run_to_completion(self, raw_args: Dict[str, Any]) -> CapabilityState:
        final = None
        async for state in self.run(raw_args):
            final = state
        return final

    def as_tool(self) -> StructuredTool:
        """Expose the input schema to a tool-calling chat model."""
        async def _invoke(**kwargs: Any) -> Dict[str, Any]:
            state = await self.run_to_completion(kwargs)
            return state.to_dict()

        return StructuredTool.from_function(
            coroutine=_invoke,
            name=self.name,
            description=self.description,
            args_schema=self.input_model,
        )
