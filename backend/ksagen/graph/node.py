import json
import time
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage
from langgraph.types import StreamWriter

from ..capabilities.base import Capability
from ..core.agent import LatencyMonitorCallback
from ..core.results import CapabilityState
from ..streaming.events import ProgressEvent
from ..utils.logger import JSONLLogger
from .state import OrchestratorState


def message_text(message: Any) -> str:
    content = getattr(message, "content", "")
    if isinstance(content, str):
        return content
    parts = [
        part.get("text", "") if isinstance(part, dict) else str(part)
        for part in content or []
    ]
    return "".join(parts)


class DecisionNode:
    """One decision step: the tool-bound model reads the conversation and either calls capabilities or answers."""

    def __init__(
        self,
        name: str,
        llm: BaseChatModel,
        capabilities: Sequence[Capability],
        system_prompt: str,
        logger: Optional[JSONLLogger] = None,
    ):
        self.name = name
        self.system_prompt = system_prompt
        self.logger = logger
        self.llm = llm.bind_tools([c.as_tool() for c in capabilities])

    async def decide(self, state: OrchestratorState) -> Dict[str, Any]:
        step = state["steps"] + 1
        print(f'{"="*60}\n{self.name}: step {step}/{state["max_steps"]}\n{"="*60}')

        callback = LatencyMonitorCallback()
        start_time = time.time()
        response = await self.llm.ainvoke(
            [SystemMessage(content=self.system_prompt), *state["messages"]],
            config={"callbacks": [callback]},
        )
        print(f"\t* Decision took {time.time() - start_time:.2f} seconds")

        tool_calls = getattr(response, "tool_calls", None) or []
        for call in tool_calls:
            print(f'{"-"*60}\nCapability requested: {call["name"]}()\n{"-"*60}')

        if self.logger is not None:
            self.logger.log_agent_invocation(
                agent_name=self.name,
                input_message=message_text(state["messages"][-1]) if state["messages"] else "",
                output_message=message_text(response),
                tool_logs=[{"tool_name": c["name"], "args": c["args"]} for c in tool_calls],
                latency_metrics=callback.metrics,
            )

        return {"messages": [response], "steps": step}


class CapabilityNode:
    """Runs every capability requested by the last decision, in order, and feeds the results back."""

    def __init__(self, capabilities: Sequence[Capability], logger: Optional[JSONLLogger] = None):
        self.capabilities = {c.name: c for c in capabilities}
        self.logger = logger

    async def run_call(self, call: Dict[str, Any], state: OrchestratorState, writer: StreamWriter) -> CapabilityState:
        def emit(capability_state: CapabilityState) -> None:
            writer(ProgressEvent(
                current=state["steps"],
                total=state["max_steps"],
                category=capability_state.capability,
                signal=capability_state.to_dict(),
            ))

        capability = self.capabilities.get(call["name"])
        if capability is None:
            print(f"[Error: Unknown capability requested: {call['name']}]")
            final = CapabilityState.failed(
                call["name"], "unknown_capability", f"No capability named '{call['name']}' is available"
            )
            emit(final)
            return final

        final = None
        async for capability_state in capability.run(call.get("args") or {}):
            emit(capability_state)
            final = capability_state
        return final

    async def invoke(self, state: OrchestratorState, writer: StreamWriter) -> Dict[str, Any]:
        last = state["messages"][-1]
        tool_messages: List[ToolMessage] = []
        results: List[Dict[str, Any]] = []

        for call in getattr(last, "tool_calls", None) or []:
            final = await self.run_call(call, state, writer)
            payload = final.to_dict()
            results.append({"capability": final.capability, **payload})
            tool_messages.append(
                ToolMessage(
                    content=json.dumps(payload, default=str),
                    tool_call_id=call["id"],
                    name=call["name"],
                    status="success" if final.state == "ready" else "error",
                )
            )

        return {"messages": tool_messages, "capability_results": results}


def finalize(state: OrchestratorState) -> Dict[str, Any]:
    last = state["messages"][-1] if state["messages"] else None
    answered = isinstance(last, AIMessage) and not last.tool_calls
    final_text = ""
    for message in reversed(state["messages"]):
        if isinstance(message, AIMessage) and message_text(message).strip():
            final_text = message_text(message).strip()
            break
    return {
        "stop_reason": "completed" if answered else "step_limit",
        "final_text": final_text,
    }
