# Assembles the decide / invoke / finalize loop and exposes it as an event stream

import time
import uuid
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, StateGraph

from ..capabilities.base import Capability
from ..streaming.events import CompleteEvent, ProgressEvent, StreamEvent
from ..utils.logger import JSONLLogger
from .node import CapabilityNode, DecisionNode, finalize
from .state import OrchestratorState

ResultBuilder = Callable[[OrchestratorState], Dict[str, Any]]


def route_decision(state: OrchestratorState) -> str:
    """No capability call means the loop terminates."""
    last = state["messages"][-1]
    return "invoke" if getattr(last, "tool_calls", None) else "finalize"


def route_after_invoke(state: OrchestratorState) -> str:
    return "finalize" if state["steps"] >= state["max_steps"] else "decide"


class OrchestratorGraph:
    """
    Bounded tool-calling loop over a fixed capability set.

    - `decide` asks the model for the next move; `invoke` runs the requested
      capabilities; `finalize` records why the loop stopped.
    - The step ceiling counts decisions. Reaching it ends the loop with the
      partial output and `stopReason="step_limit"`.
    - Capability states are streamed as progress events while the loop runs.
    """
    def __init__(
        self,
        name: str,
        llm: BaseChatModel,
        capabilities: Sequence[Capability],
        system_prompt: str,
        max_steps: int,
        logger: Optional[JSONLLogger] = None,
        result_builder: Optional[ResultBuilder] = None,
    ):
        if max_steps <= 0:
            raise ValueError("max_steps must be positive")

        self.name = name
        self.max_steps = max_steps
        self.logger = logger
        self.capabilities = list(capabilities)
        self.result_builder = result_builder

        self.decision_node = DecisionNode(name, llm, self.capabilities, system_prompt, logger)
        self.capability_node = CapabilityNode(self.capabilities, logger)

        graph = StateGraph(OrchestratorState)
        graph.add_node("decide", self.decision_node.decide)
        graph.add_node("invoke", self.capability_node.invoke)
        graph.add_node("finalize", finalize)

        graph.set_entry_point("decide")
        graph.add_conditional_edges("decide", route_decision, {"invoke": "invoke", "finalize": "finalize"})
        graph.add_conditional_edges("invoke", route_after_invoke, {"decide": "decide", "finalize": "finalize"})
        graph.add_edge("finalize", END)

        self.graph = graph.compile(checkpointer=MemorySaver())

    def initial_state(self, messages: List[BaseMessage]) -> OrchestratorState:
        return {
            "messages": list(messages),
            "steps": 0,
            "max_steps": self.max_steps,
            "stop_reason": None,
            "capability_results": [],
            "final_text": None,
        }

    def build_result(self, state: OrchestratorState) -> Dict[str, Any]:
        result = {
            "text": state.get("final_text") or "",
            "steps": state["steps"],
            "stopReason": state.get("stop_reason"),
            "capabilities": state.get("capability_results", []),
        }
        if self.result_builder is not None:
            result.update(self.result_builder(state))
        return result

    async def stream(self, messages: List[BaseMessage], run_id: Optional[str] = None) -> AsyncIterator[StreamEvent]:
        start_time = time.time()
        config = {
            "configurable": {"thread_id": run_id or str(uuid.uuid4())},
            # decide + invoke per step, plus entry and finalize
            "recursion_limit": self.max_steps * 2 + 4,
        }

        final_state: Optional[OrchestratorState] = None
        async for mode, chunk in self.graph.astream(
            self.initial_state(messages),
            config=config,
            stream_mode=["custom", "values"],
        ):
            if mode == "custom" and isinstance(chunk, ProgressEvent):
                yield chunk
            elif mode == "values":
                final_state = chunk

        result = self.build_result(final_state)
        print(f"\t* {self.name} finished after {result['steps']} step(s): {result['stopReason']}")
        if self.logger is not None:
            self.logger.log_event("loop_complete", {
                "loop": self.name,
                "steps": result["steps"],
                "stop_reason": result["stopReason"],
            })

        yield CompleteEvent(result=result, duration=int((time.time() - start_time) * 1000))
