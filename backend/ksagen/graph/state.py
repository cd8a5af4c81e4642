import operator
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langchain_core.messages import AnyMessage
from langgraph.graph.message import add_messages


class OrchestratorState(TypedDict):
    # Conversation, including tool results fed back to the model
    messages: Annotated[List[AnyMessage], add_messages]

    # Loop accounting
    steps: int
    max_steps: int
    stop_reason: Optional[str]

    # Terminal capability states, in invocation order
    capability_results: Annotated[List[Dict[str, Any]], operator.add]
    final_text: Optional[str]
