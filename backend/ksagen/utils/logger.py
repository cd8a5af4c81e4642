import json
import os
import threading
from datetime import datetime, timezone

from typing import Any, Dict, List, Optional


class JSONLLogger:
    """Simple JSONL logger for generation diagnostics."""

    def __init__(self, log_path: str = "logs/generation_runs.jsonl"):
        self.log_path = log_path
        self._lock = threading.Lock()
        self.conversation_log: List[Dict] = []

        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

    def log(self, payload: Dict[str, Any]) -> None:
        """Write a payload as a JSON line with timestamp metadata."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        # JSONL for easier parsing
        serialized = json.dumps(entry, default=self._fallback_serializer)
        with self._lock:
            with open(self.log_path, "a", encoding="utf-8") as log_file:
                log_file.write(serialized + "\n")

    @staticmethod
    def _fallback_serializer(obj: Any) -> Any:
        """Ensure non-serializable objects degrade gracefully."""
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json", by_alias=True)
        try:
            return str(obj)
        except Exception:
            return repr(obj)

    def log_event(self, event_name: str, event_metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log({
            "event": event_name,
            **(event_metadata or {}),
        })

    def log_agent_invocation(
        self,
        agent_name: str,
        input_message: Any,
        output_message: Any,
        tool_logs: Optional[List[dict]] = None,
        latency_metrics: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = {
            "agent_name": agent_name,
            "event": "agent_invocation",
            "input_message": input_message,
            "output_message": output_message,
            "tool_calls": tool_logs or [],
            "latency_metrics": latency_metrics or {},
        }
        self.log(payload=payload)
        with self._lock:
            self.conversation_log.append(payload)

    def log_capability(
        self,
        capability: str,
        args: Dict[str, Any],
        state: Dict[str, Any],
        elapsed: float,
    ) -> None:
        self.log({
            "event": "capability_invocation",
            "capability": capability,
            "args": args,
            "state": state.get("state"),
            "error": state.get("errorText"),
            "elapsed_seconds": round(elapsed, 3),
        })

    def log_agent_error(self, agent_name: str, error_message: str, traceback: Optional[str] = None) -> None:
        payload = {
            "agent_name": agent_name,
            "event": "agent_error",
            "error_message": error_message,
            "traceback": traceback,
        }
        self.log(payload=payload)
        with self._lock:
            self.conversation_log.append(payload)

    def get_conversation_log(self) -> List[Dict[str, Any]]:
        conversation = []
        for message in self.conversation_log:
            content = message.get("output_message")
            if content is None:
                content = message.get("error_message")
            conversation.append({
                "agent_name": message["agent_name"],
                "content": content,
            })
        return conversation
