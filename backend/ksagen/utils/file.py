import json
import os
from typing import Any, Optional

from .logger import JSONLLogger


class ArtifactWriter:
    """Writes completed artifacts (rubrics, compiled contexts) as JSON files under the output directory."""

    def __init__(self, output_dir: str = "output", enabled: bool = True, logger: Optional[JSONLLogger] = None):
        self.output_dir = output_dir
        self.enabled = enabled
        self.logger = logger

    def write(self, run_id: str, name: str, payload: Any) -> Optional[str]:
        if not self.enabled or payload is None:
            return None

        os.makedirs(self.output_dir, exist_ok=True)
        filepath = os.path.join(self.output_dir, f"{name}_{run_id}.json")
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)

        print(f"[ArtifactWriter] Output successfully written to {filepath}")
        if self.logger is not None:
            self.logger.log_event("artifact_written", {"run_id": run_id, "name": name, "path": filepath})
        return filepath
