import json
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..capabilities.company_compiler import compile_context
from ..spec.output_models import ScaffoldRubric, StackBreakdown, TechnologySignal
from .state import OrchestratorState

FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$")


def last_ready(results: List[Dict[str, Any]], capability: str) -> Optional[Dict[str, Any]]:
    for result in reversed(results):
        if result.get("capability") == capability and result.get("state") == "ready":
            return result
    return None


def company_research_outcome(state: OrchestratorState) -> Dict[str, Any]:
    """
    The last compiled context of the run. When the model never called the
    compiler, one is compiled from the last scrape and stack readings.
    """
    results = state.get("capability_results", [])
    compiled = last_ready(results, "company_compiler")
    if compiled is not None:
        return {"compiled": compiled.get("compiled")}

    scrape = last_ready(results, "site_scrape")
    if scrape is None:
        return {"compiled": None}

    stack = last_ready(results, "stack_finder") or {}
    context = compile_context(
        url=scrape.get("url"),
        title=scrape.get("title"),
        description=scrape.get("description"),
        text_preview=scrape.get("textPreview"),
        stack=StackBreakdown(**stack["stack"]) if stack.get("stack") else None,
        signals=[TechnologySignal(**s) for s in stack.get("signals", [])],
        links=scrape.get("links"),
    )
    return {"compiled": context.model_dump(by_alias=True)}


def parse_rubric_text(text: str) -> Tuple[Optional[Dict[str, Any]], bool]:
    """Parse the scaffold loop's final answer; (None, False) when it is not a rubric."""
    cleaned = (text or "").strip()
    fenced = FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)
    try:
        parsed = json.loads(cleaned)
        rubric = ScaffoldRubric.model_validate(parsed)
    except (json.JSONDecodeError, ValidationError):
        return None, False
    return rubric.model_dump(), True


def rubric_scaffold_outcome(state: OrchestratorState) -> Dict[str, Any]:
    rubric, valid = parse_rubric_text(state.get("final_text") or "")
    return {"rubric": rubric, "rubricValid": valid}
