from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..spec.output_models import CompiledContext, StackBreakdown, TechnologySignal
from .base import Capability

CONTENT_PREVIEW_CHARS = 1_200
MAX_COMPILED_LINKS = 8
HINT_SNIPPET_CHARS = 160
UNTITLED_SITE = "Untitled site"


class CompanyCompilerInput(BaseModel):
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    textPreview: Optional[str] = None
    stack: Optional[StackBreakdown] = None
    signals: Optional[List[TechnologySignal]] = None
    links: Optional[List[str]] = None


def compile_context(
    url: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    text_preview: Optional[str] = None,
    stack: Optional[StackBreakdown] = None,
    signals: Optional[List[TechnologySignal]] = None,
    links: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> CompiledContext:
    text = text_preview or ""
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return CompiledContext(
        url=url,
        title=title or UNTITLED_SITE,
        description=description or "",
        content_preview=text[:CONTENT_PREVIEW_CHARS],
        content_size=len(text),
        stack_breakdown=stack or StackBreakdown(),
        signals=list(signals or []),
        links=list(links or [])[:MAX_COMPILED_LINKS],
        timestamp=timestamp,
    )


def compile_hints(compiled: CompiledContext) -> List[str]:
    hints = []
    if compiled.description:
        hints.append(f"Positioning: {compiled.description}")
    if compiled.stack_breakdown.frameworks:
        hints.append(f"Frameworks: {', '.join(compiled.stack_breakdown.frameworks)}")
    if compiled.stack_breakdown.hosting:
        hints.append(f"Infra: {', '.join(compiled.stack_breakdown.hosting)}")
    if compiled.content_preview:
        hints.append(f"Content snippet: {compiled.content_preview[:HINT_SNIPPET_CHARS]}...")
    return hints


class CompanyCompilerCapability(Capability):
    name = "company_compiler"
    description = (
        "Normalize site scrape and stack detection results into a single compact company record "
        "ready for synthesis."
    )
    input_model = CompanyCompilerInput

    async def execute(self, args: CompanyCompilerInput) -> Dict[str, Any]:
        compiled = compile_context(
            url=args.url,
            title=args.title,
            description=args.description,
            text_preview=args.textPreview,
            stack=args.stack,
            signals=args.signals,
            links=args.links,
        )
        return {
            "compiled": compiled.model_dump(by_alias=True),
            "hints": compile_hints(compiled),
        }
