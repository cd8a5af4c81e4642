from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from pydantic import BaseModel, Field

from ..core.agent import LatencyMonitorCallback
from ..spec.output_models import StackBreakdown, TechnologySignal, WebSearchItem
from ..utils.logger import JSONLLogger
from ..workflows.prompts.system_prompts import CompanySynthesisPrompt
from .base import Capability, CapabilityConfigurationError
from .extraction import unique_strings

MAX_PROMPT_HEADINGS = 6
MAX_PROMPT_SEARCH_RESULTS = 5
MAX_LINKS = 10
MAIN_TEXT_CHARS = 1_200
CLOSING_INSTRUCTION = (
    "Write 5-7 bullet points. Include one bullet called 'Tech stack:' summarizing stack findings."
)


class ScrapedContent(BaseModel):
    headings: List[str] = Field(default_factory=list)
    keyPoints: List[str] = Field(default_factory=list)
    mainText: Optional[str] = None
    summary: Optional[str] = None


class CompanyAnalysisInput(BaseModel):
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[ScrapedContent] = None
    stack: Optional[StackBreakdown] = None
    signals: Optional[List[TechnologySignal]] = None
    links: Optional[List[str]] = None
    searchResults: Optional[List[WebSearchItem]] = None


def content_section(args: CompanyAnalysisInput) -> Optional[str]:
    content = args.content
    if content is not None:
        if content.summary:
            return content.summary
        if content.mainText:
            return content.mainText[:MAIN_TEXT_CHARS]
        if content.keyPoints:
            return "\n".join(content.keyPoints)
    return args.description or None


def build_analysis_prompt(args: CompanyAnalysisInput) -> str:
    sections = [f"URL: {args.url}"]
    if args.title:
        sections.append(f"Title: {args.title}")
    if args.description:
        sections.append(f"Description: {args.description}")
    if args.content and args.content.headings:
        sections.append(f"Headings: {' | '.join(args.content.headings[:MAX_PROMPT_HEADINGS])}")

    text = content_section(args)
    if text:
        sections.append(f"Content:\n{text}")

    if args.stack:
        stack_lines = [
            f"{key}: {', '.join(values)}"
            for key, values in args.stack.model_dump().items()
            if values
        ]
        if stack_lines:
            sections.append("Detected stack:\n" + "\n".join(stack_lines))

    if args.signals:
        sections.append(
            "Signals:\n" + "\n".join(
                f"- {s.technology} ({s.category}): {s.evidence}" for s in args.signals
            )
        )

    if args.searchResults:
        sections.append(
            "Web search:\n" + "\n".join(
                f"- {r.title or r.source or 'Result'} ({r.url}): {r.snippet or ''}".rstrip()
                for r in args.searchResults[:MAX_PROMPT_SEARCH_RESULTS]
            )
        )

    if args.links:
        sections.append("Notable links:\n" + "\n".join(args.links[:MAX_LINKS]))

    sections.append(CLOSING_INSTRUCTION)
    return "\n\n".join(sections)


def collect_sources(args: CompanyAnalysisInput) -> List[str]:
    search_urls = [r.url for r in args.searchResults or [] if r.url]
    return unique_strings(list(args.links or []) + search_urls)


class CompanyAnalysisCapability(Capability):
    name = "company_analysis"
    description = (
        "Synthesize scraped content, detected stack and web search findings into a concise "
        "company summary with a tech stack readout."
    )
    input_model = CompanyAnalysisInput

    def __init__(self, llm: Optional[BaseChatModel] = None, logger: Optional[JSONLLogger] = None) -> None:
        super().__init__(logger=logger)
        self.llm = llm

    async def execute(self, args: CompanyAnalysisInput) -> Dict[str, Any]:
        if self.llm is None:
            raise CapabilityConfigurationError("Synthesis model is not configured")

        latency = LatencyMonitorCallback()
        chain = self.llm | StrOutputParser()
        summary = await chain.ainvoke(
            [
                SystemMessage(content=CompanySynthesisPrompt.strip()),
                HumanMessage(content=build_analysis_prompt(args)),
            ],
            config={"callbacks": [latency]},
        )
        if self.logger is not None:
            self.logger.log_event("company_analysis_latency", latency.get_metrics())

        return {
            "url": args.url,
            "summary": summary.strip(),
            "stack": (args.stack or StackBreakdown()).model_dump(),
            "links": list(args.links or [])[:MAX_LINKS],
            "sources": collect_sources(args),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        }
