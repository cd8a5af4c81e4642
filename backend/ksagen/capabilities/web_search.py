from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from ..spec.output_models import WebSearchItem, WebSearchResults
from ..utils.logger import JSONLLogger
from ..workflows.prompts.system_prompts import WebSearchPrompt
from .base import Capability, CapabilityConfigurationError


class WebSearchInput(BaseModel):
    query: str = Field(min_length=1, description="Search query text")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum number of results to return")


def host_of(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname or None
    except ValueError:
        return None


def normalize_results(parsed: Any, limit: int) -> List[Dict[str, Any]]:
    if isinstance(parsed, list):
        parsed = {"results": parsed}
    results = WebSearchResults.model_validate(parsed or {}).results[:limit]

    normalized = []
    for item in results:
        item = WebSearchItem(
            title=item.title,
            url=item.url,
            snippet=item.snippet,
            source=item.source or host_of(item.url),
        )
        normalized.append(item.model_dump())
    return normalized


class WebSearchCapability(Capability):
    name = "web_search"
    description = (
        "Search the web for recent, relevant information about a company or topic. "
        "Returns a list of results with title, url, snippet and source."
    )
    input_model = WebSearchInput

    def __init__(self, llm: Optional[BaseChatModel] = None, logger: Optional[JSONLLogger] = None) -> None:
        super().__init__(logger=logger)
        self.llm = llm

    def loading_echo(self, raw_args: Dict[str, Any]) -> Dict[str, Any]:
        query = raw_args.get("query") if isinstance(raw_args, dict) else None
        return {"query": query} if query else {}

    async def execute(self, args: WebSearchInput) -> Dict[str, Any]:
        if self.llm is None:
            raise CapabilityConfigurationError("Search model is not configured (PERPLEXITY_API_KEY missing)")

        prompt = ChatPromptTemplate.from_messages([
            ("system", WebSearchPrompt.strip()),
            ("human", "Query: {query}\nReturn up to {limit} high-quality results as JSON."),
        ])
        chain = prompt | self.llm | JsonOutputParser()
        parsed = await chain.ainvoke({"query": args.query, "limit": args.limit})

        return {
            "query": args.query,
            "results": normalize_results(parsed, args.limit),
        }
