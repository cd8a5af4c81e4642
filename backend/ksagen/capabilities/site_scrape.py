from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from pydantic import Field, field_validator

from ..spec.output_models import CamelModel
from ..text.chunking import default_chunker, trim_to_token_budget
from ..utils.logger import JSONLLogger
from ..workflows.prompts.system_prompts import PageSummaryPrompt
from .base import Capability
from .extraction import (
    extract_headings,
    extract_key_points,
    extract_links,
    extract_meta,
    extract_readable,
    extract_text,
    parse_html,
    to_meaningful_blob,
    unique_strings,
)
from .fetching import fetch_markup

TEXT_PREVIEW_CHARS = 2_400
SUMMARY_MIN_CHARS = 120
SUMMARY_CHUNK_CHARS = 1_400
SUMMARY_CHUNK_OVERLAP = 120


def normalize_url(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Provide a valid URL to scrape")
    if "://" not in value:
        value = f"https://{value}"
    if not value.lower().startswith(("http://", "https://")):
        raise ValueError(f"Unsupported URL scheme: {value}")
    return value


class SiteScrapeInput(CamelModel):
    url: str = Field(description="Public URL to scrape; https:// is assumed when no scheme is given")
    max_bytes: int = Field(
        default=120_000,
        ge=2_000,
        le=250_000,
        description="Maximum HTML bytes to keep before processing",
    )
    summarize: bool = Field(default=True, description="When true, returns a short summary of extracted text.")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return normalize_url(v)


class SiteScrapeCapability(Capability):
    name = "site_scrape"
    description = (
        "Fetch a public URL, returning metadata, status, and a trimmed text preview for downstream analysis."
    )
    input_model = SiteScrapeInput

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "CompanyAnalysisBot/1.0",
        timeout: float = 15.0,
        summary_token_budget: int = 2_000,
        logger: Optional[JSONLLogger] = None,
    ) -> None:
        super().__init__(logger=logger)
        self.llm = llm
        self.http_client = http_client
        self.user_agent = user_agent
        self.timeout = timeout
        self.summary_token_budget = summary_token_budget

    async def execute(self, args: SiteScrapeInput) -> Dict[str, Any]:
        page = await fetch_markup(
            args.url,
            max_bytes=args.max_bytes,
            client=self.http_client,
            user_agent=self.user_agent,
            timeout=self.timeout,
        )
        html = page.html
        soup = parse_html(html)

        readable = extract_readable(html)
        meta = extract_meta(soup)
        body_text = readable.text if readable else extract_text(html)

        headings = unique_strings(
            [readable.title if readable and readable.title else ""] + extract_headings(soup)
        )
        headings = [h for h in headings if h]
        key_points = extract_key_points(body_text)
        content_blob = to_meaningful_blob(key_points if key_points else [body_text])

        summary = None
        if args.summarize:
            summary = await self.summarize_text(content_blob or body_text)

        content = {
            "headings": headings,
            "keyPoints": key_points,
            "mainText": content_blob,
        }
        if summary:
            content["summary"] = summary

        return {
            "url": args.url,
            "status": page.status,
            "contentType": page.content_type,
            "title": meta["title"],
            "description": meta["description"],
            "textPreview": body_text[:TEXT_PREVIEW_CHARS],
            "content": content,
            "bytesCaptured": page.bytes_captured,
            "links": extract_links(soup, page.url),
        }

    async def summarize_text(self, text: str) -> Optional[str]:
        """Best-effort summary; a failed tokenizer or generation only omits the summary."""
        cleaned = (text or "").strip()
        if self.llm is None or len(cleaned) < SUMMARY_MIN_CHARS:
            return None

        chain = self.llm | StrOutputParser()
        try:
            # tokenizer and splitter are CPU bound, keep them off the event loop
            chunks = await asyncio.to_thread(self.prepare_chunks, cleaned)
            prompt = "\n\n".join(f"Chunk {idx + 1}:\n{chunk}" for idx, chunk in enumerate(chunks))
            summary = await chain.ainvoke([
                SystemMessage(content=PageSummaryPrompt.strip()),
                HumanMessage(content=prompt),
            ])
        except Exception as e:
            print(f"[Warning: site_scrape summary failed: {e}]")
            if self.logger is not None:
                self.logger.log_event("site_scrape_summary_failed", {"error": str(e)})
            return None
        return summary.strip() or None

    def prepare_chunks(self, text: str) -> List[str]:
        trimmed = trim_to_token_budget(text, self.summary_token_budget)
        return default_chunker(trimmed, chunk_size=SUMMARY_CHUNK_CHARS, chunk_overlap=SUMMARY_CHUNK_OVERLAP)
