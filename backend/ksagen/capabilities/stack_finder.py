from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Tuple

import httpx
from pydantic import BaseModel, Field, field_validator

from ..spec.output_models import StackBreakdown, TechnologySignal
from ..utils.logger import JSONLLogger
from .base import Capability
from .fetching import fetch_markup
from .site_scrape import normalize_url


@dataclass(frozen=True)
class Detector:
    name: str
    category: str
    patterns: Tuple[Pattern[str], ...]
    evidence: str


def _detector(name: str, category: str, patterns: List[str], evidence: str, flags: int = re.IGNORECASE) -> Detector:
    return Detector(name, category, tuple(re.compile(p, flags) for p in patterns), evidence)


# Order matters: the stack buckets and signal list follow this sequence.
DETECTORS: Tuple[Detector, ...] = (
    Detector(
        "Next.js", "frameworks",
        (re.compile(r"__NEXT_DATA__"), re.compile(r"next/static"), re.compile(r"next\.js", re.IGNORECASE)),
        "Found Next.js runtime markers like __NEXT_DATA__.",
    ),
    _detector("React", "frameworks", [r"reactDom", r"react"], "React identifiers present in bundled script."),
    _detector("Vue", "frameworks", [r"vuex", r"vue-router", r"vue\.js"], "Vue-related globals found in source."),
    _detector("Angular", "frameworks", [r"ng-version", r"angular"], "Angular markers such as ng-version detected."),
    _detector("Svelte", "frameworks", [r"svelte\.", r"sveltekit"], "Svelte bundle signatures detected."),
    _detector("Tailwind CSS", "styling", [r"tailwindcss", r"data-theme="], "Tailwind utility classes or config hints present."),
    _detector("Shopify", "ecommerce", [r"cdn\.shopify\.com", r"shopify"], "Shopify CDN assets referenced."),
    _detector("WordPress", "cms", [r"wp-content", r"wordpress"], "WordPress wp-content assets referenced."),
    _detector("Contentful", "cms", [r"contentful"], "Contentful SDK references detected."),
    _detector("Vercel", "hosting", [r"vercel\.app", r"x-vercel-id"], "Vercel deployment identifiers found."),
    _detector("Cloudflare", "hosting", [r"cf-ray", r"cloudflare"], "Cloudflare edge markers detected."),
    _detector("Firebase", "hosting", [r"firebaseio\.com", r"firebase"], "Firebase configuration detected."),
    Detector(
        "TypeScript", "languages",
        (re.compile(r"typescript", re.IGNORECASE), re.compile(r"\.ts\b")),
        "TypeScript references found in bundle.",
    ),
    _detector("GraphQL", "other", [r"graphql", r"apollo"], "GraphQL or Apollo client references detected."),
    _detector("Segment", "analytics", [r"cdn\.segment\.com", r"analytics\.load"], "Segment analytics script present."),
    _detector(
        "Google Analytics", "analytics", [r"gtag\(", r"google-analytics\.com", r"gtm\.js"],
        "Google Analytics / Tag Manager snippet detected.",
    ),
)


def detect_technologies(
    markup: Optional[str],
    detectors: Tuple[Detector, ...] = DETECTORS,
) -> Tuple[StackBreakdown, List[TechnologySignal]]:
    """Pure pattern scan: identical markup always yields the identical report."""
    buckets: Dict[str, List[str]] = {}
    signals: List[TechnologySignal] = []
    normalized = markup or ""

    for detector in detectors:
        if not any(pattern.search(normalized) for pattern in detector.patterns):
            continue
        bucket = buckets.setdefault(detector.category, [])
        if detector.name in bucket:
            continue
        bucket.append(detector.name)
        signals.append(
            TechnologySignal(
                technology=detector.name,
                category=detector.category,
                evidence=detector.evidence,
            )
        )

    return StackBreakdown(**buckets), signals


def summarize_stack(stack: StackBreakdown) -> str:
    parts = [
        f"Frameworks: {', '.join(stack.frameworks)}" if stack.frameworks else None,
        f"CMS: {', '.join(stack.cms)}" if stack.cms else None,
        f"Hosting: {', '.join(stack.hosting)}" if stack.hosting else None,
    ]
    return " • ".join(p for p in parts if p)


class StackFinderInput(BaseModel):
    url: str = Field(description="URL to inspect")
    html: Optional[str] = Field(
        default=None,
        description="Pre-fetched HTML to analyze; if omitted the tool will fetch.",
    )

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return normalize_url(v)


class StackFinderCapability(Capability):
    name = "stack_finder"
    description = (
        "Infer a website's tech stack by inspecting HTML and bundled assets. Accepts a URL and optional HTML."
    )
    input_model = StackFinderInput

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        max_bytes: int = 80_000,
        user_agent: str = "CompanyAnalysisBot/1.0",
        timeout: float = 15.0,
        logger: Optional[JSONLLogger] = None,
    ) -> None:
        super().__init__(logger=logger)
        self.http_client = http_client
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self.timeout = timeout

    async def execute(self, args: StackFinderInput) -> Dict[str, Any]:
        markup = args.html
        if not markup:
            page = await fetch_markup(
                args.url,
                max_bytes=self.max_bytes,
                client=self.http_client,
                user_agent=self.user_agent,
                timeout=self.timeout,
            )
            markup = page.html

        stack, signals = detect_technologies(markup)
        return {
            "url": args.url,
            "stack": stack.model_dump(),
            "signals": [s.model_dump() for s in signals],
            "summary": summarize_stack(stack),
        }
