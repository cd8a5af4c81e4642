"""
HTML extraction helpers for the site scrape capability.

Two passes are available for body text: a readability-style pass that scores
paragraph containers and keeps the dominant block, and a regex heuristic used
when no dominant block exists (script-heavy pages, landing pages).
"""
from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..text.chunking import split_sentences

READABLE_MIN_CHARS = 200
PARAGRAPH_MIN_CHARS = 25
NOISE_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "aside", "form", "svg", "iframe"]

MAX_SEGMENTS = 14
MIN_SEGMENT_CHARS = 40
FALLBACK_TEXT_CHARS = 2_400
MAX_HEADINGS = 12
MAX_LINKS = 20
MAX_KEY_POINTS = 12
MAX_BLOB_CHARS = 6_000

SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
COMMENT_RE = re.compile(r"<!--([\s\S]*?)-->")
BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
MAIN_RE = re.compile(r"<main[^>]*>([\s\S]*?)</main>", re.IGNORECASE)
BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
BLOCK_END_RE = re.compile(r"</(p|div|section|article|li|h[1-6]|main)>", re.IGNORECASE)
TAG_RE = re.compile(r"</?[^>]+>")
LETTER_RUN_RE = re.compile(r"[a-zA-Z]{3}")
CSS_BRACES_RE = re.compile(r"[{}]{2,}")
HEADING_TAG_RE = re.compile(r"^h[1-6]$")


@dataclass
class ReadableArticle:
    title: Optional[str]
    text: str


def unique_strings(items: List[str]) -> List[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


# =====================================================================
# READABLE PASS
# =====================================================================

def _link_density(element: Tag) -> float:
    text_length = len(element.get_text(" ", strip=True))
    if text_length == 0:
        return 1.0
    link_length = sum(len(a.get_text(" ", strip=True)) for a in element.find_all("a"))
    return link_length / text_length


def extract_readable(html: str) -> Optional[ReadableArticle]:
    """Keep the container holding most paragraph text; None when nothing dominates."""
    soup = parse_html(html)
    title = soup.title.get_text(strip=True) if soup.title else None

    for tag in soup(NOISE_TAGS):
        tag.decompose()

    candidates: Dict[int, Tuple[Tag, float]] = {}

    def add(element: Optional[Tag], score: float) -> None:
        if element is None or not isinstance(element, Tag):
            return
        current = candidates.get(id(element), (element, 0.0))[1]
        candidates[id(element)] = (element, current + score)

    for paragraph in soup.find_all("p"):
        text = paragraph.get_text(" ", strip=True)
        if len(text) < PARAGRAPH_MIN_CHARS:
            continue
        score = 1 + text.count(",") + min(len(text) // 100, 3)
        add(paragraph.parent, score)
        add(paragraph.parent.parent if paragraph.parent else None, score / 2)

    if not candidates:
        return None

    best, _ = max(
        candidates.values(),
        key=lambda item: item[1] * (1 - _link_density(item[0])),
    )
    paragraphs = [
        p.get_text(" ", strip=True)
        for p in best.find_all("p")
        if len(p.get_text(" ", strip=True)) >= PARAGRAPH_MIN_CHARS
    ]
    text = "\n".join(paragraphs) if paragraphs else best.get_text(" ", strip=True)

    if len(text) < READABLE_MIN_CHARS:
        return None
    return ReadableArticle(title=title or None, text=text.strip())


# =====================================================================
# HEURISTIC PASS
# =====================================================================

def strip_scripts_and_styles(html: str) -> str:
    html = SCRIPT_RE.sub("", html)
    html = STYLE_RE.sub("", html)
    return COMMENT_RE.sub(" ", html)


def get_body_html(html: str) -> str:
    body = BODY_RE.search(html)
    if body and body.group(1):
        return body.group(1)
    main = MAIN_RE.search(html)
    if main and main.group(1):
        return main.group(1)
    return html


def is_meaningful_segment(segment: str) -> bool:
    return (
        len(segment) >= MIN_SEGMENT_CHARS
        and LETTER_RUN_RE.search(segment) is not None
        and CSS_BRACES_RE.search(segment) is None
        and "--tw-" not in segment
    )


def extract_text(html: str) -> str:
    """Sentence-level heuristic extraction from raw markup."""
    body = get_body_html(strip_scripts_and_styles(html or ""))
    with_breaks = BREAK_RE.sub("\n", body)
    with_breaks = BLOCK_END_RE.sub("\n", with_breaks)
    decoded = html_lib.unescape(TAG_RE.sub(" ", with_breaks))

    segments = []
    for line in re.split(r"\n+", decoded):
        for part in split_sentences(line):
            part = re.sub(r"\s+", " ", part).strip()
            if is_meaningful_segment(part):
                segments.append(part)
            if len(segments) >= MAX_SEGMENTS:
                break
        if len(segments) >= MAX_SEGMENTS:
            break

    if segments:
        return " ".join(segments)
    return re.sub(r"\s+", " ", decoded).strip()[:FALLBACK_TEXT_CHARS]


# =====================================================================
# STRUCTURE
# =====================================================================

def extract_meta(soup: BeautifulSoup) -> Dict[str, Optional[str]]:
    title = soup.title.get_text(strip=True) if soup.title else None
    description = None
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            description = meta["content"].strip()
            break
    return {"title": title or None, "description": description}


def extract_headings(soup: BeautifulSoup) -> List[str]:
    headings = [
        tag.get_text(" ", strip=True)
        for tag in soup.find_all(HEADING_TAG_RE)
    ]
    return unique_strings([h for h in headings if h])[:MAX_HEADINGS]


def extract_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    links = []
    for element in soup.find_all(href=True):
        href = element["href"].strip()
        if not href or href == "#" or href.startswith("mailto:"):
            continue
        absolute = urljoin(base_url, href)
        if re.match(r"^https?://", absolute, re.IGNORECASE):
            links.append(absolute)
    return unique_strings(links)[:MAX_LINKS]


def extract_key_points(text: str) -> List[str]:
    return [s for s in split_sentences(text) if len(s) > MIN_SEGMENT_CHARS][:MAX_KEY_POINTS]


def to_meaningful_blob(segments: List[str]) -> str:
    if not segments:
        return ""
    return "\n".join(unique_strings(segments))[:MAX_BLOB_CHARS]
