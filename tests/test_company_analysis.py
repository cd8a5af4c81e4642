"""Tests for the synthesizer and web search capabilities."""

import pytest
from langchain_core.messages import AIMessage

from ksagen.capabilities.company_analysis import (
    CLOSING_INSTRUCTION,
    CompanyAnalysisCapability,
    CompanyAnalysisInput,
    build_analysis_prompt,
    collect_sources,
)
from ksagen.capabilities.web_search import WebSearchCapability, normalize_results

from conftest import ScriptedChatModel

ANALYSIS_ARGS = {
    "url": "https://acme.test",
    "title": "Acme Robotics",
    "description": "Warehouse robots",
    "content": {
        "headings": [f"H{i}" for i in range(8)],
        "keyPoints": ["Point one is here."],
        "mainText": "Main text body",
    },
    "stack": {"frameworks": ["Next.js"], "hosting": ["Vercel"]},
    "signals": [{"technology": "Next.js", "category": "frameworks", "evidence": "__NEXT_DATA__"}],
    "links": [f"https://acme.test/{i}" for i in range(12)],
    "searchResults": [
        {"title": "Acme raises Series A", "url": "https://news.test/acme", "snippet": "Funding news"},
        {"title": "Duplicate link", "url": "https://acme.test/0", "snippet": "Same page"},
    ],
}


class TestBuildAnalysisPrompt:

    def test_sections_in_order(self):
        prompt = build_analysis_prompt(CompanyAnalysisInput.model_validate(ANALYSIS_ARGS))

        assert prompt.startswith("URL: https://acme.test")
        assert "Headings: H0 | H1 | H2 | H3 | H4 | H5\n" in prompt + "\n"
        assert "Content:\nMain text body" in prompt
        assert "Detected stack:\nframeworks: Next.js\nhosting: Vercel" in prompt
        assert "- Next.js (frameworks): __NEXT_DATA__" in prompt
        assert "- Acme raises Series A (https://news.test/acme): Funding news" in prompt
        assert "https://acme.test/9" in prompt
        assert "https://acme.test/10" not in prompt
        assert prompt.endswith(CLOSING_INSTRUCTION)

    def test_summary_preferred_over_main_text(self):
        args = dict(ANALYSIS_ARGS, content={"summary": "Short summary", "mainText": "Long text"})
        prompt = build_analysis_prompt(CompanyAnalysisInput.model_validate(args))

        assert "Content:\nShort summary" in prompt
        assert "Long text" not in prompt

    def test_description_used_when_no_content(self):
        prompt = build_analysis_prompt(CompanyAnalysisInput(url="https://acme.test", description="Robots"))
        assert "Content:\nRobots" in prompt

    def test_sources_are_unique_links_plus_search_urls(self):
        sources = collect_sources(CompanyAnalysisInput.model_validate(ANALYSIS_ARGS))

        assert sources[:12] == ANALYSIS_ARGS["links"]
        assert sources[12:] == ["https://news.test/acme"]


class TestCompanyAnalysisCapability:

    @pytest.mark.asyncio
    async def test_ready_payload(self):
        llm = ScriptedChatModel(responses=[AIMessage(content="- Makes robots\n- Tech stack: Next.js on Vercel ")])
        final = await CompanyAnalysisCapability(llm=llm).run_to_completion(ANALYSIS_ARGS)

        payload = final.to_dict()
        assert payload["state"] == "ready"
        assert payload["summary"] == "- Makes robots\n- Tech stack: Next.js on Vercel"
        assert payload["stack"]["frameworks"] == ["Next.js"]
        assert len(payload["links"]) == 10
        assert "https://news.test/acme" in payload["sources"]
        assert payload["generatedAt"]
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_model_is_configuration_failure(self):
        final = await CompanyAnalysisCapability(llm=None).run_to_completion({"url": "https://acme.test"})

        assert final.state == "failed"
        assert final.to_dict()["errorKind"] == "configuration"


class TestWebSearch:

    def test_source_defaults_to_host_and_limit_applies(self):
        parsed = {"results": [
            {"title": "A", "url": "https://www.acme.test/about", "snippet": "About"},
            {"title": "B", "url": "https://news.test/b", "source": "News"},
            {"title": "C", "url": "https://c.test"},
        ]}
        results = normalize_results(parsed, limit=2)

        assert len(results) == 2
        assert results[0]["source"] == "www.acme.test"
        assert results[1]["source"] == "News"

    def test_bare_list_is_accepted(self):
        assert normalize_results([{"url": "https://acme.test"}], limit=5)[0]["source"] == "acme.test"

    @pytest.mark.asyncio
    async def test_ready_payload(self):
        llm = ScriptedChatModel(responses=[AIMessage(
            content='```json\n{"results": [{"title": "Acme", "url": "https://acme.test", "snippet": "Robots"}]}\n```'
        )])
        final = await WebSearchCapability(llm=llm).run_to_completion({"query": "Acme Robotics acme.test"})

        payload = final.to_dict()
        assert payload["state"] == "ready"
        assert payload["results"] == [
            {"title": "Acme", "url": "https://acme.test", "snippet": "Robots", "source": "acme.test"}
        ]

    @pytest.mark.asyncio
    async def test_missing_credentials_is_configuration_failure(self):
        states = [s async for s in WebSearchCapability(llm=None).run({"query": "acme"})]

        assert states[0].to_dict() == {"state": "loading", "query": "acme"}
        assert states[-1].to_dict()["errorKind"] == "configuration"

    @pytest.mark.asyncio
    async def test_limit_out_of_range_is_validation_failure(self):
        final = await WebSearchCapability(llm=None).run_to_completion({"query": "acme", "limit": 50})
        assert final.to_dict()["errorKind"] == "validation"
