"""Tests for the progressive attribute generator."""

import json

import pytest

from ksagen.spec.request_models import AttributeRequest
from ksagen.streaming.events import CompleteEvent, ProgressEvent
from ksagen.streaming.protocol import event_stream
from ksagen.workflows.attributes import (
    AttributeStreamGenerator,
    GenerationError,
    draft_to_attribute,
    value_attribute,
)

from conftest import FakeAttributeAgent, make_draft

REQUEST_WITH_VALUES = {
    "context": {
        "industry": "Logistics",
        "stage": "Series A",
        "techStack": ["Python", "PostgreSQL"],
        "culture": {"values": ["Ownership", {"name": "Curiosity", "description": "Ask why"}]},
    },
    "role": {
        "title": "Backend Engineer",
        "jobLevel": "Senior",
        "responsibilities": ["Design APIs"],
    },
}

REQUEST_WITHOUT_VALUES = {"context": {"industry": "Retail"}, "role": {"title": "Data Analyst"}}


async def collect(generator, payload):
    return [event async for event in generator.stream(AttributeRequest.model_validate(payload))]


class TestConversions:

    def test_draft_weight_is_clamped(self):
        assert draft_to_attribute(make_draft("Heavy", weight=40), "SKILL", 1).weight == 25
        assert draft_to_attribute(make_draft("Light", weight=5), "SKILL", 1).weight == 10

    def test_draft_styling_follows_category(self):
        attribute = draft_to_attribute(make_draft("Systems Design"), "KNOWLEDGE", 3)

        assert attribute.id == "attr-3"
        assert attribute.icon == "BookOpen"
        assert attribute.color == "#3B82F6"
        assert len(attribute.sub_attributes) == 3

    def test_value_attribute(self):
        attribute = value_attribute(0, "Ownership", 7.5)

        assert attribute.id == "value-0"
        assert attribute.category == "VALUE"
        assert attribute.icon == "Heart"
        assert attribute.description.startswith("Demonstrates commitment to ownership")
        assert attribute.sub_attributes == []


class TestAttributeStreamGenerator:

    @pytest.mark.asyncio
    async def test_four_drafts_and_two_values(self, logger):
        agent = FakeAttributeAgent([
            make_draft("Distributed Systems", 20),
            make_draft("Database Internals", 20),
            make_draft("API Design", 15),
            make_draft("Problem Decomposition", 15),
        ])
        events = await collect(AttributeStreamGenerator(agent, logger=logger), REQUEST_WITH_VALUES)

        progress = [e for e in events if isinstance(e, ProgressEvent)]
        assert [p.current for p in progress] == [1, 2, 3, 4, 5, 6]
        assert all(p.total == 6 for p in progress)
        assert [p.category for p in progress] == ["KNOWLEDGE", "KNOWLEDGE", "SKILL", "ABILITY", "VALUE", "VALUE"]

        complete = events[-1]
        assert isinstance(complete, CompleteEvent)
        attributes = complete.result["attributes"]
        assert [a["weight"] for a in attributes] == [24.3, 24.3, 18.2, 18.2, 7.5, 7.5]
        assert [a["id"] for a in attributes] == ["attr-1", "attr-2", "attr-3", "attr-4", "value-0", "value-1"]
        assert attributes[5]["name"] == "Curiosity"
        assert "subAttributes" in attributes[0]
        assert len(agent.inputs) == 4

    @pytest.mark.asyncio
    async def test_six_drafts_without_values(self):
        agent = FakeAttributeAgent([make_draft(f"Attribute {i}", 15) for i in range(6)])
        events = await collect(AttributeStreamGenerator(agent), REQUEST_WITHOUT_VALUES)

        attributes = events[-1].result["attributes"]
        assert len(attributes) == 6
        assert [a["weight"] for a in attributes] == [16.7] * 6
        assert all(a["category"] != "VALUE" for a in attributes)

    @pytest.mark.asyncio
    async def test_prompt_carries_context_and_prior_names(self):
        agent = FakeAttributeAgent([make_draft(f"Attribute {i}") for i in range(4)])
        await collect(AttributeStreamGenerator(agent), REQUEST_WITH_VALUES)

        first, second = agent.inputs[0], agent.inputs[1]
        assert first["category"] == "KNOWLEDGE"
        assert first["tech_stack"] == "Python, PostgreSQL"
        assert first["role_level"] == "Senior"
        assert first["technical_skills"] == "Not specified"
        assert first["existing"] == "Not specified"
        assert second["existing"] == "Attribute 0"

    @pytest.mark.asyncio
    async def test_failed_draft_abandons_run(self, logger):
        agent = FakeAttributeAgent([make_draft("First"), RuntimeError("rate limited")])
        generator = AttributeStreamGenerator(agent, logger=logger)

        with pytest.raises(GenerationError) as excinfo:
            await collect(generator, REQUEST_WITHOUT_VALUES)

        assert excinfo.value.category == "KNOWLEDGE"
        assert excinfo.value.index == 2

    @pytest.mark.asyncio
    async def test_failed_draft_becomes_one_error_event(self):
        agent = FakeAttributeAgent([make_draft("First"), RuntimeError("rate limited")])
        request = AttributeRequest.model_validate(REQUEST_WITHOUT_VALUES)
        frames = [f async for f in event_stream(AttributeStreamGenerator(agent).stream(request), budget_seconds=5)]

        kinds = [json.loads(f[len("data: "):])["type"] for f in frames]
        assert kinds == ["start", "progress", "error"]
        assert json.loads(frames[-1][len("data: "):])["message"] == "Generation failed"
