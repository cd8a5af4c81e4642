"""Tests for the progressive interview question generator."""

import json

import pytest
from pydantic import ValidationError

from ksagen.core.agent import Agent
from ksagen.factories.prompt_factory import PromptFactory
from ksagen.spec.output_models import QuestionDraft
from ksagen.spec.request_models import QuestionRequest
from ksagen.streaming.events import CompleteEvent, ProgressEvent
from ksagen.streaming.protocol import event_stream
from ksagen.workflows.attributes import GenerationError
from ksagen.workflows.job_levels import assigned_levels, difficulty_focus, difficulty_levels_for
from ksagen.workflows.questions import QUESTIONS_PER_STAGE, QuestionStreamGenerator, assessment_type

from conftest import FakeAttributeAgent, ScriptedChatModel, make_attribute, make_question_draft, tool_call

ATTRIBUTES = [
    make_attribute("API Design", "SKILL"),
    make_attribute("Distributed Systems", "KNOWLEDGE"),
    make_attribute("Ownership", "VALUE"),
]

REQUEST = {
    "context": {
        "industry": "Logistics",
        "culture": {"values": ["Ownership"]},
        "stages": [
            {"id": "s1", "name": "Phone Screen", "description": "Motivation and basics"},
            {"id": "s2", "name": "System Design"},
            {"name": "Onsite"},
        ],
    },
    "role": {"title": "Backend Engineer", "jobLevel": "Senior"},
    "attributes": [a.model_dump(by_alias=True) for a in ATTRIBUTES],
}


def request_with(**overrides):
    return QuestionRequest.model_validate({**REQUEST, **overrides})


def numbered(index):
    return f"q-test-{index}"


async def collect(generator, request):
    return [event async for event in generator.stream(request)]


class TestJobLevels:

    def test_difficulties_for_known_level(self):
        assert difficulty_levels_for("Manager") == ["Advanced", "Expert", "Intermediate"]
        assert difficulty_focus("Lead") == "Advanced and Expert questions with leadership focus"

    def test_unknown_level_falls_back(self):
        assert difficulty_levels_for("Staff Wizard") == ["Intermediate", "Advanced"]
        assert difficulty_focus("Not specified") == "Intermediate and Advanced questions"

    @pytest.mark.parametrize("difficulty, available, expected", [
        ("Expert", [], []),
        ("Basic", ["Senior"], ["Senior"]),
        ("Basic", ["Junior", "Senior"], ["Junior"]),
        ("Advanced", ["Junior", "Mid-Level", "Senior"], ["Mid-Level", "Senior"]),
        ("Expert", ["Entry Level", "Junior"], ["Entry Level", "Junior"]),
    ])
    def test_assigned_levels(self, difficulty, available, expected):
        assert assigned_levels(difficulty, available) == expected


class TestAssessmentType:

    @pytest.mark.parametrize("names, expected", [
        (["Ownership"], "company-fit"),
        (["API Design", "Ownership"], "both"),
        (["API Design", "Distributed Systems"], "role-fit"),
        (["Something Else"], "role-fit"),
    ])
    def test_derived_from_categories(self, names, expected):
        assert assessment_type(names, ATTRIBUTES) == expected


class TestStagePlan:

    def test_defaults_without_assignment(self):
        assert [s.name for s in request_with().stage_plan()] == ["Screening", "Technical", "Team", "Final"]

    def test_assigned_by_id_or_name(self):
        stages = request_with(assignedStageIds=["s2", "Onsite"]).stage_plan()
        assert [s.name for s in stages] == ["System Design", "Onsite"]

    def test_unknown_ids_fall_back_to_defaults(self):
        assert len(request_with(assignedStageIds=["nope"]).stage_plan()) == 4

    def test_attributes_required(self):
        with pytest.raises(ValidationError):
            request_with(attributes=[])


class TestQuestionDraft:

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            make_question_draft("   ")

    def test_anchor_keys_survive_camel_dump(self):
        dumped = make_question_draft("Walk me through an outage").model_dump(by_alias=True)

        anchors = dumped["expectations"]["scoringAnchors"]
        assert list(anchors) == ["bucket1_2", "bucket3_4", "bucket5_6", "bucket7_8", "bucket9_10"]
        assert anchors["bucket5_6"]["scoreRange"] == "5-6"
        assert dumped["expectations"]["followUpQuestions"][0]["whenToAsk"] == "After the first answer"


class TestQuestionStreamGenerator:

    @pytest.mark.asyncio
    async def test_four_questions_per_default_stage(self, logger):
        agent = FakeAttributeAgent(
            [make_question_draft(f"Question {i}", attributes=["API Design", "Ownership"]) for i in range(16)],
            name="Question_Writer",
        )
        generator = QuestionStreamGenerator(agent, logger=logger, id_factory=numbered)
        events = await collect(generator, request_with())

        progress = [e for e in events if isinstance(e, ProgressEvent)]
        assert len(progress) == 16
        assert [p.current for p in progress] == list(range(1, 17))
        assert all(p.total == 16 for p in progress)
        assert [p.category for p in progress[::QUESTIONS_PER_STAGE]] == ["Screening", "Technical", "Team", "Final"]
        assert progress[0].question["id"] == "q-test-1"
        assert progress[0].question["assessmentType"] == "both"

        complete = events[-1]
        assert isinstance(complete, CompleteEvent)
        questions = complete.result["questions"]
        assert len(questions) == 16
        assert questions[4]["stage"] == questions[4]["stageName"] == "Technical"
        assert questions[0]["assignedLevels"] == []
        assert questions[0]["internalNotes"] == "Listen for trade-offs"

    @pytest.mark.asyncio
    async def test_assigned_stages_and_levels(self):
        agent = FakeAttributeAgent([make_question_draft("Design a rate limiter", difficulty="Basic")])
        request = request_with(
            assignedStageIds=["s1"],
            levelAssignments=[
                {"id": "l1", "level": "Junior", "positionCount": 2, "assignedStageIds": ["s1"]},
                {"id": "l2", "level": "Senior", "positionCount": 1, "assignedStageIds": ["s1"]},
            ],
        )
        events = await collect(QuestionStreamGenerator(agent), request)

        questions = events[-1].result["questions"]
        assert len(questions) == QUESTIONS_PER_STAGE
        assert {q["stage"] for q in questions} == {"Phone Screen"}
        assert questions[0]["assignedLevels"] == ["Junior"]
        assert questions[0]["assessmentType"] == "role-fit"

    @pytest.mark.asyncio
    async def test_prompt_carries_stage_and_prior_questions(self):
        agent = FakeAttributeAgent([make_question_draft(f"Question {i}") for i in range(4)])
        await collect(QuestionStreamGenerator(agent), request_with(assignedStageIds=["s1"]))

        first, second = agent.inputs[0], agent.inputs[1]
        assert first["interview_stage"] == "Phone Screen"
        assert first["stage_focus"] == "Motivation and basics"
        assert first["culture_values"] == "Ownership"
        assert first["difficulty_levels"] == "Advanced, Expert, Intermediate"
        assert "- API Design (SKILL): Measures api design" in first["attributes"]
        assert first["existing"] == "Not specified"
        assert second["existing"] == "Question 0"

    @pytest.mark.asyncio
    async def test_failed_question_abandons_run(self, logger):
        agent = FakeAttributeAgent([make_question_draft("First"), RuntimeError("rate limited")])

        with pytest.raises(GenerationError) as excinfo:
            await collect(QuestionStreamGenerator(agent, logger=logger), request_with())

        assert excinfo.value.category == "Screening"
        assert excinfo.value.index == 2
        assert "question #2" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_failed_question_becomes_one_error_event(self):
        agent = FakeAttributeAgent([RuntimeError("provider down")])
        frames = [f async for f in event_stream(QuestionStreamGenerator(agent).stream(request_with()), budget_seconds=5)]

        kinds = [json.loads(f[len("data: "):])["type"] for f in frames]
        assert kinds == ["start", "error"]


class TestQuestionWriterAgent:

    @pytest.mark.asyncio
    async def test_structured_output_parses_camel_case(self):
        args = make_question_draft("Tell me about a migration you led").model_dump(by_alias=True)
        llm = ScriptedChatModel(responses=[tool_call("QuestionDraft", args)])
        agent = Agent(
            name="Question_Writer",
            prompt=PromptFactory().create_prompt("Question_Writer"),
            output_parser=QuestionDraft,
            llm=llm,
        )
        request = request_with(assignedStageIds=["s2"])
        events = await collect(QuestionStreamGenerator(agent, id_factory=numbered), request)

        question = events[-1].result["questions"][0]
        assert question["text"] == "Tell me about a migration you led"
        assert question["difficultyLevel"] == "Advanced"
        assert "INTERVIEW STAGE: System Design" in llm.calls[0][-1].content
