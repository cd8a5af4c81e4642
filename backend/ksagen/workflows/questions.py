import time
import traceback
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..core.agent import Agent, LatencyMonitorCallback
from ..spec.output_models import GeneratedQuestion, QuestionDraft, RubricAttribute
from ..spec.request_models import InterviewStage, QuestionRequest
from ..streaming.events import CompleteEvent, ProgressEvent, StreamEvent
from ..utils.logger import JSONLLogger
from .attributes import GenerationError, _listing
from .job_levels import assigned_levels, difficulty_focus, difficulty_levels_for

QUESTIONS_PER_STAGE = 4

KSA_CATEGORIES = ("KNOWLEDGE", "SKILL", "ABILITY")


def assessment_type(attribute_names: List[str], attributes: List[RubricAttribute]) -> str:
    """company-fit for VALUE only, both for VALUE with K/S/A, role-fit otherwise."""
    categories = {a.name: a.category for a in attributes}
    assessed = [categories.get(name) for name in attribute_names]
    has_value = "VALUE" in assessed
    has_ksa = any(category in KSA_CATEGORIES for category in assessed)
    if has_value and has_ksa:
        return "both"
    if has_value:
        return "company-fit"
    return "role-fit"


def attribute_lines(attributes: List[RubricAttribute]) -> str:
    return "\n".join(f"- {a.name} ({a.category}): {a.description}" for a in attributes)


def question_id(index: int) -> str:
    return f"q-{int(time.time() * 1000)}-{index}"


class QuestionStreamGenerator:
    """
    Writes interview questions one at a time, QUESTIONS_PER_STAGE per stage.

    Each question is drafted by the question writer agent against the rubric's
    attributes; its assessment type is derived from the categories of the
    attributes it assesses and its hiring levels from its difficulty.
    """

    def __init__(
        self,
        agent: Agent,
        logger: Optional[JSONLLogger] = None,
        id_factory: Callable[[int], str] = question_id,
    ):
        self.agent = agent
        self.logger = logger
        self.id_factory = id_factory

    def prompt_input(
        self,
        request: QuestionRequest,
        stage: InterviewStage,
        existing: List[GeneratedQuestion],
    ) -> Dict[str, Any]:
        context, role = request.context, request.role
        return {
            "industry": context.industry,
            "size": context.size,
            "stage": context.stage,
            "business_model": context.business_model,
            "tech_stack": _listing(context.tech_stack),
            "culture_values": _listing(context.value_names()),
            "role_title": role.title,
            "role_level": role.level,
            "responsibilities": _listing(role.responsibilities),
            "technical_skills": _listing(role.technical_skills),
            "services": _listing(request.services),
            "interview_stage": stage.name,
            "stage_focus": stage.description or "Not specified",
            "attributes": attribute_lines(request.attributes),
            "difficulty_levels": ", ".join(difficulty_levels_for(role.level)),
            "difficulty_focus": difficulty_focus(role.level),
            "questions_per_stage": QUESTIONS_PER_STAGE,
            "existing": _listing([q.text for q in existing if q.stage == stage.name]),
        }

    async def draft_question(
        self,
        request: QuestionRequest,
        stage: InterviewStage,
        index: int,
        existing: List[GeneratedQuestion],
    ) -> GeneratedQuestion:
        input_data = self.prompt_input(request, stage, existing)
        callback = LatencyMonitorCallback()
        try:
            draft: QuestionDraft = await self.agent.ainvoke(input_data, callbacks=lambda: callback)
        except Exception as e:
            if self.logger is not None:
                self.logger.log_agent_error(
                    agent_name=self.agent.name,
                    error_message=str(e),
                    traceback=traceback.format_exc(),
                )
            raise GenerationError(stage.name, index, e, item="question") from e

        if self.logger is not None:
            self.logger.log_agent_invocation(
                agent_name=self.agent.name,
                input_message=input_data,
                output_message=draft,
                latency_metrics=callback.metrics,
            )

        return GeneratedQuestion(
            id=self.id_factory(index),
            text=draft.text,
            stage=stage.name,
            stage_name=stage.name,
            difficulty_level=draft.difficulty_level,
            attributes=draft.attributes,
            assessment_type=assessment_type(draft.attributes, request.attributes),
            assigned_levels=assigned_levels(draft.difficulty_level, request.available_levels()),
            expectations=draft.expectations,
            internal_notes=draft.internal_notes,
        )

    async def stream(self, request: QuestionRequest) -> AsyncIterator[StreamEvent]:
        start_time = time.time()
        stages = request.stage_plan()
        total = QUESTIONS_PER_STAGE * len(stages)

        print(f'{"="*60}\nGenerating questions for: {request.role.title}\n{"="*60}')
        print(f"\t* {QUESTIONS_PER_STAGE} questions x {len(stages)} stages = {total}")

        questions: List[GeneratedQuestion] = []
        index = 0
        for stage in stages:
            print(f"\t* Stage: {stage.name}")
            for _ in range(QUESTIONS_PER_STAGE):
                index += 1
                question = await self.draft_question(request, stage, index, questions)
                questions.append(question)
                yield ProgressEvent(
                    current=index,
                    total=total,
                    category=stage.name,
                    question=question.model_dump(by_alias=True),
                )

        duration = int((time.time() - start_time) * 1000)
        print(f"\t* Question set complete: {len(questions)} questions")
        if self.logger is not None:
            self.logger.log_event("questions_generated", {
                "role": request.role.title,
                "stages": [s.name for s in stages],
                "questions": len(questions),
                "duration_ms": duration,
            })

        yield CompleteEvent(
            result={"questions": [q.model_dump(by_alias=True) for q in questions]},
            duration=duration,
        )
