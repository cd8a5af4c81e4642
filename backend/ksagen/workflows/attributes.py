import time
import traceback
from typing import Any, AsyncIterator, Dict, List, Optional

from ..core.agent import Agent, LatencyMonitorCallback
from ..spec.output_models import AttributeDraft, RubricAttribute
from ..spec.request_models import AttributeRequest
from ..streaming.events import CompleteEvent, ProgressEvent, StreamEvent
from ..utils.logger import JSONLLogger
from .prompts.system_prompts import CATEGORY_GUIDANCE
from .weighting import (
    category_slots,
    ksa_target,
    normalize,
    rescale,
    total_weight,
    value_weight_total,
    weight_per_value,
)

CATEGORY_ICONS = {"KNOWLEDGE": "BookOpen", "SKILL": "Wrench", "ABILITY": "Zap"}
CATEGORY_COLORS = {"KNOWLEDGE": "#3B82F6", "SKILL": "#10B981", "ABILITY": "#8B5CF6"}

VALUE_COLORS = ["#10B981", "#3B82F6", "#8B5CF6", "#F59E0B", "#EC4899", "#14B8A6", "#F97316", "#6366F1"]
VALUE_ICONS = ["Heart", "Sparkles", "Users", "Target", "Award", "Gem", "Star", "Shield"]

MIN_DRAFT_WEIGHT = 10.0
MAX_DRAFT_WEIGHT = 25.0
MAX_SUB_ATTRIBUTES = 3


class GenerationError(RuntimeError):
    """A single attribute or question could not be produced; the whole run is abandoned."""

    def __init__(self, category: str, index: int, cause: Exception, item: str = "attribute"):
        self.category = category
        self.index = index
        super().__init__(f"Failed to generate {category} {item} #{index}: {cause}")


def _listing(items: List[str]) -> str:
    return ", ".join(items) if items else "Not specified"


def value_attribute(index: int, name: str, weight: float) -> RubricAttribute:
    return RubricAttribute(
        id=f"value-{index}",
        name=name,
        description=f"Demonstrates commitment to {name.lower()} in daily work and decision-making",
        category="VALUE",
        icon=VALUE_ICONS[index % len(VALUE_ICONS)],
        color=VALUE_COLORS[index % len(VALUE_COLORS)],
        weight=weight,
        sub_attributes=[],
    )


def draft_to_attribute(draft: AttributeDraft, category: str, index: int) -> RubricAttribute:
    return RubricAttribute(
        id=f"attr-{index}",
        name=draft.name,
        description=draft.description,
        category=category,
        icon=CATEGORY_ICONS[category],
        color=CATEGORY_COLORS[category],
        weight=min(max(float(draft.weight or 15), MIN_DRAFT_WEIGHT), MAX_DRAFT_WEIGHT),
        sub_attributes=draft.sub_attributes[:MAX_SUB_ATTRIBUTES],
    )


class AttributeStreamGenerator:
    """
    Produces a weighted rubric one attribute at a time.

    K/S/A attributes are drafted by the attribute writer agent, one call per
    slot; VALUE attributes are derived from the company's culture values.
    Progress is yielded after every attribute and a single complete event
    closes the run.
    """

    def __init__(self, agent: Agent, logger: Optional[JSONLLogger] = None):
        self.agent = agent
        self.logger = logger

    def prompt_input(
        self,
        request: AttributeRequest,
        category: str,
        existing: List[RubricAttribute],
    ) -> Dict[str, Any]:
        context, role = request.context, request.role
        return {
            "category": category,
            "industry": context.industry,
            "size": context.size,
            "stage": context.stage,
            "business_model": context.business_model,
            "tech_stack": _listing(context.tech_stack),
            "role_title": role.title,
            "role_level": role.level,
            "responsibilities": _listing(role.responsibilities),
            "technical_skills": _listing(role.technical_skills),
            "services": _listing(request.services),
            "category_guidance": CATEGORY_GUIDANCE[category],
            "existing": _listing([a.name for a in existing]),
        }

    async def draft_attribute(
        self,
        request: AttributeRequest,
        category: str,
        index: int,
        existing: List[RubricAttribute],
    ) -> RubricAttribute:
        input_data = self.prompt_input(request, category, existing)
        callback = LatencyMonitorCallback()
        try:
            draft = await self.agent.ainvoke(input_data, callbacks=lambda: callback)
        except Exception as e:
            if self.logger is not None:
                self.logger.log_agent_error(
                    agent_name=self.agent.name,
                    error_message=str(e),
                    traceback=traceback.format_exc(),
                )
            raise GenerationError(category, index, e) from e

        if self.logger is not None:
            self.logger.log_agent_invocation(
                agent_name=self.agent.name,
                input_message=input_data,
                output_message=draft,
                latency_metrics=callback.metrics,
            )
        return draft_to_attribute(draft, category, index)

    async def stream(self, request: AttributeRequest) -> AsyncIterator[StreamEvent]:
        start_time = time.time()
        values = request.context.value_names()
        target = ksa_target(len(values))
        total = target + len(values)

        print(f'{"="*60}\nGenerating rubric for: {request.role.title}\n{"="*60}')
        print(f"\t* K/S/A attributes: {target}, company values: {len(values)}")

        attributes: List[RubricAttribute] = []
        for index, category in enumerate(category_slots(target), start=1):
            print(f"\t* Drafting {category} attribute {index}/{target}")
            attribute = await self.draft_attribute(request, category, index, attributes)
            attributes.append(attribute)
            yield ProgressEvent(
                current=index,
                total=total,
                category=category,
                attribute=attribute.model_dump(by_alias=True),
            )

        if values:
            attributes = rescale(attributes, 100 - value_weight_total(len(values)))
            per_value = weight_per_value(len(values))
            for i, name in enumerate(values):
                attribute = value_attribute(i, name, per_value)
                attributes.append(attribute)
                yield ProgressEvent(
                    current=target + i + 1,
                    total=total,
                    category="VALUE",
                    attribute=attribute.model_dump(by_alias=True),
                )

        attributes = normalize(attributes)
        duration = int((time.time() - start_time) * 1000)
        print(f"\t* Rubric complete: {len(attributes)} attributes, total weight {total_weight(attributes)}")
        if self.logger is not None:
            self.logger.log_event("rubric_generated", {
                "role": request.role.title,
                "attributes": len(attributes),
                "total_weight": total_weight(attributes),
                "duration_ms": duration,
            })

        yield CompleteEvent(
            result={"attributes": [a.model_dump(by_alias=True) for a in attributes]},
            duration=duration,
        )
