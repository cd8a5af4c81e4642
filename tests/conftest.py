"""Shared fixtures and test doubles."""

from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from ksagen.spec.models import EngineConfig
from ksagen.spec.output_models import (
    AttributeDraft,
    FollowUpQuestion,
    QuestionDraft,
    QuestionExpectations,
    RubricAttribute,
    ScoringAnchors,
    ScoringBucket,
    SubAttribute,
)
from ksagen.utils.logger import JSONLLogger


class ScriptedChatModel(BaseChatModel):
    """Replays scripted messages in order, repeating the last one once the script runs out."""

    responses: List[BaseMessage]
    calls: List[List[BaseMessage]] = Field(default_factory=list)
    bound_tools: List[Any] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        index = min(len(self.calls), len(self.responses) - 1)
        self.calls.append(list(messages))
        message = self.responses[index].model_copy(deep=True)
        return ChatResult(generations=[ChatGeneration(message=message)])


class FailingChatModel(BaseChatModel):
    @property
    def _llm_type(self) -> str:
        return "failing"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        raise RuntimeError("model unavailable")


def tool_call(name: str, args: Dict[str, Any], call_id: str = "call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


class FakeAttributeAgent:
    """Stands in for a writer agent; yields scripted drafts or raises."""

    def __init__(self, drafts: List[Union[AttributeDraft, QuestionDraft, Exception]], name: str = "Attribute_Writer"):
        self.name = name
        self.drafts = list(drafts)
        self.inputs: List[Dict[str, Any]] = []

    async def ainvoke(self, input_data: Dict[str, Any], callbacks: Optional[Callable] = None):
        self.inputs.append(input_data)
        draft = self.drafts[min(len(self.inputs), len(self.drafts)) - 1]
        if isinstance(draft, Exception):
            raise draft
        return draft


def make_draft(name: str, weight: float = 15) -> AttributeDraft:
    return AttributeDraft(
        name=name,
        description=f"Measures {name.lower()} in practice",
        weight=weight,
        sub_attributes=[
            SubAttribute(name=f"{name} {i}", description=f"Facet {i} of {name.lower()}")
            for i in range(1, 4)
        ],
    )


ANCHOR_BANDS = [
    ("bucket1_2", "1-2", "Unable to perform job duties"),
    ("bucket3_4", "3-4", "Needs much handholding, training, and coaching"),
    ("bucket5_6", "5-6", "Performs with minimal guidance"),
    ("bucket7_8", "7-8", "Positively impacts peers' performance"),
    ("bucket9_10", "9-10", "Transforms team delivery"),
]


def make_question_draft(text: str, difficulty: str = "Advanced", attributes=("API Design",)) -> QuestionDraft:
    anchors = ScoringAnchors(**{
        key: ScoringBucket(score_range=score_range, label=label, examples=[f"{label} answer"])
        for key, score_range, label in ANCHOR_BANDS
    })
    return QuestionDraft(
        text=text,
        difficulty_level=difficulty,
        attributes=list(attributes),
        expectations=QuestionExpectations(
            scoring_anchors=anchors,
            follow_up_questions=[FollowUpQuestion(question="What would you change?", when_to_ask="After the first answer")],
        ),
        internal_notes="Listen for trade-offs",
    )


def make_attribute(name: str, category: str = "SKILL") -> RubricAttribute:
    return RubricAttribute(
        id=f"attr-{name.lower().replace(' ', '-')}",
        name=name,
        description=f"Measures {name.lower()}",
        category=category,
        icon="Wrench",
        color="#10B981",
        weight=20,
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


SAMPLE_HTML = """
<html>
  <head>
    <title>Acme Robotics</title>
    <meta name="description" content="Warehouse robots for small businesses.">
    <script id="__NEXT_DATA__" type="application/json">{"props":{}}</script>
    <script src="https://www.googletagmanager.com/gtm.js"></script>
  </head>
  <body>
    <nav><a href="/pricing">Pricing</a><a href="#">Top</a><a href="mailto:hi@acme.test">Mail</a></nav>
    <main>
      <h1>Robots that pick, pack and ship</h1>
      <h2>Built for growing warehouses</h2>
      <article>
        <p>Acme Robotics builds autonomous picking robots for small and mid-sized warehouses, cutting fulfilment costs.</p>
        <p>Our fleet software schedules robots across shifts, integrates with existing order systems, and reports throughput daily.</p>
        <p>Customers in retail, grocery and pharmacy logistics use Acme to ship orders faster with fewer errors.</p>
      </article>
      <a href="https://blog.acme.test/launch">Launch post</a>
    </main>
  </body>
</html>
"""


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture
def logger(tmp_path) -> JSONLLogger:
    return JSONLLogger(log_path=str(tmp_path / "logs" / "test_runs.jsonl"))


@pytest.fixture
def engine_config(tmp_path) -> EngineConfig:
    return EngineConfig.model_validate({
        "storage": {
            "output_dir": str(tmp_path / "output"),
            "persist_artifacts": True,
            "run_store_path": str(tmp_path / "output" / "run_store.json"),
            "log_dir": str(tmp_path / "logs"),
        },
        "instructions": {"ksa_orchestrator": str(tmp_path / "missing_instructions.md")},
    })
