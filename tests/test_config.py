"""Tests for configuration loading and service wiring."""

from pathlib import Path

import pytest
from langchain_core.messages import AIMessage
from pydantic import ValidationError

from ksagen.factories.agent_factory import EngineServices, SpecialisedAgentFactory
from ksagen.factories.prompt_factory import PromptFactory
from ksagen.spec.loader import ConfigurationError, load_engine_config, missing_credentials, require_credentials
from ksagen.spec.models import EngineConfig
from ksagen.spec.output_models import AttributeDraft, QuestionDraft
from ksagen.spec.registry import LOOP_CAPABILITIES

from conftest import ScriptedChatModel

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "engine.yml"


class TestEngineConfig:

    def test_repo_config_loads(self):
        config = load_engine_config(REPO_CONFIG)

        assert config.loops.company_research.max_steps == 8
        assert config.loops.rubric_scaffold.max_steps == 6
        assert config.stream.budget_seconds == 60
        assert config.rate_limit.requests == 200
        assert config.stream.question_budget_seconds == 300
        assert config.storage.run_store_max_records == 500

    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "nope.yml")

    def test_empty_file_rejected(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            EngineConfig.from_yaml(path)

    def test_stack_cap_cannot_exceed_scrape_cap(self):
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"fetch": {"max_bytes": 10_000, "stack_max_bytes": 20_000}})

    @pytest.mark.parametrize("section", [
        {"loops": {"company_research": {"max_steps": 0}}},
        {"stream": {"budget_seconds": 0}},
        {"models": {"decision_temperature": 3}},
        {"fetch": {"max_bytes": 1_000}},
        {"storage": {"run_store_max_records": 0}},
        {"models": {"question_temperature": -1}},
    ])
    def test_out_of_range_values(self, section):
        with pytest.raises(ValidationError):
            EngineConfig.model_validate(section)


class TestCredentials:

    def test_missing_key_reported(self):
        assert missing_credentials({}) == ["OPENAI_API_KEY"]
        assert missing_credentials({"OPENAI_API_KEY": "sk-test"}) == []

    def test_require_raises(self):
        with pytest.raises(ConfigurationError) as excinfo:
            require_credentials({"OPENAI_API_KEY": ""})
        assert excinfo.value.missing == ["OPENAI_API_KEY"]


class TestFactories:

    def test_attribute_writer_prompt_variables(self):
        prompt = PromptFactory().create_prompt("Attribute_Writer")
        assert {"category", "existing", "category_guidance", "role_title"} <= set(prompt.input_variables)

    def test_question_writer_prompt_variables(self):
        prompt = PromptFactory().create_prompt("Question_Writer")
        assert {"interview_stage", "attributes", "difficulty_levels", "existing"} <= set(prompt.input_variables)

    def test_unknown_prompt(self):
        with pytest.raises(ValueError):
            PromptFactory().create_prompt("Nope")

    def test_rubric_loop_prompt_uses_instructions(self):
        system = PromptFactory().create_system_prompt("Rubric_Scaffold", "Custom KSA instructions")
        assert system.endswith("Custom KSA instructions")

    def test_role_resolution(self):
        role = SpecialisedAgentFactory().determine_role("Attribute_Writer")
        assert role["output_parser"] is AttributeDraft
        assert SpecialisedAgentFactory().determine_role("Question_Writer")["output_parser"] is QuestionDraft


class TestEngineServices:

    def services(self, engine_config, env=None):
        return EngineServices(
            config=engine_config,
            env=env or {},
            decision_llm=ScriptedChatModel(responses=[AIMessage(content="ok")]),
            synthesis_llm=ScriptedChatModel(responses=[AIMessage(content="ok")]),
        )

    @pytest.mark.parametrize("loop_type", ["Company_Research", "Rubric_Scaffold"])
    def test_capability_sets(self, engine_config, loop_type):
        capabilities = self.services(engine_config).capabilities(loop_type)
        assert [c.name for c in capabilities] == LOOP_CAPABILITIES[loop_type]

    def test_unknown_capability(self, engine_config):
        with pytest.raises(ValueError):
            self.services(engine_config).build_capability("crawl_everything")

    def test_search_model_needs_key(self, engine_config):
        assert self.services(engine_config).search_llm is None
        assert self.services(engine_config, env={"PERPLEXITY_API_KEY": "pplx-test"}).search_llm is not None

    def test_loops_use_configured_ceilings(self, engine_config):
        services = self.services(engine_config)

        assert services.company_research_graph().max_steps == 8
        assert services.rubric_scaffold_graph().max_steps == 6

    def test_missing_instructions_fall_back(self, engine_config):
        graph = self.services(engine_config).rubric_scaffold_graph()
        assert graph.decision_node.system_prompt

    def test_question_generator_uses_question_model(self, engine_config):
        question_llm = ScriptedChatModel(responses=[AIMessage(content="ok")])
        services = EngineServices(config=engine_config, env={}, question_llm=question_llm)

        generator = services.question_generator()
        assert generator.agent.name == "Question_Writer"
        assert generator.agent.llm is question_llm
