import os
from typing import Dict, List, Mapping, Optional

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from ..capabilities.base import Capability
from ..capabilities.company_analysis import CompanyAnalysisCapability
from ..capabilities.company_compiler import CompanyCompilerCapability
from ..capabilities.ksa_scaffolds import (
    KsaCompanyFitCapability,
    KsaJobFitCapability,
    KsaPlanCapability,
    KsaValidatorCapability,
)
from ..capabilities.site_scrape import SiteScrapeCapability
from ..capabilities.stack_finder import StackFinderCapability
from ..capabilities.web_search import WebSearchCapability
from ..core.agent import Agent
from ..core.instructions import InstructionCache
from ..graph.graph import OrchestratorGraph
from ..graph.outcomes import company_research_outcome, rubric_scaffold_outcome
from ..spec.models import EngineConfig
from ..spec.registry import LOOP_CAPABILITIES, PYDANTIC_REGISTRY
from ..utils.logger import JSONLLogger
from ..workflows.attributes import AttributeStreamGenerator
from ..workflows.questions import QuestionStreamGenerator
from ..workflows.prompts.system_prompts import KsaOrchestratorFallbackPrompt
from .prompt_factory import PromptFactory


class BaseAgentFactory:
    def __init__(self):
        self.prompt_factory = PromptFactory()

    def create_agent(self, name: str, **kwargs) -> Agent:
        raise NotImplementedError


class SpecialisedAgentFactory(BaseAgentFactory):
    def __init__(self):
        super().__init__()

    def determine_role(self, name: str) -> Dict:
        prompt = self.prompt_factory.create_prompt(name)
        output_parser = PYDANTIC_REGISTRY[name]

        return {
            "prompt": prompt,
            "output_parser": output_parser,
        }

    def create_agent(self, name: str, **kwargs) -> Agent:
        role = self.determine_role(name)

        return Agent(
            name=name,
            prompt=role['prompt'],
            output_parser=role['output_parser'],
            **kwargs
        )


class EngineServices:
    """
    Builds what a request needs from the engine configuration: chat models,
    capability sets, loops and the attribute and question generators.

    Chat models are created on first use, after the credential check, and can
    be injected for tests. Loops and generators are built fresh per call so no
    request shares mutable state with another.
    """

    def __init__(
        self,
        config: EngineConfig,
        logger: Optional[JSONLLogger] = None,
        instruction_cache: Optional[InstructionCache] = None,
        env: Optional[Mapping[str, str]] = None,
        decision_llm: Optional[BaseChatModel] = None,
        synthesis_llm: Optional[BaseChatModel] = None,
        attribute_llm: Optional[BaseChatModel] = None,
        question_llm: Optional[BaseChatModel] = None,
        search_llm: Optional[BaseChatModel] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.logger = logger
        self.instruction_cache = instruction_cache or InstructionCache(logger=logger)
        self.env = os.environ if env is None else env
        self.http_client = http_client
        self.agent_factory = SpecialisedAgentFactory()
        self.prompt_factory = self.agent_factory.prompt_factory

        self._decision_llm = decision_llm
        self._synthesis_llm = synthesis_llm
        self._attribute_llm = attribute_llm
        self._question_llm = question_llm
        self._search_llm = search_llm

    # =====================================================================
    # CHAT MODELS
    # =====================================================================

    @property
    def decision_llm(self) -> BaseChatModel:
        if self._decision_llm is None:
            self._decision_llm = ChatOpenAI(
                model=self.config.models.decision,
                temperature=self.config.models.decision_temperature,
            )
        return self._decision_llm

    @property
    def synthesis_llm(self) -> BaseChatModel:
        if self._synthesis_llm is None:
            self._synthesis_llm = ChatOpenAI(
                model=self.config.models.synthesis,
                temperature=self.config.models.decision_temperature,
            )
        return self._synthesis_llm

    @property
    def attribute_llm(self) -> BaseChatModel:
        if self._attribute_llm is None:
            self._attribute_llm = ChatOpenAI(
                model=self.config.models.attribute_writer,
                temperature=self.config.models.attribute_temperature,
            )
        return self._attribute_llm

    @property
    def question_llm(self) -> BaseChatModel:
        if self._question_llm is None:
            self._question_llm = ChatOpenAI(
                model=self.config.models.question_writer,
                temperature=self.config.models.question_temperature,
            )
        return self._question_llm

    @property
    def search_llm(self) -> Optional[BaseChatModel]:
        """None when no search credentials are configured; web_search then fails with a configuration error."""
        if self._search_llm is None:
            api_key = self.env.get("PERPLEXITY_API_KEY")
            if not api_key:
                return None
            self._search_llm = ChatOpenAI(
                model=self.config.models.search,
                base_url=self.config.models.search_base_url,
                api_key=api_key,
                temperature=0,
            )
        return self._search_llm

    # =====================================================================
    # CAPABILITIES
    # =====================================================================

    def build_capability(self, name: str) -> Capability:
        fetch = self.config.fetch

        if name == "site_scrape":
            return SiteScrapeCapability(
                llm=self.synthesis_llm,
                http_client=self.http_client,
                user_agent=fetch.user_agent,
                timeout=fetch.timeout_seconds,
                summary_token_budget=fetch.summary_token_budget,
                logger=self.logger,
            )
        elif name == "stack_finder":
            return StackFinderCapability(
                http_client=self.http_client,
                max_bytes=fetch.stack_max_bytes,
                user_agent=fetch.user_agent,
                timeout=fetch.timeout_seconds,
                logger=self.logger,
            )
        elif name == "company_compiler":
            return CompanyCompilerCapability(logger=self.logger)
        elif name == "web_search":
            return WebSearchCapability(llm=self.search_llm, logger=self.logger)
        elif name == "company_analysis":
            return CompanyAnalysisCapability(llm=self.synthesis_llm, logger=self.logger)
        elif name == "ksa_plan":
            return KsaPlanCapability(logger=self.logger)
        elif name == "ksa_jobfit":
            return KsaJobFitCapability(logger=self.logger)
        elif name == "ksa_companyfit":
            return KsaCompanyFitCapability(logger=self.logger)
        elif name == "ksa_validator":
            return KsaValidatorCapability(logger=self.logger)

        raise ValueError(f"Unknown capability: {name}")

    def capabilities(self, loop_type: str) -> List[Capability]:
        return [self.build_capability(name) for name in LOOP_CAPABILITIES[loop_type]]

    # =====================================================================
    # LOOPS AND GENERATORS
    # =====================================================================

    def company_research_graph(self) -> OrchestratorGraph:
        return OrchestratorGraph(
            name="Company_Research",
            llm=self.decision_llm,
            capabilities=self.capabilities("Company_Research"),
            system_prompt=self.prompt_factory.create_system_prompt("Company_Research"),
            max_steps=self.config.loops.company_research.max_steps,
            logger=self.logger,
            result_builder=company_research_outcome,
        )

    def rubric_scaffold_graph(self) -> OrchestratorGraph:
        instructions = self.instruction_cache.load(
            "ksa_orchestrator",
            self.config.instructions.ksa_orchestrator,
            fallback=KsaOrchestratorFallbackPrompt,
        )
        return OrchestratorGraph(
            name="Rubric_Scaffold",
            llm=self.decision_llm,
            capabilities=self.capabilities("Rubric_Scaffold"),
            system_prompt=self.prompt_factory.create_system_prompt("Rubric_Scaffold", instructions),
            max_steps=self.config.loops.rubric_scaffold.max_steps,
            logger=self.logger,
            result_builder=rubric_scaffold_outcome,
        )

    def attribute_generator(self) -> AttributeStreamGenerator:
        agent = self.agent_factory.create_agent("Attribute_Writer", llm=self.attribute_llm)
        return AttributeStreamGenerator(agent=agent, logger=self.logger)

    def question_generator(self) -> QuestionStreamGenerator:
        agent = self.agent_factory.create_agent("Question_Writer", llm=self.question_llm)
        return QuestionStreamGenerator(agent=agent, logger=self.logger)
