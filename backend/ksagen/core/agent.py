import time
from typing import Any, Dict, Optional, Type

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.language_models import BaseChatModel
from langchain_core.outputs import LLMResult
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from pydantic import BaseModel


class LatencyMonitorCallback(BaseCallbackHandler):
    def __init__(self):
        self.start_time = 0.0
        self.first_token_time = 0.0
        self.token_count = 0
        self.metrics = {}

    def on_llm_start(self, serialized, prompts, **kwargs):
        self.start_time = time.time()

    def on_chat_model_start(self, serialized, messages, **kwargs):
        self.start_time = time.time()

    def on_llm_new_token(self, token: str, **kwargs):
        if self.token_count == 0:
            self.first_token_time = time.time()
            self.metrics["ttft"] = self.first_token_time - self.start_time
        self.token_count += 1

    def on_llm_end(self, response: LLMResult, **kwargs):
        end_time = time.time()
        total_time = end_time - self.start_time

        self.metrics["total_time"] = total_time
        self.metrics["token_count"] = self.token_count

        if self.first_token_time > 0:
            gen_time = end_time - self.first_token_time
            self.metrics["generation_time"] = gen_time
            self.metrics["tokens_per_second"] = (
                self.token_count / gen_time if gen_time > 0 else 0.0
            )
        else:
            self.metrics["generation_time"] = None
            self.metrics["tokens_per_second"] = None

    def get_metrics(self) -> Dict[str, Any]:
        return dict(self.metrics)


class Agent:
    """Prompt piped into a chat model constrained to a pydantic output model."""

    def __init__(
        self,
        name: str,
        prompt: ChatPromptTemplate,
        output_parser: Type[BaseModel],

        model_name: str = "gpt-4.1",
        temperature: float = 0.7,
        llm: Optional[BaseChatModel] = None,
        top_p: float = 1,
    ) -> None:
        self.name = name
        self.prompt = prompt
        self.output_parser = output_parser

        self.llm = llm or ChatOpenAI(
            model=model_name,
            temperature=temperature,
            top_p=top_p,
        )

        self.chain = self.prompt | self.llm.with_structured_output(
            self.output_parser, method="function_calling"
        )

    async def ainvoke(self, input_data: Dict[str, Any], callbacks=None) -> BaseModel:
        config = {"callbacks": [callbacks()]} if callbacks else {}
        result = await self.chain.ainvoke(input_data, config=config)
        if isinstance(result, dict):
            result = self.output_parser.model_validate(result)
        return result
