import argparse
import asyncio
import json
from datetime import datetime as dt
from typing import Any, AsyncIterator, Dict, Optional

from dotenv import load_dotenv
from langchain_core.messages import HumanMessage

from ..factories.agent_factory import EngineServices
from ..spec.loader import load_engine_config, require_credentials
from ..spec.request_models import AttributeRequest, QuestionRequest
from ..streaming.events import CompleteEvent, ErrorEvent, ProgressEvent, StreamEvent
from ..streaming.protocol import event_stream
from ..streaming.reader import read_event_stream, stream_events
from ..utils.file import ArtifactWriter
from ..utils.logger import JSONLLogger

ENDPOINTS = {
    "research": "/ai/company-analysis",
    "scaffold": "/ai/orchestrator-agent",
    "attributes": "/ai/stream-attributes",
    "questions": "/ai/stream-questions",
}

ARTIFACT_KEYS = {
    "research": "compiled",
    "scaffold": "rubric",
    "attributes": "attributes",
    "questions": "questions",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a generation loop headlessly and print its events.")
    time = dt.now().strftime("%Y-%m-%d_%H-%M-%S")
    parser.add_argument("--test_name", default=time)
    parser.add_argument("--config", default=None, help="Path to the engine YAML config")
    parser.add_argument("--remote", default=None, help="Base URL of a running server; consume its stream instead")

    sub = parser.add_subparsers(dest="command", required=True)

    research = sub.add_parser("research", help="Research a company from its URL")
    research.add_argument("url")

    scaffold = sub.add_parser("scaffold", help="Scaffold a KSA rubric from a request")
    scaffold.add_argument("request", help="Request text, or @path to read it from a file")

    attributes = sub.add_parser("attributes", help="Generate a weighted attribute rubric")
    attributes.add_argument("request_file", help="JSON file with context, role and services")

    questions = sub.add_parser("questions", help="Generate interview questions for a rubric")
    questions.add_argument("request_file", help="JSON file with context, role, attributes and stage assignments")

    return parser


def read_text_argument(value: str) -> str:
    if value.startswith("@"):
        with open(value[1:], "r", encoding="utf-8") as f:
            return f.read()
    return value


def request_body(args: argparse.Namespace) -> Dict[str, Any]:
    if args.command == "research":
        return {"messages": [{"role": "user", "content": f"Analyze this company: {args.url}"}]}
    if args.command == "scaffold":
        return {"messages": [{"role": "user", "content": read_text_argument(args.request)}]}
    with open(args.request_file, "r", encoding="utf-8") as f:
        return json.load(f)


def local_events(services: EngineServices, command: str, body: Dict[str, Any]) -> AsyncIterator[StreamEvent]:
    if command == "research":
        messages = [HumanMessage(content=m["content"]) for m in body["messages"]]
        return services.company_research_graph().stream(messages)
    if command == "scaffold":
        messages = [HumanMessage(content=m["content"]) for m in body["messages"]]
        return services.rubric_scaffold_graph().stream(messages)
    if command == "questions":
        return services.question_generator().stream(QuestionRequest.model_validate(body))
    return services.attribute_generator().stream(AttributeRequest.model_validate(body))


def describe(event: StreamEvent) -> str:
    if isinstance(event, ProgressEvent):
        if event.attribute:
            detail = f"{event.attribute.get('name')} ({event.attribute.get('weight')}%)"
        elif event.question:
            detail = f"{event.question.get('difficultyLevel')}: {event.question.get('text')}"
        else:
            detail = (event.signal or {}).get("state", "")
        return f"[{event.current}/{event.total}] {event.category}: {detail}"
    if isinstance(event, ErrorEvent):
        return f"ERROR: {event.message}"
    if isinstance(event, CompleteEvent):
        return f"Complete in {event.duration} ms"
    return event.type


async def run(args: argparse.Namespace) -> Optional[CompleteEvent]:
    body = request_body(args)
    config = load_engine_config(args.config)
    logger = JSONLLogger(log_path=f"{config.storage.log_dir}/ksagen_headless_log_{args.test_name}.jsonl")

    if args.remote:
        events = stream_events(args.remote.rstrip("/") + ENDPOINTS[args.command], body)
    else:
        require_credentials()
        services = EngineServices(config=config, logger=logger)

        async def framed() -> AsyncIterator[bytes]:
            async for frame in event_stream(
                local_events(services, args.command, body),
                budget_seconds=(
                    config.stream.question_budget_seconds if args.command == "questions"
                    else config.stream.budget_seconds
                ),
                logger=logger,
            ):
                yield frame.encode("utf-8")

        events = read_event_stream(framed())

    complete = None
    async for event in events:
        print(f"\t* {describe(event)}")
        if isinstance(event, CompleteEvent):
            complete = event

    if complete is not None:
        writer = ArtifactWriter(output_dir=config.storage.output_dir, logger=logger)
        writer.write(args.test_name, args.command, complete.result.get(ARTIFACT_KEYS[args.command]))
    return complete


def main():
    load_dotenv()
    args = build_parser().parse_args()
    complete = asyncio.run(run(args))

    print("\n" + "="*60)
    print("KSAGEN - EXECUTION COMPLETE" if complete else "KSAGEN - EXECUTION FAILED")
    print("="*60)
    if complete is not None:
        print(json.dumps(complete.result, indent=2, default=str)[:4000])
    print("="*60, "\n\nCheck the 'output' directory for generated artifacts.")
    raise SystemExit(0 if complete else 1)


if __name__ == "__main__":
    main()
