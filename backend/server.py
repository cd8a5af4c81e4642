import json
import os
import uuid
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Type

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError

from ksagen.execution.predictor import (
    FunctionInitializingError,
    LambdaNotConfiguredError,
    LambdaSettings,
    PredictionExecutor,
    PredictionRequest,
)
from ksagen.factories.agent_factory import EngineServices
from ksagen.spec.loader import load_engine_config, missing_credentials
from ksagen.spec.models import EngineConfig
from ksagen.spec.request_models import AttributeRequest, ConversationRequest, QuestionRequest
from ksagen.streaming.events import CompleteEvent, SSE_HEADERS, StreamEvent
from ksagen.streaming.protocol import event_stream
from ksagen.utils.file import ArtifactWriter
from ksagen.utils.logger import JSONLLogger
from ksagen.utils.rate_limit import RATE_LIMIT_MESSAGE, RateLimiter, client_ip
from ksagen.utils.run_store import RunStore

load_dotenv()

# =====================================================================
# GLOBAL VARIABLES
# =====================================================================

TEST_NAME = f"web_request_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

COMPANY_ANALYSIS_PREFIX = "company-analysis-orchestrator"
ORCHESTRATOR_AGENT_PREFIX = "ai-orchestrater-agent"
STREAM_ATTRIBUTES_PREFIX = "stream-attributes"
STREAM_QUESTIONS_PREFIX = "stream-questions"

EventsBuilder = Callable[[Any, str], AsyncIterator[StreamEvent]]


def create_app(
    config: Optional[EngineConfig] = None,
    services: Optional[EngineServices] = None,
    env: Optional[Mapping[str, str]] = None,
    logger: Optional[JSONLLogger] = None,
    predictor_factory: Optional[Callable[[LambdaSettings], PredictionExecutor]] = None,
) -> FastAPI:
    config = config or load_engine_config()
    env = os.environ if env is None else env
    log_path = os.path.join(config.storage.log_dir, f"server_log_{TEST_NAME}.jsonl")
    logger = logger or JSONLLogger(log_path=log_path)
    services = services or EngineServices(config=config, logger=logger, env=env)

    rate_limiter = RateLimiter(
        requests=config.rate_limit.requests,
        window_seconds=config.rate_limit.window_seconds,
        enabled=config.rate_limit.enabled,
    )
    run_store = RunStore(path=config.storage.run_store_path, max_records=config.storage.run_store_max_records)
    artifact_writer = ArtifactWriter(
        output_dir=config.storage.output_dir,
        enabled=config.storage.persist_artifacts,
        logger=logger,
    )
    predictor_factory = predictor_factory or (lambda settings: PredictionExecutor(settings, logger=logger))

    app = FastAPI()

    # Allow CORS for the frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.services = services
    app.state.rate_limiter = rate_limiter
    app.state.run_store = run_store
    app.state.logger = logger

    # =====================================================================
    # REQUEST PIPELINE
    # =====================================================================

    def rate_limited(request: Request, prefix: str):
        identifier = f"{prefix}-{client_ip(request)}"
        result = rate_limiter.check(identifier)
        if result.success:
            return None, result.headers

        print(f"[Warning: rate limit exceeded for {identifier}]")
        logger.log_event("rate_limit_exceeded", {"identifier": identifier})
        response = JSONResponse(
            status_code=429,
            content={"error": RATE_LIMIT_MESSAGE, "retryAfter": result.retry_after},
            headers=result.headers,
        )
        return response, result.headers

    async def parse_body(request: Request, model: Type[BaseModel]):
        try:
            body = await request.json()
        except ValueError:
            return None, JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
        try:
            return model.model_validate(body), None
        except ValidationError as e:
            logger.log_event("invalid_request", {"path": request.url.path, "errors": json.loads(e.json())})
            return None, JSONResponse(
                status_code=400,
                content={"error": "Invalid request body", "details": json.loads(e.json())},
            )

    def completion_handler(run_id: str, artifact_name: str, artifact_key: str):
        def on_complete(event: CompleteEvent) -> None:
            run_store.complete(run_id, event.result)
            try:
                artifact_writer.write(run_id, artifact_name, event.result.get(artifact_key))
            except OSError as e:
                print(f"[Error: failed to persist {artifact_name} for run {run_id}: {e}]")
                logger.log_agent_error(agent_name="artifact_writer", error_message=str(e))
        return on_complete

    async def stream_endpoint(
        request: Request,
        prefix: str,
        model: Type[BaseModel],
        build_events: EventsBuilder,
        kind: str,
        artifact_key: str,
        budget_seconds: Optional[float] = None,
    ):
        limited, rate_headers = rate_limited(request, prefix)
        if limited is not None:
            return limited

        payload, invalid = await parse_body(request, model)
        if invalid is not None:
            return invalid

        missing = missing_credentials(env)
        if missing:
            print(f"[Error: AI service not configured, missing {', '.join(missing)}]")
            return JSONResponse(
                status_code=500,
                content={"error": "AI service not configured", "missing": missing},
            )

        run_id = uuid.uuid4().hex
        run_store.start(run_id, kind)
        print(f'{"="*60}\n{kind} run {run_id}\n{"="*60}')

        async def events() -> AsyncIterator[StreamEvent]:
            # Built inside the stream so construction failures surface as an error event
            async for event in build_events(payload, run_id):
                yield event

        body = event_stream(
            events(),
            budget_seconds=budget_seconds or config.stream.budget_seconds,
            on_complete=completion_handler(run_id, kind, artifact_key),
            on_error=lambda detail: run_store.fail(run_id, detail),
            logger=logger,
        )
        return StreamingResponse(
            body,
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **rate_headers, "X-Run-Id": run_id},
        )

    # =====================================================================
    # API ROUTES
    # =====================================================================

    @app.post("/ai/company-analysis")
    async def company_analysis(request: Request):
        def build(payload: ConversationRequest, run_id: str):
            return services.company_research_graph().stream(payload.to_langchain(), run_id=run_id)

        return await stream_endpoint(
            request, COMPANY_ANALYSIS_PREFIX, ConversationRequest, build,
            kind="company_research", artifact_key="compiled",
        )

    @app.post("/ai/orchestrator-agent")
    async def orchestrator_agent(request: Request):
        def build(payload: ConversationRequest, run_id: str):
            return services.rubric_scaffold_graph().stream(payload.to_langchain(), run_id=run_id)

        return await stream_endpoint(
            request, ORCHESTRATOR_AGENT_PREFIX, ConversationRequest, build,
            kind="rubric_scaffold", artifact_key="rubric",
        )

    @app.post("/ai/stream-attributes")
    async def stream_attributes(request: Request):
        def build(payload: AttributeRequest, run_id: str):
            return services.attribute_generator().stream(payload)

        return await stream_endpoint(
            request, STREAM_ATTRIBUTES_PREFIX, AttributeRequest, build,
            kind="attribute_rubric", artifact_key="attributes",
        )

    @app.post("/ai/stream-questions")
    async def stream_questions(request: Request):
        def build(payload: QuestionRequest, run_id: str):
            return services.question_generator().stream(payload)

        return await stream_endpoint(
            request, STREAM_QUESTIONS_PREFIX, QuestionRequest, build,
            kind="question_set", artifact_key="questions",
            budget_seconds=config.stream.question_budget_seconds,
        )

    @app.post("/ml/predict")
    async def ml_predict(request: Request):
        prediction, invalid = await parse_body(request, PredictionRequest)
        if invalid is not None:
            return invalid

        try:
            settings = LambdaSettings.from_env(env)
        except LambdaNotConfiguredError as e:
            print("[Warning: AWS Lambda not configured]")
            return JSONResponse(status_code=500, content={"error": str(e), "config": e.status})

        try:
            result = await run_in_threadpool(predictor_factory(settings).execute, prediction)
        except FunctionInitializingError as e:
            logger.log_agent_error(agent_name="ml_predict", error_message=str(e))
            return JSONResponse(
                status_code=503,
                content={"error": "Lambda is initializing; please retry shortly"},
            )
        except Exception as e:
            print(f"[Error: ML predict handler failed: {e}]")
            logger.log_agent_error(agent_name="ml_predict", error_message=str(e))
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

        return JSONResponse(status_code=200, content=result.model_dump(exclude_none=True))

    @app.get("/runs/{run_id}")
    async def get_run(run_id: str):
        record = run_store.get(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
        return record.model_dump()

    @app.get("/logs")
    async def get_logs():
        """Return the contents of the server log file"""
        try:
            if os.path.exists(logger.log_path):
                with open(logger.log_path, "r", encoding="utf-8") as f:
                    log_content = f.read()
                return {"logs": log_content}
            else:
                return {"logs": "Log file not found. No requests processed yet."}
        except OSError as e:
            return {"logs": f"Error reading logs: {str(e)}"}

    @app.post("/instructions/clear")
    async def clear_instructions():
        services.instruction_cache.clear()
        return {"cleared": True}

    @app.get("/")
    async def root():
        return {"message": "ksagen generation engine running."}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    print("\n" + "="*60)
    print("ksagen API available at: http://localhost:8000")
    print("="*60 + "\n")

    uvicorn.run(app, host="0.0.0.0", port=8000)
