import json
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import boto3
from botocore.config import Config
from pydantic import BaseModel, ConfigDict, Field

from ..utils.logger import JSONLLogger
from ..utils.retry import call_with_cold_start_retry, is_cold_start_error

DEFAULT_FUNCTION_NAME = "sklearn-executor"
DEFAULT_REGION = "us-east-1"


class LambdaNotConfiguredError(RuntimeError):
    def __init__(self, status: Dict[str, Any]):
        self.status = status
        super().__init__("AWS Lambda not configured")


class FunctionInitializingError(RuntimeError):
    """The delegated function was still initializing after every retry."""


class PredictionRequest(BaseModel):
    code: str = Field(min_length=1, description="Python code to execute")
    testData: Dict[str, Any] = Field(default_factory=dict)


class PredictionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    traceback: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None


def lambda_config_status(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if env is None else env
    has_region = bool(env.get("AWS_REGION"))
    has_access_key = bool(env.get("AWS_ACCESS_KEY_ID"))
    has_secret_key = bool(env.get("AWS_SECRET_ACCESS_KEY"))
    has_function = bool(env.get("AWS_LAMBDA_FUNCTION_NAME"))
    return {
        "region": env.get("AWS_REGION") or "not set",
        "functionName": env.get("AWS_LAMBDA_FUNCTION_NAME") or "not set",
        "hasAccessKey": has_access_key,
        "hasSecretKey": has_secret_key,
        "configured": has_region and has_access_key and has_secret_key and has_function,
    }


@dataclass
class LambdaSettings:
    region: str
    function_name: str

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LambdaSettings":
        env = os.environ if env is None else env
        status = lambda_config_status(env)
        if not status["configured"]:
            raise LambdaNotConfiguredError(status)
        return cls(
            region=env.get("AWS_REGION") or DEFAULT_REGION,
            function_name=env.get("AWS_LAMBDA_FUNCTION_NAME") or DEFAULT_FUNCTION_NAME,
        )


def decode_payload(raw: bytes) -> PredictionResult:
    """The function replies with an API-gateway style envelope whose body may itself be JSON text."""
    envelope = json.loads(raw.decode("utf-8"))
    body = envelope.get("body", envelope) if isinstance(envelope, dict) else envelope
    if isinstance(body, str):
        body = json.loads(body)
    return PredictionResult.model_validate(body)


class PredictionExecutor:
    """Runs submitted code on a remote AWS Lambda function and returns its result."""

    def __init__(
        self,
        settings: LambdaSettings,
        client: Any = None,
        logger: Optional[JSONLLogger] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings
        self.client = client or boto3.client(
            "lambda",
            region_name=settings.region,
            config=Config(read_timeout=120, retries={"max_attempts": 0}),
        )
        self.logger = logger
        self.sleep = sleep

    def _invoke(self, request: PredictionRequest) -> Dict[str, Any]:
        return self.client.invoke(
            FunctionName=self.settings.function_name,
            Payload=json.dumps(request.model_dump()).encode("utf-8"),
        )

    def execute(self, request: PredictionRequest) -> PredictionResult:
        print(f"\t* Invoking {self.settings.function_name} ({len(request.code)} chars of code)")
        retry_kwargs = {"sleep": self.sleep} if self.sleep is not None else {}
        try:
            response = call_with_cold_start_retry(self._invoke, request, **retry_kwargs)
        except Exception as e:
            if is_cold_start_error(e):
                raise FunctionInitializingError(str(e)) from e
            raise

        if response.get("FunctionError"):
            result = PredictionResult(
                success=False,
                error="Lambda function execution failed",
                error_type=response["FunctionError"],
            )
            if self.logger is not None:
                self.logger.log_event("prediction_function_error", result.model_dump(exclude_none=True))
            return result

        payload = response.get("Payload")
        if payload is None:
            raise RuntimeError("No response payload from Lambda")

        raw = payload.read() if hasattr(payload, "read") else payload
        result = decode_payload(raw)
        if self.logger is not None:
            self.logger.log_event("prediction_complete", {
                "success": result.success,
                "has_result": result.result is not None,
                "has_error": bool(result.error),
            })
        return result
