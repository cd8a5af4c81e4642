"""
Rubric-scaffold capabilities.

These do no generation of their own: the orchestrating model writes the
rubric JSON in its final message, and the tools mark progress (`ksa_jobfit`,
`ksa_companyfit`), lay out the plan (`ksa_plan`) and check the merged JSON
text (`ksa_validator`).
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import Capability

REQUIRED_SECTIONS = ("KSA_JobFit", "CoreValues_CompanyFit")
EMPTY_PAYLOAD_ERROR = "Validator received empty JSON; send the merged KSA payload."


class ScaffoldContextInput(BaseModel):
    context: str = Field(description="Full company context JSON as string")


class KsaJobFitCapability(Capability):
    name = "ksa_jobfit"
    description = "Generate KSA_JobFit JSON (Knowledge, Skills, Abilities) using the provided company context."
    input_model = ScaffoldContextInput

    async def execute(self, args: ScaffoldContextInput) -> Dict[str, Any]:
        return {"note": "KSA_JobFit generated; see final response", "context": args.context}


class KsaCompanyFitCapability(Capability):
    name = "ksa_companyfit"
    description = "Generate CoreValues_CompanyFit JSON using the provided company context."
    input_model = ScaffoldContextInput

    async def execute(self, args: ScaffoldContextInput) -> Dict[str, Any]:
        return {"note": "CoreValues_CompanyFit generated; see final response", "context": args.context}


class KsaPlanInput(BaseModel):
    request: str = Field(description="The user's request, verbatim or summarized")
    context: Optional[str] = Field(default=None, description="Company context JSON as string")


class KsaPlanCapability(Capability):
    name = "ksa_plan"
    description = "Lay out the KSA generation plan for the request before any section is generated."
    input_model = KsaPlanInput

    async def execute(self, args: KsaPlanInput) -> Dict[str, Any]:
        context = (args.context or "").strip()
        return {
            "plan": {
                "request": args.request,
                "contextSummary": context[:280] if context else "No company context supplied",
                "steps": [
                    "ksa_jobfit: Knowledge, Skills and Abilities with 1-3 questions each",
                    "ksa_companyfit: one entry per company value with 2 questions each",
                    "ksa_validator: validate the merged JSON before replying",
                ],
            }
        }


class KsaValidatorInput(BaseModel):
    json_text: str = Field(default="", description="Merged KSA JSON payload as a string")


def validate_rubric_text(text: str) -> Dict[str, Any]:
    if not text or not text.strip():
        return {"valid": False, "error": EMPTY_PAYLOAD_ERROR, "missing": list(REQUIRED_SECTIONS)}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        return {"valid": False, "error": f"Invalid JSON: {e.msg}", "missing": []}

    if not isinstance(parsed, dict):
        return {"valid": False, "error": "Top-level JSON value must be an object", "missing": list(REQUIRED_SECTIONS)}

    missing: List[str] = [key for key in REQUIRED_SECTIONS if key not in parsed]
    if missing:
        return {"valid": False, "error": f"Missing sections: {', '.join(missing)}", "missing": missing}
    return {"valid": True, "missing": []}


class KsaValidatorCapability(Capability):
    name = "ksa_validator"
    description = "Validate the merged KSA_JobFit and CoreValues_CompanyFit JSON text before the final reply."
    input_model = KsaValidatorInput

    def loading_echo(self, raw_args: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def execute(self, args: KsaValidatorInput) -> Dict[str, Any]:
        return validate_rubric_text(args.json_text)
