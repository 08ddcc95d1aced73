"""Request models and response shaping for the dashboard API."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from src.backend.dashboard.integrations.tenant_directory import Account, Tenant
from src.backend.dashboard.use_cases.batch_updates import BatchResult
from src.backend.dashboard.use_cases.record_mapper import Violation, ViolationTable
from src.backend.dashboard.use_cases.sheet_store import ClientOverview, ResolveOutcome

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignInTargetRequest(BaseModel):
    redirect: str | None = None


class ViolationUpdateRequest(BaseModel):
    subdomain: str
    violation_id: str
    tab: ViolationTable = ViolationTable.ACTIVE
    updates: dict[str, Any]


class ResolveViolationRequest(BaseModel):
    subdomain: str
    violation_id: str


class BulkUpdateItem(BaseModel):
    violation_id: str = ""
    updates: dict[str, Any] = Field(default_factory=dict)


class BulkUpdateRequest(BaseModel):
    subdomain: str
    tab: ViolationTable = ViolationTable.ACTIVE
    updates: list[BulkUpdateItem]


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------


def ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": jsonable_encoder(data)}


def violation_to_dict(v: Violation) -> dict[str, Any]:
    out = asdict(v)
    out["documents_needed"] = v.documents_needed_list
    return out


def tenant_to_dict(t: Tenant) -> dict[str, Any]:
    return asdict(t)


def account_to_dict(a: Account) -> dict[str, Any]:
    return asdict(a)


def client_to_dict(c: ClientOverview) -> dict[str, Any]:
    return asdict(c)


def resolve_outcome_to_dict(o: ResolveOutcome) -> dict[str, Any]:
    return asdict(o)


def batch_result_to_dict(result: BatchResult) -> dict[str, Any]:
    return {
        "ok": result.ok,
        "total": result.total,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "updated_at": result.updated_at,
        "results": [
            {
                "violation_id": r.violation_id,
                "success": r.ok,
                "error": r.error,
                "error_kind": r.error_kind,
                "fields_updated": list(r.fields_updated),
            }
            for r in result.results
        ],
    }
