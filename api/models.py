"""
API request and response models for psst REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Secret values travel as base64 strings, the same encoding Kubernetes uses in
a Secret's data field.
"""

import base64
import binascii
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import Report, Secret

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DecodedKindEnum(str, Enum):
    tls = "tls"
    helm = "helm"
    raw = "raw"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SecretPayload(BaseModel):
    """A Secret as it appears in a Kubernetes manifest."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=253)
    namespace: str = Field(default="", max_length=63)
    type: str = Field(default="Opaque", max_length=253)
    data: dict[str, str] = Field(default_factory=dict, description="Key to base64-encoded value.")
    annotations: dict[str, str] = Field(default_factory=dict)

    @field_validator("data")
    @classmethod
    def validate_base64(cls, values: dict[str, str]) -> dict[str, str]:
        """Reject values that are not standard base64 before any decoding runs."""
        for key, value in values.items():
            try:
                base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"data[{key!r}] is not valid base64") from e
        return values

    def to_secret(self) -> Secret:
        return Secret(
            name=self.name,
            namespace=self.namespace,
            type=self.type,
            data={k: base64.b64decode(v, validate=True) for k, v in self.data.items()},
            annotations=dict(self.annotations),
        )


class DecodeRequest(BaseModel):
    """Request body for POST /api/v1/secrets/decode."""

    secret: SecretPayload
    raw: bool = False
    key: str = Field(default="", max_length=253)
    dns_name: Optional[str] = Field(
        default=None,
        max_length=253,
        description="Expected DNS name. Omit to use the secret's annotation; empty string skips the check.",
    )
    at: Optional[datetime] = Field(default=None, description="Reference time. Naive values are UTC.")

    @field_validator("at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ReportRowModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: str
    indent: int = 0


class ReportModel(BaseModel):
    """Certificate report rows, in display order."""

    model_config = ConfigDict(frozen=True)

    title: str
    rows: list[ReportRowModel]

    @classmethod
    def from_report(cls, report: Report) -> "ReportModel":
        return cls(
            title=report.title,
            rows=[ReportRowModel(label=r.label, value=r.value, indent=r.indent) for r in report.rows],
        )


class DecodeResponse(BaseModel):
    """Exactly one of report, text or value_b64 is set, matching kind."""

    model_config = ConfigDict(frozen=True)

    kind: DecodedKindEnum
    report: Optional[ReportModel] = None
    text: Optional[str] = None
    key: Optional[str] = None
    value_b64: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
