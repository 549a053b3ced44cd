"""
api/routes/v1/secrets.py -- Secret decoding route for the psst REST API.

The handler maps the request onto core.codecs.decode_secret and returns the
result as structured data: report rows stay rows, so clients render them
however they like. Trust verification uses app.state.trust_store, loaded
once in the lifespan.

Decoding errors propagate as PsstError; api/main.py turns them into the
error envelope with a 400 or 404 status.

Rate limits are applied via slowapi; the handler must accept a `request`
argument for @limiter.limit() to find the client address.
"""

import base64

from fastapi import APIRouter, Request

from api.limiter import decode_rate_limit, limiter
from api.models import DecodedKindEnum, DecodeRequest, DecodeResponse, ReportModel
from core.codecs import DecodeOptions, RawValue, decode_secret
from core.models import Report

router = APIRouter()


@router.post("/secrets/decode", response_model=DecodeResponse)
@limiter.limit(decode_rate_limit)
def post_decode_secret(request: Request, body: DecodeRequest) -> DecodeResponse:
    """Decode one secret: a Helm release, a TLS certificate report, or a raw value.

    Body:
        secret   -- name, namespace, type, data (base64 values), annotations
        raw      -- return the selected key's value unmodified
        key      -- key to return in raw mode (optional when there is one key)
        dns_name -- expected DNS name for the TLS leaf
        at       -- reference time for validity and trust checks
    """
    options = DecodeOptions(
        raw=body.raw,
        key=body.key,
        interactive=False,
        current_time=body.at,
        dns_name=body.dns_name,
        dns_name_annotation=request.app.state.settings.dns_name_annotation,
        trust_store=request.app.state.trust_store,
    )
    decoded = decode_secret(body.secret.to_secret(), options)

    if isinstance(decoded, RawValue):
        return DecodeResponse(
            kind=DecodedKindEnum.raw,
            key=decoded.key,
            value_b64=base64.b64encode(decoded.value).decode("ascii"),
        )
    if isinstance(decoded, Report):
        return DecodeResponse(kind=DecodedKindEnum.tls, report=ReportModel.from_report(decoded))
    return DecodeResponse(kind=DecodedKindEnum.helm, text=decoded.text)
