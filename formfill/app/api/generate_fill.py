"""Generate-fill endpoints.

The handlers only read the request; authentication, admission, validation,
caching and the upstream call all happen in FillPipeline.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from formfill.app.api.dependencies import get_pipeline
from formfill.app.core.logging import get_logger
from formfill.app.middleware.auth import get_api_key
from formfill.app.schemas import GenerateFillResponse
from formfill.app.services.pipeline import FillPipeline

logger = get_logger(__name__)

router = APIRouter(tags=["generate-fill"])


async def read_body_limited(request: Request, max_bytes: int) -> bytes:
    """Read the request body, stopping once it exceeds ``max_bytes``.

    At most one chunk past the limit is buffered, which is enough for the
    size check to reject the request without holding an oversized body.
    """
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        chunks.append(chunk)
        size += len(chunk)
        if size > max_bytes:
            break
    return b"".join(chunks)


async def _handle(request: Request, pipeline: FillPipeline) -> JSONResponse:
    raw_body = await read_body_limited(request, pipeline.max_request_size)
    outcome = await pipeline.handle(get_api_key(request), raw_body)
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers=outcome.headers,
    )


@router.post("/api/v1/generate-fill", response_model=GenerateFillResponse)
async def generate_fill(
    request: Request,
    pipeline: FillPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Generate values for a batch of form fields."""
    return await _handle(request, pipeline)


@router.post("/api/generate-fill", response_model=GenerateFillResponse, deprecated=True)
async def generate_fill_legacy(
    request: Request,
    pipeline: FillPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Unversioned alias of /api/v1/generate-fill."""
    logger.warning(
        "Using deprecated endpoint /api/generate-fill, please use /api/v1/generate-fill"
    )
    return await _handle(request, pipeline)
