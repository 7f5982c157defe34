"""Route table of the service.

Only infrastructure routes live here: the liveness probe and the versioned
API router, which business modules mount their routers onto.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from backbone.api.constants import API_V1_PREFIX, HEALTH_PATH
from backbone.api.schemas.envelope import HealthStatus, SuccessEnvelope
from backbone.api.utils.responses import EnvelopeCodec, get_codec

health_router = APIRouter(tags=["health"])


@health_router.get(
    HEALTH_PATH,
    responses={200: {"model": SuccessEnvelope[HealthStatus]}},
)
async def health(codec: Annotated[EnvelopeCodec, Depends(get_codec)]) -> Response:
    """Liveness probe for load balancers and orchestrators.

    Always answers 200 while the process is serving requests.
    """
    return codec.ok(HealthStatus(status="ok"))


def build_api_router() -> APIRouter:
    """Return the versioned API router.

    No business routes are registered yet; every path under the prefix falls
    through to the NOT_FOUND envelope.
    """
    return APIRouter(prefix=API_V1_PREFIX)
