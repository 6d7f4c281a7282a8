"""Acknowledgement endpoint; every hit is counted in http_requests_total."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from prom_otel.api.deps import count_request

ACKNOWLEDGEMENT = "Hello from prom-otel!"

router = APIRouter(tags=["root"])


@router.get("/", response_class=PlainTextResponse, dependencies=[Depends(count_request)])
async def root() -> str:
    return ACKNOWLEDGEMENT
