from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from reviewgate.core.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    get_circuit_breaker,
)
from reviewgate.core.metrics import ReviewMetrics, get_metrics

router = APIRouter()


@router.get("/")
async def welcome():
    return {"message": "The ReviewGate API is live!"}


@router.get("/health")
async def health(
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    metrics: ReviewMetrics = Depends(get_metrics),
):
    """Reports DOWN (HTTP 503) while the AI circuit breaker is OPEN."""
    breaker_health = breaker.health()
    is_down = breaker_health.state == CircuitState.OPEN
    return JSONResponse(
        status_code=503 if is_down else 200,
        content={
            "status": "DOWN" if is_down else "UP",
            "breakerState": breaker_health.state.value,
            "failureRate": round(breaker_health.failure_rate, 2),
            "reviews": metrics.snapshot(),
        },
    )
