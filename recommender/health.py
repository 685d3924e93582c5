"""
Health Check - probes the embedding provider and the vector store without doing real work.

Overall status:
    unavailable  both probed components are unavailable
    degraded     at least one component is degraded or unavailable
    healthy      otherwise

The cache is reported for information only and never affects the overall status.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from recommender.errors import RecommendationEngineError

logger = logging.getLogger(__name__)


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class ComponentHealth:
    status: HealthState
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status.value}
        if self.latency_ms is not None:
            payload["latencyMs"] = round(self.latency_ms, 1)
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class HealthStatus:
    status: HealthState
    components: Dict[str, ComponentHealth] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "components": {name: c.to_dict() for name, c in self.components.items()},
        }


def probe_component(name: str, probe: Optional[Callable[[], bool]], degraded_latency_ms: float) -> ComponentHealth:
    """Run one probe. Never raises: any failure maps to ``unavailable``."""
    if probe is None:
        return ComponentHealth(HealthState.UNAVAILABLE, error="not configured")

    started = time.perf_counter()
    try:
        ready = probe()
    except RecommendationEngineError as e:
        logger.warning(f"Health probe {name} failed: {e.log_fields()}")
        return ComponentHealth(HealthState.UNAVAILABLE, (time.perf_counter() - started) * 1000, e.message)
    except Exception as e:
        # Probes must never break the health endpoint
        logger.warning(f"Health probe {name} failed unexpectedly: {e!r}")
        return ComponentHealth(HealthState.UNAVAILABLE, (time.perf_counter() - started) * 1000, str(e))

    latency_ms = (time.perf_counter() - started) * 1000
    if not ready:
        return ComponentHealth(HealthState.DEGRADED, latency_ms, "reachable but not ready")
    if latency_ms > degraded_latency_ms:
        return ComponentHealth(HealthState.DEGRADED, latency_ms, "slow response")
    return ComponentHealth(HealthState.HEALTHY, latency_ms)


def aggregate_status(llm: ComponentHealth, vector_db: ComponentHealth) -> HealthState:
    if llm.status == HealthState.UNAVAILABLE and vector_db.status == HealthState.UNAVAILABLE:
        return HealthState.UNAVAILABLE
    if llm.status != HealthState.HEALTHY or vector_db.status != HealthState.HEALTHY:
        return HealthState.DEGRADED
    return HealthState.HEALTHY


def check_health(
    llm_probe: Optional[Callable[[], bool]],
    vector_probe: Optional[Callable[[], bool]],
    cache_probe: Optional[Callable[[], bool]] = None,
    degraded_latency_ms: float = 1500.0,
) -> HealthStatus:
    llm = probe_component("llm", llm_probe, degraded_latency_ms)
    vector_db = probe_component("vectorDB", vector_probe, degraded_latency_ms)
    components = {"llm": llm, "vectorDB": vector_db}
    if cache_probe is not None:
        components["cache"] = probe_component("cache", cache_probe, degraded_latency_ms)

    status = HealthStatus(aggregate_status(llm, vector_db), components)
    logger.info(f"Health check: {status.status.value} (llm={llm.status.value}, vectorDB={vector_db.status.value})")
    return status
