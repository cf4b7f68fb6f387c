from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from llmgate.core.errors import HealthCheckError, ProviderError
from llmgate.core.ports import Provider
from llmgate.models.deployment import Deployment

logger = logging.getLogger(__name__)


@dataclass
class HealthReport:
    deployment_id: str
    healthy: bool
    latency_ms: int
    error: str = ""
    status_code: Optional[int] = None


async def check_deployment(adapter: Provider, deployment: Deployment) -> HealthReport:
    t0 = time.perf_counter()
    try:
        await adapter.health_check(deployment)
    except ProviderError as e:
        latency_ms = int((time.perf_counter() - t0) * 1000)
        status = e.status_code if isinstance(e, HealthCheckError) else None
        logger.info("Health check failed for %s: %s", deployment.id, e)
        return HealthReport(deployment.id, False, latency_ms, error=str(e), status_code=status)
    latency_ms = int((time.perf_counter() - t0) * 1000)
    logger.info("Health check passed for %s (%d ms)", deployment.id, latency_ms)
    return HealthReport(deployment.id, True, latency_ms)


async def check_deployments(
    adapters: Mapping[str, Provider],
    deployments: List[Deployment],
) -> Dict[str, HealthReport]:
    """
    Check a batch concurrently. Each adapter applies its own short deadline,
    so one slow backend cannot stall the rest.
    """
    missing = [d.id for d in deployments if d.id not in adapters]
    reports: Dict[str, HealthReport] = {
        dep_id: HealthReport(dep_id, False, 0, error="no adapter bound") for dep_id in missing
    }
    checked = [d for d in deployments if d.id in adapters]
    results = await asyncio.gather(*(check_deployment(adapters[d.id], d) for d in checked))
    for r in results:
        reports[r.deployment_id] = r
    return reports
