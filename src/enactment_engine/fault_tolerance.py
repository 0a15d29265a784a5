"""Fault tolerant invocation with retries, provider failover and timing constraints."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .constraints import Clock, TimingConstraintEvaluator
from .credentials import ProviderAccounts
from .errors import (
    EnactmentError,
    InvocationFailure,
    NoProvidersConfigured,
    TimingConstraintViolation,
)
from .gateway import InvocationGateway
from .models import FunctionInvocation, GatewayResult, InvocationEvent, Provider, RunType
from .monitoring import InvocationLogSink, record_invocation
from .output_parser import has_error_marker

LOGGER = logging.getLogger("enactment.fault_tolerance")


@dataclass(frozen=True)
class FailoverCandidate:
    endpoint: str
    provider: Optional[Provider]


class FaultToleranceEngine:
    """Invokes functions over the configured providers until one attempt succeeds.

    Any non-empty subset of the four providers is accepted. The primary endpoint
    is always tried first; alternatives declared with ``FT-AltPlan-*`` follow
    when their provider has an account. Every candidate gets ``1 + FT-Retries``
    attempts, each checked against the node's timing constraints.
    """

    def __init__(
        self,
        accounts: ProviderAccounts,
        gateway: InvocationGateway,
        log_sink: InvocationLogSink,
        clock: Clock = datetime.now,
        run_type: RunType = RunType.EXECUTION,
    ) -> None:
        if accounts.is_empty:
            raise NoProvidersConfigured("Fault tolerant invocation needs at least one provider account")
        self.accounts = accounts
        self.gateway = gateway
        self.log_sink = log_sink
        self.clock = clock
        self.run_type = run_type

    @property
    def providers(self) -> List[Provider]:
        return list(self.accounts.configured())

    def plan(self, invocation: FunctionInvocation) -> List[FailoverCandidate]:
        candidates = [FailoverCandidate(invocation.endpoint, Provider.detect(invocation.endpoint))]
        seen = {invocation.endpoint}
        for endpoint in invocation.constraints.policy.alternatives:
            if endpoint in seen:
                continue
            provider = Provider.detect(endpoint)
            if not self.accounts.has(provider):
                LOGGER.info(
                    "Skipping alternative %s, provider %s is not configured",
                    endpoint,
                    provider.value if provider else "unknown",
                )
                continue
            seen.add(endpoint)
            candidates.append(FailoverCandidate(endpoint, provider))
        return candidates

    async def invoke(self, invocation: FunctionInvocation) -> GatewayResult:
        evaluator = TimingConstraintEvaluator(invocation.constraints.timing, self.clock)
        attempts = 1 + invocation.constraints.policy.retries
        last_error: Optional[EnactmentError] = None
        for candidate in self.plan(invocation):
            for attempt in range(1, attempts + 1):
                try:
                    return await self._attempt(candidate.endpoint, invocation, evaluator)
                except (InvocationFailure, TimingConstraintViolation) as exc:
                    last_error = exc
                    LOGGER.warning(
                        "Attempt %d/%d of %s on %s failed: %s",
                        attempt,
                        attempts,
                        invocation.node_name,
                        candidate.endpoint,
                        exc,
                    )
        if last_error is None:  # pragma: no cover - plan always holds the primary endpoint
            raise InvocationFailure(invocation.endpoint, "no failover candidate")
        raise last_error

    async def _attempt(
        self, endpoint: str, invocation: FunctionInvocation, evaluator: TimingConstraintEvaluator
    ) -> GatewayResult:
        started_at = self.clock()
        start = time.time()
        payload: Optional[str] = None
        try:
            evaluator.check_start(endpoint, started_at)
            budget, violation = evaluator.time_budget(endpoint, started_at)
            try:
                result = await asyncio.wait_for(
                    self.gateway.invoke(endpoint, invocation.inputs), timeout=budget
                )
            except asyncio.TimeoutError:
                if violation is None:
                    raise
                raise violation from None
            payload = result.payload
            elapsed = int((time.time() - start) * 1000)
            evaluator.check_finish(endpoint, self.clock(), elapsed)
            if has_error_marker(payload):
                raise InvocationFailure(endpoint, f"function reported an error: {payload[:200]}")
        except (InvocationFailure, TimingConstraintViolation):
            self._record(
                invocation, InvocationEvent.FUNCTION_FAILED, endpoint, payload,
                int((time.time() - start) * 1000), False, started_at,
            )
            raise
        self._record(invocation, InvocationEvent.FUNCTION_END, endpoint, payload, result.rtt, True, started_at)
        return result

    def _record(
        self,
        invocation: FunctionInvocation,
        event: InvocationEvent,
        endpoint: str,
        payload: Optional[str],
        rtt: int,
        success: bool,
        started_at: datetime,
    ) -> None:
        record_invocation(
            self.log_sink,
            invocation,
            event=event,
            endpoint=endpoint,
            payload=payload,
            rtt=rtt,
            success=success,
            started_at=started_at,
            run_type=self.run_type,
        )
