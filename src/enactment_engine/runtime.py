"""Shared collaborators of one workflow run."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .config import EngineSettings
from .constraints import Clock
from .credentials import ProviderAccounts, load_accounts
from .fault_tolerance import FaultToleranceEngine
from .gateway import HttpGateway, InvocationGateway, LocalGateway
from .identity import INVOCATION_COUNTER, InvocationCounter
from .models import RunType
from .monitoring import EventLogger, InvocationLogSink, MetricsRecorder

# (region, used services) -> simulated round trip time of those services in ms
ServiceRttEstimator = Callable[[Optional[str], List[str]], int]


def no_service_rtt(region: Optional[str], services: List[str]) -> int:
    return 0


@dataclass
class EngineRuntime:
    gateway: InvocationGateway = field(default_factory=LocalGateway)
    accounts: ProviderAccounts = field(default_factory=ProviderAccounts)
    log_sink: InvocationLogSink = field(default_factory=EventLogger)
    metrics: MetricsRecorder = field(default_factory=MetricsRecorder)
    counter: InvocationCounter = INVOCATION_COUNTER
    settings: EngineSettings = field(default_factory=EngineSettings)
    service_rtt: ServiceRttEstimator = no_service_rtt
    clock: Clock = datetime.now
    run_type: RunType = RunType.EXECUTION
    _fault_tolerance: Optional[FaultToleranceEngine] = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        gateway: Optional[InvocationGateway] = None,
        log_sink: Optional[InvocationLogSink] = None,
    ) -> "EngineRuntime":
        accounts = load_accounts(settings.credentials_path)
        return cls(
            gateway=gateway or HttpGateway(accounts, timeout=settings.http_timeout),
            accounts=accounts,
            log_sink=log_sink or EventLogger(),
            settings=settings,
        )

    def fault_tolerance(self) -> FaultToleranceEngine:
        """Return the fault tolerance engine, raising NoProvidersConfigured without accounts."""
        if self._fault_tolerance is None:
            self._fault_tolerance = FaultToleranceEngine(
                self.accounts, self.gateway, self.log_sink, clock=self.clock, run_type=self.run_type
            )
        return self._fault_tolerance
