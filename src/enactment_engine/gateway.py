"""Invocation gateways performing the actual function calls."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import httpx

from .credentials import AzureAccount, GoogleAccount, IBMAccount, ProviderAccounts
from .errors import InvocationFailure
from .models import GatewayResult, Provider

LOGGER = logging.getLogger("enactment.gateway")

Handler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class InvocationGateway(ABC):
    """Calls one function endpoint and reports payload and round trip time."""

    @abstractmethod
    async def invoke(self, endpoint: str, inputs: Mapping[str, Any]) -> GatewayResult:
        """Invoke ``endpoint`` with ``inputs``; raise InvocationFailure on errors."""

    async def aclose(self) -> None:
        return None


class HttpGateway(InvocationGateway):
    """Invokes HTTP-triggered functions by POSTing the inputs as JSON."""

    def __init__(
        self,
        accounts: Optional[ProviderAccounts] = None,
        timeout: float = 300.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.accounts = accounts or ProviderAccounts()
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _auth(self, endpoint: str) -> Dict[str, Any]:
        account = self.accounts.get(Provider.detect(endpoint))
        if isinstance(account, AzureAccount):
            return {"headers": {"x-functions-key": account.function_key}}
        if isinstance(account, GoogleAccount):
            return {"headers": {"Authorization": f"Bearer {account.service_account_key}"}}
        if isinstance(account, IBMAccount):
            user, _, password = account.api_key.partition(":")
            if password:
                return {"auth": (user, password)}
            return {"headers": {"X-Require-Whisk-Auth": account.api_key}}
        return {}

    async def invoke(self, endpoint: str, inputs: Mapping[str, Any]) -> GatewayResult:
        if endpoint.startswith("arn:"):
            raise InvocationFailure(endpoint, "ARN endpoints are not reachable over HTTP")
        start = time.time()
        try:
            response = await self._client.post(endpoint, json=dict(inputs), **self._auth(endpoint))
        except httpx.HTTPError as exc:
            raise InvocationFailure(endpoint, str(exc) or type(exc).__name__) from exc
        rtt = int((time.time() - start) * 1000)
        if response.status_code >= 400:
            raise InvocationFailure(endpoint, f"HTTP {response.status_code}: {response.text[:200]}")
        return GatewayResult(payload=response.text, rtt=rtt)

    async def aclose(self) -> None:
        await self._client.aclose()


class LocalGateway(InvocationGateway):
    """In-process gateway dispatching endpoints to registered Python handlers."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Handler] = {}

    def register(self, endpoint: str, handler: Handler) -> None:
        if not callable(handler):
            raise ValueError(f"Handler for endpoint {endpoint} must be callable")
        self.handlers[endpoint] = handler
        LOGGER.debug("Registered local handler for %s", endpoint)

    async def invoke(self, endpoint: str, inputs: Mapping[str, Any]) -> GatewayResult:
        handler = self.handlers.get(endpoint)
        if handler is None:
            raise InvocationFailure(endpoint, "no handler registered")
        start = time.time()
        try:
            if asyncio.iscoroutinefunction(handler):
                result = await handler(dict(inputs))
            else:
                # sync handlers run in a worker thread
                result = await asyncio.to_thread(handler, dict(inputs))
            if asyncio.iscoroutine(result):
                result = await result
        except InvocationFailure:
            raise
        except Exception as exc:
            raise InvocationFailure(endpoint, str(exc)) from exc
        rtt = int((time.time() - start) * 1000)
        if result is None or isinstance(result, str):
            payload = result
        else:
            payload = json.dumps(result)
        return GatewayResult(payload=payload, rtt=rtt)
