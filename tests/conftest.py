"""
Shared fixtures for the enactment engine tests
"""
import pytest

from enactment_engine.credentials import (
    AWSAccount,
    AzureAccount,
    GoogleAccount,
    IBMAccount,
    ProviderAccounts,
)
from enactment_engine.gateway import LocalGateway
from enactment_engine.identity import InvocationCounter
from enactment_engine.models import DataIn, DataOut, PropertyConstraint
from enactment_engine.monitoring import InMemoryLogStore
from enactment_engine.nodes import FunctionNode
from enactment_engine.runtime import EngineRuntime

AWS_ENDPOINT = "https://abc123.execute-api.us-east-1.amazonaws.com/default/hello"
GOOGLE_ENDPOINT = "https://europe-west1-demo.cloudfunctions.net/hello"
AZURE_ENDPOINT = "https://demo.azurewebsites.net/api/hello"
IBM_ENDPOINT = "https://eu-de.functions.appdomain.cloud/api/v1/web/ns/default/hello"


@pytest.fixture
def gateway():
    return LocalGateway()


@pytest.fixture
def log_store():
    return InMemoryLogStore()


@pytest.fixture
def all_accounts():
    return ProviderAccounts(
        google=GoogleAccount("google-key"),
        azure=AzureAccount("azure-key"),
        aws=AWSAccount("AKIA", "secret"),
        ibm=IBMAccount("user:pass"),
    )


@pytest.fixture
def runtime(gateway, log_store, all_accounts):
    return EngineRuntime(
        gateway=gateway,
        accounts=all_accounts,
        log_sink=log_store,
        counter=InvocationCounter(),
    )


@pytest.fixture
def function_node(runtime):
    """Factory for function nodes bound to the test runtime."""

    def make(
        name,
        endpoint,
        inputs=None,
        outputs=None,
        constraints=None,
        properties=None,
        execution_id=1,
        children=None,
        deployment=None,
    ):
        props = [PropertyConstraint("resource", endpoint)] + list(properties or [])
        return FunctionNode(
            name=name,
            type=name,
            deployment=deployment,
            properties=props,
            constraints=[PropertyConstraint(k, v) for k, v in (constraints or {}).items()],
            input=[DataIn(**spec) for spec in (inputs or [])],
            output=[DataOut(**spec) for spec in (outputs or [])],
            execution_id=execution_id,
            runtime=runtime,
            children=children,
        )

    return make
