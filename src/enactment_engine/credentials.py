"""Provider accounts and the credentials file loader."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from .models import Provider

LOGGER = logging.getLogger("enactment.credentials")

CREDENTIAL_KEYS = (
    "aws_access_key_id",
    "aws_secret_access_key",
    "aws_session_token",
    "google_sa_key",
    "azure_key",
    "ibm_api_key",
)


@dataclass(frozen=True)
class AWSAccount:
    access_key: str
    secret_key: str
    session_token: Optional[str] = None


@dataclass(frozen=True)
class GoogleAccount:
    service_account_key: str


@dataclass(frozen=True)
class AzureAccount:
    function_key: str


@dataclass(frozen=True)
class IBMAccount:
    api_key: str


Account = Union[AWSAccount, GoogleAccount, AzureAccount, IBMAccount]


@dataclass(frozen=True)
class ProviderAccounts:
    """Read-only set of the provider accounts present for this process."""

    google: Optional[GoogleAccount] = None
    azure: Optional[AzureAccount] = None
    aws: Optional[AWSAccount] = None
    ibm: Optional[IBMAccount] = None

    def configured(self) -> Dict[Provider, Account]:
        accounts: Dict[Provider, Account] = {}
        if self.google is not None:
            accounts[Provider.GOOGLE] = self.google
        if self.azure is not None:
            accounts[Provider.AZURE] = self.azure
        if self.aws is not None:
            accounts[Provider.AWS] = self.aws
        if self.ibm is not None:
            accounts[Provider.IBM] = self.ibm
        return accounts

    def has(self, provider: Optional[Provider]) -> bool:
        return provider is not None and provider in self.configured()

    def get(self, provider: Optional[Provider]) -> Optional[Account]:
        if provider is None:
            return None
        return self.configured().get(provider)

    @property
    def is_empty(self) -> bool:
        return not self.configured()


def _read_file(path: str) -> Dict[str, Optional[str]]:
    if not os.path.isfile(path):
        LOGGER.error("Credentials file %s not found, no provider accounts loaded from it", path)
        return {}
    try:
        return dict(dotenv_values(path))
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Could not read credentials file %s: %s", path, exc)
        return {}


def load_accounts(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> ProviderAccounts:
    """Load the provider accounts from ``path`` and the environment.

    Environment variables named like the upper-cased file keys take precedence.
    A provider whose credentials are missing or incomplete stays unconfigured.
    """
    values = _read_file(path) if path else {}
    env = os.environ if environ is None else environ

    def lookup(key: str) -> Optional[str]:
        value = env.get(key.upper()) or values.get(key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    aws: Optional[AWSAccount] = None
    access_key, secret_key = lookup("aws_access_key_id"), lookup("aws_secret_access_key")
    if access_key and secret_key:
        aws = AWSAccount(access_key, secret_key, lookup("aws_session_token"))
    elif access_key or secret_key:
        LOGGER.warning("Incomplete AWS credentials, AWS stays unconfigured")

    google_key = lookup("google_sa_key")
    azure_key = lookup("azure_key")
    ibm_key = lookup("ibm_api_key")
    accounts = ProviderAccounts(
        google=GoogleAccount(google_key) if google_key else None,
        azure=AzureAccount(azure_key) if azure_key else None,
        aws=aws,
        ibm=IBMAccount(ibm_key) if ibm_key else None,
    )
    LOGGER.info(
        "Configured provider accounts: %s",
        ", ".join(p.value for p in accounts.configured()) or "none",
    )
    return accounts
