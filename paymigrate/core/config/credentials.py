"""Credential providers for live (sandbox) validation.

The migration pipeline never inspects credential storage; it only asks a
provider whether usable credentials exist, which decides whether live
validation runs at all.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PUBLIC_KEY_PATTERN = re.compile(r"^pk_[a-zA-Z0-9_]{24,}$")
SECRET_KEY_PATTERN = re.compile(r"^sk_[a-zA-Z0-9_]{24,}$")

PUBLIC_KEY_ENV = "TARGETPAY_PUBLIC_KEY"
SECRET_KEY_ENV = "TARGETPAY_SECRET_KEY"
ENVIRONMENT_ENV = "TARGETPAY_ENVIRONMENT"


@dataclass(frozen=True)
class TargetCredentials:
    public_key: str
    secret_key: str
    environment: str = "sandbox"

    def is_well_formed(self) -> bool:
        """Check key prefixes and the environment name."""
        return (
            bool(PUBLIC_KEY_PATTERN.match(self.public_key))
            and bool(SECRET_KEY_PATTERN.match(self.secret_key))
            and self.environment in ("sandbox", "production")
        )

    def masked(self) -> dict:
        return {
            "public_key": self.public_key[:8] + "***",
            "secret_key": "sk_***",
            "environment": self.environment,
        }


class CredentialProvider(ABC):
    """Source of target API credentials."""

    @abstractmethod
    def get_credentials(self) -> Optional[TargetCredentials]:
        """Return credentials, or ``None`` when none are configured."""

    def has_credentials(self) -> bool:
        creds = self.get_credentials()
        return creds is not None and creds.is_well_formed()


class EnvCredentialProvider(CredentialProvider):
    """Reads credentials from the environment, loading ``.env`` first."""

    def __init__(self, dotenv_path: Optional[str] = None):
        load_dotenv(dotenv_path)

    def get_credentials(self) -> Optional[TargetCredentials]:
        public_key = os.getenv(PUBLIC_KEY_ENV)
        secret_key = os.getenv(SECRET_KEY_ENV)
        if not public_key or not secret_key:
            return None

        creds = TargetCredentials(
            public_key=public_key,
            secret_key=secret_key,
            environment=os.getenv(ENVIRONMENT_ENV, "sandbox"),
        )
        if not creds.is_well_formed():
            logger.warning(f"Ignoring malformed target credentials: {creds.masked()}")
            return None
        return creds
