"""SSM Parameter Store access for processor credentials.

Parameters live under ``/shop/{environment}/...``; today the only one is
the CoinGate auth token at ``/shop/{environment}/coingate/auth_token``.
"""

import logging
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

PARAMETER_ROOT = "/shop"

_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "AccessDeniedException": (
        "Access denied to SSM parameter: {name}. "
        "Check IAM permissions for ssm:GetParameter."
    ),
}


def parameter_path(environment: str, *parts: str) -> str:
    """Build an environment-scoped parameter name.

    Args:
        environment: Environment name (dev, prod)
        *parts: Path segments below the environment

    Returns:
        Parameter name like /shop/dev/coingate/auth_token
    """
    return "/".join([PARAMETER_ROOT, environment, *parts])


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""


class SSMService:
    """Reads SecureString parameters and keeps them for the process lifetime.

    Usage:
        token = get_ssm_service().get_parameter(
            parameter_path("dev", "coingate", "auth_token")
        )
    """

    def __init__(self, client: object | None = None) -> None:
        """Initialize with an SSM client.

        Args:
            client: boto3 SSM client, created from the default session if omitted
        """
        self._client = client or boto3.client("ssm")
        self._values: dict[str, str] = {}

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value of a parameter.

        Args:
            name: Full parameter path
            use_cache: Return a previously fetched value without calling SSM

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If the parameter cannot be read.
        """
        if use_cache and name in self._values:
            return self._values[name]

        logger.info("Fetching SSM parameter: %s", name)
        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)  # type: ignore[attr-defined]
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            template = _ERROR_MESSAGES.get(code, "Failed to retrieve SSM parameter {name}: {error}")
            raise SSMServiceError(template.format(name=name, error=e)) from e

        value: str = response["Parameter"]["Value"]
        self._values[name] = value
        return value


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the process-wide SSMService.

    Call ``get_ssm_service.cache_clear()`` to drop it (tests).
    """
    return SSMService()
