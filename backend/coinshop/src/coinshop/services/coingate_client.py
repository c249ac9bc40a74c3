"""CoinGate merchant API client for order lookups and creation.

The client is constructed once at service startup (see
``create_coingate_client``) and shared read-only afterwards. All network
calls are bounded by an httpx timeout; transport problems surface as
RemoteOrderClientError so callers can treat them as transient.
"""

import logging
import os
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from coinshop.models.order import RemoteOrder, RemoteOrderSnapshot

from .ssm_service import SSMServiceError, get_ssm_service, parameter_path

logger = logging.getLogger(__name__)

LIVE_API_URL = "https://api.coingate.com/v2"
SANDBOX_API_URL = "https://api-sandbox.coingate.com/v2"
DEFAULT_TIMEOUT_SECONDS = 10.0
USER_AGENT = "coinshop-gateway/0.1"


class RemoteOrderClientError(Exception):
    """Raised when the processor API cannot be reached or answers with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        """Initialize with message and optional HTTP context.

        Args:
            message: Human-readable error message.
            status_code: HTTP status returned by the API, if any.
            reason: API error reason code, if any.
        """
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class OrderClient(Protocol):
    """Capability to look up and create orders at a payment processor."""

    def find_order(self, remote_order_id: str) -> RemoteOrderSnapshot | None:
        """Fetch the processor's current view of an order, None if unknown."""
        ...

    def create_order(self, params: Mapping[str, Any]) -> RemoteOrder:
        """Create an order at the processor from caller-built params."""
        ...


class CoinGateClient:
    """OrderClient implementation for the CoinGate v2 merchant API.

    Usage:
        client = create_coingate_client()
        snapshot = client.find_order("1787351")
        if snapshot and snapshot.status == "paid":
            ...
    """

    def __init__(
        self,
        auth_token: str,
        *,
        test_mode: bool = True,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            auth_token: CoinGate API auth token.
            test_mode: Use the sandbox API instead of live.
            timeout: Overall request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._auth_token = auth_token
        self.test_mode = test_mode
        self.base_url = SANDBOX_API_URL if test_mode else LIVE_API_URL
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={
                "Authorization": f"Token {auth_token}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            transport=transport,
        )
        logger.info(
            "CoinGate client initialized (%s)", "sandbox" if test_mode else "live"
        )

    def has_valid_config(self) -> bool:
        """True if an auth token has been configured."""
        return bool(self._auth_token)

    def close(self) -> None:
        """Release pooled connections."""
        self._http.close()

    def _ensure_configured(self) -> None:
        if not self.has_valid_config():
            raise RemoteOrderClientError("CoinGate auth token is not configured")

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("CoinGate %s %s timed out: %s", method, path, e)
            raise RemoteOrderClientError(f"CoinGate request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("CoinGate %s %s failed: %s", method, path, e)
            raise RemoteOrderClientError(f"CoinGate request failed: {e}") from e

    @staticmethod
    def _error_from_response(response: httpx.Response, action: str) -> RemoteOrderClientError:
        reason = None
        try:
            body = response.json()
            if isinstance(body, dict):
                reason = body.get("reason")
        except ValueError:
            pass
        return RemoteOrderClientError(
            f"CoinGate {action} failed with HTTP {response.status_code}",
            status_code=response.status_code,
            reason=reason,
        )

    @staticmethod
    def _json_object(response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteOrderClientError(
                f"CoinGate {action} returned invalid JSON"
            ) from e
        if not isinstance(data, dict):
            raise RemoteOrderClientError(f"CoinGate {action} returned unexpected body")
        return data

    @staticmethod
    def _decimal_or_none(value: Any) -> Decimal | None:
        if value is None or value == "":
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None

    def find_order(self, remote_order_id: str) -> RemoteOrderSnapshot | None:
        """Fetch an order from CoinGate.

        Args:
            remote_order_id: CoinGate order ID.

        Returns:
            Snapshot of the order, or None if CoinGate does not know it.

        Raises:
            RemoteOrderClientError: On timeout, transport failure or API error.
        """
        self._ensure_configured()
        response = self._send("GET", f"/orders/{quote(remote_order_id, safe='')}")

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info("CoinGate order %s not found", remote_order_id)
            return None
        if response.is_error:
            raise self._error_from_response(response, "order lookup")

        data = self._json_object(response, "order lookup")
        if "status" not in data:
            raise RemoteOrderClientError("CoinGate order lookup returned no status")

        return RemoteOrderSnapshot(
            remote_order_id=str(data.get("id", remote_order_id)),
            status=str(data["status"]),
            token=data.get("token"),
            payment_url=data.get("payment_url"),
            price_amount=self._decimal_or_none(data.get("price_amount")),
            price_currency=data.get("price_currency"),
        )

    def create_order(self, params: Mapping[str, Any]) -> RemoteOrder:
        """Create a hosted-checkout order at CoinGate.

        The params are sent as-is. If they carry a ``token``, CoinGate must
        echo the same token back, otherwise the redirect cannot be trusted.

        Args:
            params: CoinGate order parameters built by the caller.

        Returns:
            The created order with its payment_url redirect target.

        Raises:
            RemoteOrderClientError: On API failure or token mismatch.
        """
        self._ensure_configured()
        response = self._send("POST", "/orders", data=dict(params))
        if response.is_error:
            raise self._error_from_response(response, "order creation")

        data = self._json_object(response, "order creation")
        try:
            order = RemoteOrder(
                remote_order_id=str(data["id"]),
                token=str(data.get("token") or ""),
                payment_url=str(data["payment_url"]),
                status=str(data.get("status", "new")),
            )
        except KeyError as e:
            raise RemoteOrderClientError(
                f"CoinGate order creation response missing {e}"
            ) from e

        expected_token = params.get("token")
        if expected_token is not None and order.token != str(expected_token):
            logger.warning(
                "CoinGate order %s returned a token that does not match order %s",
                order.remote_order_id,
                params.get("order_id"),
            )
            raise RemoteOrderClientError("CoinGate order token does not match")

        logger.info(
            "CoinGate order %s created for order %s",
            order.remote_order_id,
            params.get("order_id"),
        )
        return order


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def create_coingate_client(environment: str | None = None) -> CoinGateClient:
    """Build the CoinGate client from environment and SSM configuration.

    Reads the auth token from ``/shop/{environment}/coingate/auth_token``.
    A missing token does not prevent startup; the client then reports
    ``has_valid_config() == False`` and every call fails as transient.

    Args:
        environment: Environment name. Defaults to ENVIRONMENT env var.

    Returns:
        Configured CoinGateClient.
    """
    env = environment or os.environ.get("ENVIRONMENT", "dev")
    try:
        auth_token = get_ssm_service().get_parameter(
            parameter_path(env, "coingate", "auth_token")
        )
    except SSMServiceError as e:
        logger.error("CoinGate auth token unavailable: %s", e)
        auth_token = ""

    return CoinGateClient(
        auth_token,
        test_mode=_env_flag("COINGATE_TEST_MODE", True),
        timeout=float(
            os.environ.get("COINGATE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        ),
    )
