"""Fleet API client.

This module provides the FleetAPIClient for reading fleet, release, device and
user metadata from the fleet-management service's REST API.
"""

from __future__ import annotations

import contextlib
from typing import Any, cast
from urllib.parse import quote

import httpx

from fleetdeck.lib.errors import (
    DeviceNotFoundError,
    FleetAPIError,
    FleetConnectionError,
    FleetNotFoundError,
    ReleaseNotFoundError,
)
from fleetdeck.lib.logging_config import get_logger
from fleetdeck.models.release import (
    ApplicationType,
    DeviceInfo,
    FleetApplication,
    ReleaseSummary,
)

logger = get_logger(__name__)

API_VERSION = "v6"

_DEVICE_FIELDS = (
    "device_name",
    "id",
    "overall_status",
    "is_online",
    "ip_address",
    "mac_address",
    "last_connectivity_event",
    "uuid",
    "supervisor_version",
    "is_web_accessible",
    "note",
    "os_version",
)


def _odata_string(value: str) -> str:
    """Quote a string literal for an OData filter."""
    return "'" + value.replace("'", "''") + "'"


def _first(value: Any) -> dict[str, Any] | None:
    """Return the first element of an expanded navigation property."""
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return cast(dict[str, Any], value[0])
    return None


class FleetAPIClient:
    """Async client for the fleet API.

    Example:
        >>> async with FleetAPIClient("https://api.fleetdeck.io", token) as client:
        ...     app = await client.get_application("myorg/myfleet")
        ...     print(app.arch, app.capabilities)
    """

    DEFAULT_TIMEOUT = 30.0  # seconds

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: API endpoint, e.g. https://api.fleetdeck.io
            token: Session or API token
            timeout: Request timeout in seconds
            transport: Alternate httpx transport (used by tests)
        """
        self.api_url = api_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> FleetAPIClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_token(self) -> str:
        """Return the token requests are authenticated with."""
        return self._token

    async def whoami(self) -> dict[str, Any]:
        """Return the authenticated user's ``id`` and ``username``."""
        response = await self._request("GET", "/user/v1/whoami")
        return cast(dict[str, Any], response.json())

    async def get_username(self) -> str:
        return str((await self.whoami())["username"])

    async def get_application(self, app_name: str) -> FleetApplication:
        """Get a fleet with its type flags, architecture and device type.

        Args:
            app_name: Fleet name, or ``owner/name`` for shared fleets

        Raises:
            FleetNotFoundError: No such fleet, or not accessible
            FleetConnectionError: Network/timeout issues
        """
        if "/" in app_name:
            flt = f"slug eq {_odata_string(app_name.lower())}"
        else:
            flt = f"app_name eq {_odata_string(app_name)}"

        params = {
            "$filter": flt,
            "$select": "id,app_name,slug",
            "$expand": (
                "application_type($select=slug,supports_multicontainer,is_legacy),"
                "is_for__device_type($select=slug;"
                "$expand=is_of__cpu_architecture($select=slug))"
            ),
        }
        try:
            response = await self._request(
                "GET", f"/{API_VERSION}/application", params=params
            )
        except FleetAPIError as e:
            if e.status_code == 404:
                raise FleetNotFoundError(app_name) from e
            raise

        results = response.json().get("d", [])
        if not results:
            raise FleetNotFoundError(app_name)
        return self._parse_application(results[0], app_name)

    async def get_release(self, release_id: int) -> ReleaseSummary:
        """Get the commit of a release.

        Raises:
            ReleaseNotFoundError: Release does not exist
        """
        try:
            response = await self._request(
                "GET",
                f"/{API_VERSION}/release({int(release_id)})",
                params={"$select": "id,commit"},
            )
        except FleetAPIError as e:
            if e.status_code == 404:
                raise ReleaseNotFoundError(release_id) from e
            raise

        results = response.json().get("d", [])
        if not results:
            raise ReleaseNotFoundError(release_id)
        return ReleaseSummary.model_validate(results[0])

    async def get_device(self, uuid: str, dashboard_url: str) -> DeviceInfo:
        """Get device details for ``fleetdeck device``.

        Args:
            uuid: Full or partial (prefix) device uuid
            dashboard_url: Dashboard base URL used to build the device link

        Raises:
            DeviceNotFoundError: No device matches the uuid
        """
        params = {
            "$filter": f"startswith(uuid,{_odata_string(uuid)})",
            "$select": ",".join(_DEVICE_FIELDS),
            "$expand": (
                "belongs_to__application($select=app_name),"
                "is_of__device_type($select=slug),"
                "is_running__release($select=commit)"
            ),
        }
        response = await self._request("GET", f"/{API_VERSION}/device", params=params)
        results = response.json().get("d", [])
        if not results:
            raise DeviceNotFoundError(uuid)

        data = cast(dict[str, Any], results[0])
        application = _first(data.get("belongs_to__application"))
        device_type = _first(data.get("is_of__device_type"))
        release = _first(data.get("is_running__release"))
        device_uuid = str(data.get("uuid", uuid))

        return DeviceInfo(
            device_name=str(data.get("device_name", "")),
            id=int(data["id"]),
            uuid=device_uuid,
            device_type=device_type.get("slug") if device_type else None,
            status=data.get("overall_status"),
            is_online=data.get("is_online"),
            ip_address=data.get("ip_address"),
            mac_address=data.get("mac_address"),
            application_name=(
                str(application.get("app_name")) if application else "N/a"
            ),
            last_seen=data.get("last_connectivity_event"),
            commit=release.get("commit") if release else None,
            supervisor_version=data.get("supervisor_version"),
            is_web_accessible=data.get("is_web_accessible"),
            note=data.get("note"),
            os_version=data.get("os_version"),
            dashboard_url=f"{dashboard_url.rstrip('/')}/devices/{quote(device_uuid)}"
            "/summary",
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute HTTP request with error handling.

        Raises:
            FleetConnectionError: Connection/timeout issues
            FleetAPIError: Non-2xx status code
        """
        try:
            response = await self._client.request(
                method=method, url=path, params=params
            )
        except httpx.TimeoutException as e:
            raise FleetConnectionError(self.api_url, original_error=e) from e
        except httpx.TransportError as e:
            raise FleetConnectionError(self.api_url, original_error=e) from e

        if not response.is_success:
            raise FleetAPIError(
                str(response.request.url), response.status_code, error_detail(response)
            )
        return response

    @staticmethod
    def _parse_application(data: dict[str, Any], app_name: str) -> FleetApplication:
        device_type = _first(data.get("is_for__device_type"))
        if device_type is None:
            raise FleetAPIError(
                f"/{API_VERSION}/application",
                200,
                f"Fleet '{app_name}' has no default device type",
            )
        cpu_arch = _first(device_type.get("is_of__cpu_architecture"))

        app_type_data = _first(data.get("application_type"))
        return FleetApplication(
            id=int(data["id"]),
            app_name=str(data.get("app_name", app_name)),
            slug=data.get("slug"),
            arch=str(cpu_arch.get("slug")) if cpu_arch else "amd64",
            device_type_slug=str(device_type.get("slug")),
            application_type=(
                ApplicationType.model_validate(app_type_data) if app_type_data else None
            ),
        )


def error_detail(response: httpx.Response) -> str | None:
    """Extract an error message from a failed response body."""
    detail: str | None = None
    with contextlib.suppress(ValueError):
        body = response.json()
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error")
        elif isinstance(body, str):
            detail = body
    if detail is None and response.text:
        detail = response.text.strip()[:200] or None
    return detail
