"""
Cloud lookups shared by the CLI commands.

CloudLookups caches device, fleet and service lookups for the lifetime of one
instance. The CLI builds one instance per command run and hands it to the
code that needs it, so repeated lookups of the same key hit the API once.
"""

from typing import Any, Dict, Optional, Tuple

import requests

from osfetch.constants import API_VERSION, WHOAMI_ENDPOINT
from osfetch.exceptions import (
    ApiError,
    DeviceNotFoundError,
    FleetAccessError,
    NotLoggedInError,
)
from osfetch.log_utils import logger
from osfetch.utils import create_api_session, get_api_token, make_api_request

FULL_UUID_LENGTHS = (32, 62)


def _odata_string(value: str) -> str:
    return "'{}'".format(value.replace("'", "''"))


def _first_record(payload: Any) -> Optional[Dict[str, Any]]:
    records = payload.get("d") if isinstance(payload, dict) else None
    if isinstance(records, list) and records and isinstance(records[0], dict):
        return records[0]
    return None


class CloudLookups:
    """
    Session-scoped cache of device/fleet and service lookups.

    Each key is fetched at most once per instance, including keys for which the
    API returned nothing. Entries are never invalidated.
    """

    def __init__(
        self, config: Dict[str, Any], session: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self.session = session or create_api_session()
        self._service_names: Dict[Any, Optional[str]] = {}
        self._devices: Dict[str, Tuple[Dict[str, Any], Optional[Dict[str, Any]]]] = {}

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "CloudLookups":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return make_api_request(self.config, path, params=params, session=self.session)

    def service_id_to_name(self, service_id: Any) -> Optional[str]:
        """Return the name of service `service_id`, or None when it does not exist."""
        if service_id in self._service_names:
            return self._service_names[service_id]

        record = _first_record(
            self._get(
                f"/{API_VERSION}/service({int(service_id)})",
                params={"$select": "service_name"},
            )
        )
        name = record.get("service_name") if record else None
        if name is None:
            logger.debug(f"Service {service_id} not found")
        self._service_names[service_id] = name
        return name

    def get_device_and_maybe_app_from_uuid(
        self, uuid: str
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """
        Look up a device and, when accessible, the fleet it belongs to.

        Short UUIDs match by prefix; the first matching device wins.

        Returns:
            Tuple[Dict[str, Any], Optional[Dict[str, Any]]]: The device record and
            its fleet record, or None in place of the fleet when it is not accessible.

        Raises:
            DeviceNotFoundError: If no device matches `uuid`.
        """
        if uuid in self._devices:
            return self._devices[uuid]

        if len(uuid) in FULL_UUID_LENGTHS:
            uuid_filter = f"uuid eq {_odata_string(uuid)}"
        else:
            uuid_filter = f"startswith(uuid,{_odata_string(uuid)})"
        path = f"/{API_VERSION}/device"
        device = _first_record(
            self._get(
                path,
                params={
                    "$filter": uuid_filter,
                    "$expand": (
                        "belongs_to__application($select=app_name,slug),"
                        "is_of__device_type($select=slug)"
                    ),
                },
            )
        )
        if device is None:
            raise DeviceNotFoundError(f"Device not found: {uuid}", endpoint=path)

        apps = device.get("belongs_to__application")
        app = apps[0] if isinstance(apps, list) and apps else None
        self._devices[uuid] = (device, app)
        return device, app

    def get_device_and_app_from_uuid(
        self, uuid: str
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Like get_device_and_maybe_app_from_uuid, but the fleet must be accessible."""
        device, app = self.get_device_and_maybe_app_from_uuid(uuid)
        if app is None:
            raise FleetAccessError(
                f"Unable to access the fleet that device {uuid} belongs to"
            )
        return device, app


def check_logged_in(
    config: Dict[str, Any], session: Optional[requests.Session] = None
) -> Dict[str, Any]:
    """
    Verify that the configured API token is accepted.

    Returns:
        Dict[str, Any]: The whoami payload of the authenticated actor.

    Raises:
        NotLoggedInError: If no token is configured or the API rejects it.
    """
    if not get_api_token(config):
        raise NotLoggedInError(
            "You have to log in to continue",
            endpoint=WHOAMI_ENDPOINT,
            details="set API_TOKEN with 'osfetch setup' or OSFETCH_API_TOKEN",
        )
    payload = make_api_request(config, WHOAMI_ENDPOINT, session=session)
    if not isinstance(payload, dict):
        raise ApiError("Unexpected whoami response", endpoint=WHOAMI_ENDPOINT)
    logger.debug(f"Authenticated as {payload.get('username') or payload.get('id')}")
    return payload
