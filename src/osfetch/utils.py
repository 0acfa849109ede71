# src/osfetch/utils.py
import importlib.metadata
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from osfetch.constants import (
    APP_NAME,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_STATUS_ERROR_THRESHOLD,
)
from osfetch.exceptions import ApiError, NotLoggedInError
from osfetch.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE: Optional[str] = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `osfetch/{version}`, where `{version}` is the installed package version or `unknown`.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def get_api_token(config: Dict[str, Any]) -> Optional[str]:
    """Return the configured API token with whitespace removed, or None when unset."""
    token = (config.get("API_TOKEN") or "").strip()
    return token or None


def get_api_headers(config: Dict[str, Any]) -> Dict[str, str]:
    headers = {
        "Accept": "application/json",
        "User-Agent": get_user_agent(),
    }
    token = get_api_token(config)
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def create_api_session() -> requests.Session:
    """
    Create a requests session that retries connection failures and transient statuses.

    Only idempotent GET/HEAD requests are retried; the final response is returned
    to the caller instead of raising so that status handling stays in one place.
    """
    session = requests.Session()
    retry_strategy: Retry = Retry(
        total=DEFAULT_CONNECT_RETRIES,
        connect=DEFAULT_CONNECT_RETRIES,
        read=DEFAULT_CONNECT_RETRIES,
        status=DEFAULT_CONNECT_RETRIES,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=[408, 429, 500, 502, 503, 504],
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def make_api_request(
    config: Dict[str, Any],
    path: str,
    params: Optional[Dict[str, Any]] = None,
    session: Optional[requests.Session] = None,
) -> Any:
    """
    Perform an authenticated GET against the cloud API and return the decoded JSON body.

    Parameters:
        config (Dict[str, Any]): Effective configuration (API_URL, API_TOKEN, REQUEST_TIMEOUT).
        path (str): Endpoint path beginning with "/".
        params (Optional[Dict[str, Any]]): Query parameters.
        session (Optional[requests.Session]): Session to reuse; a retrying session is created when omitted.

    Returns:
        Any: The parsed JSON payload.

    Raises:
        NotLoggedInError: On HTTP 401.
        ApiError: On other HTTP errors, network failures, or a non-JSON body.
    """
    url = f"{config['API_URL']}{path}"
    own_session = session is None
    http = session or create_api_session()
    timeout = config.get("REQUEST_TIMEOUT") or DEFAULT_REQUEST_TIMEOUT

    try:
        logger.debug(f"Making API request: {url}")
        response = http.get(
            url, params=params, headers=get_api_headers(config), timeout=timeout
        )
    except requests.RequestException as e:
        raise ApiError(f"Request to {url} failed", endpoint=path, details=str(e)) from e
    finally:
        if own_session:
            http.close()

    logger.debug(f"Received HTTP {response.status_code} for {url}")
    if response.status_code == 401:
        raise NotLoggedInError(
            "You have to log in to continue",
            endpoint=path,
            status_code=401,
            details="set API_TOKEN with 'osfetch setup' or OSFETCH_API_TOKEN",
        )
    if response.status_code >= HTTP_STATUS_ERROR_THRESHOLD:
        raise ApiError(
            f"API request failed with HTTP {response.status_code}",
            endpoint=path,
            status_code=response.status_code,
            details=(response.text or "")[:200] or None,
        )

    try:
        return response.json()
    except ValueError as e:
        raise ApiError(
            f"Invalid JSON returned by {url}", endpoint=path, details=str(e)
        ) from e
