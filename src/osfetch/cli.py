# src/osfetch/cli.py

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from osfetch import log_utils, setup_config
from osfetch.cloud import CloudLookups, check_logged_in
from osfetch.constants import (
    APP_NAME,
    DISABLE_FILE_LOGGING_ENV_VAR,
    MSG_ESR_LOGIN_REQUIRED,
    VERSION_MENU_ESR,
)
from osfetch.download import (
    AsyncCloudClient,
    FlushMode,
    download_os_image,
    get_formatted_os_versions,
)
from osfetch.download.version import is_esr_version
from osfetch.exceptions import NotLoggedInError, OsfetchError


def get_osfetch_version() -> str:
    """
    Retrieve the installed osfetch package version.

    Returns:
        version (str): The installed version string, or "unknown" if it cannot be determined.
    """
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="osfetch - OS image downloader for cloud managed devices",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Commands operating on OS images
    os_parser = subparsers.add_parser("os", help="Download and list OS images")
    os_subparsers = os_parser.add_subparsers(dest="os_command", required=True)

    download_parser = os_subparsers.add_parser(
        "download",
        help="Download an OS image for a device type",
        description=(
            "Download an unconfigured OS image. Zip images are extracted into the "
            "output directory; other images are written as a single file."
        ),
    )
    download_parser.add_argument("device_type", help="Device type slug, e.g. raspberrypi4-64")
    download_parser.add_argument(
        "--output", "-o", required=True, help="Output file or directory path"
    )
    download_parser.add_argument(
        "--version",
        help=(
            "Exact version (2.88.4, v2.88.4+rev1.dev), semver range (^2.80.0), "
            "'latest', 'default', 'recommended', 'menu' or 'menu-esr'"
        ),
    )

    versions_parser = os_subparsers.add_parser(
        "versions", help="List the OS versions available for a device type"
    )
    versions_parser.add_argument("device_type", help="Device type slug")
    versions_parser.add_argument(
        "--esr", action="store_true", help="List ESR versions instead"
    )

    device_parser = subparsers.add_parser("device", help="Show a device and its fleet")
    device_parser.add_argument("uuid", help="Full or short device UUID")

    service_parser = subparsers.add_parser("service", help="Show the name of a service")
    service_parser.add_argument("service_id", type=int, help="Numeric service ID")

    subparsers.add_parser("setup", help="Create or update the configuration file")
    subparsers.add_parser("version", help="Display osfetch version")

    return parser


def _configure_logging(config: Dict[str, Any]) -> None:
    """Apply LOG_LEVEL and, when enabled, file logging from the loaded configuration."""
    log_level = config.get("LOG_LEVEL")
    if log_level:
        log_utils.set_log_level(str(log_level))

    if config.get("LOG_TO_FILE") and not os.environ.get(DISABLE_FILE_LOGGING_ENV_VAR):
        log_utils.add_file_logging(
            Path(setup_config.get_log_dir()), str(log_level or "INFO")
        )


def _requires_login(version: Optional[str]) -> bool:
    return version == VERSION_MENU_ESR or is_esr_version(version)


def _ensure_esr_login(config: Dict[str, Any]) -> None:
    try:
        check_logged_in(config)
    except NotLoggedInError as e:
        raise NotLoggedInError(
            f"{e.message}\n{MSG_ESR_LOGIN_REQUIRED}",
            endpoint=e.endpoint,
            status_code=e.status_code,
            details=e.details,
        ) from e


async def _download(config: Dict[str, Any], args: argparse.Namespace) -> Path:
    flush_mode = FlushMode(config["DECOMPRESS_FLUSH_MODE"])
    async with AsyncCloudClient.from_config(config) as client:
        return await download_os_image(
            client,
            args.device_type,
            args.output,
            args.version,
            flush_mode=flush_mode,
        )


def run_os_download(config: Dict[str, Any], args: argparse.Namespace) -> Path:
    try:
        if _requires_login(args.version):
            _ensure_esr_login(config)
        return asyncio.run(_download(config, args))
    except OsfetchError as e:
        e.device_type = args.device_type
        raise


async def _list_versions(config: Dict[str, Any], device_type: str, esr: bool) -> List[str]:
    async with AsyncCloudClient.from_config(config) as client:
        versions = await get_formatted_os_versions(client, device_type, esr)
    return [v.formatted_version for v in versions]


def run_os_versions(config: Dict[str, Any], args: argparse.Namespace) -> None:
    for label in asyncio.run(_list_versions(config, args.device_type, args.esr)):
        print(label)


def run_device(lookups: CloudLookups, uuid: str) -> None:
    device, app = lookups.get_device_and_app_from_uuid(uuid)
    device_types = device.get("is_of__device_type") or []
    device_type = device_types[0].get("slug") if device_types else None
    print(f"Name: {device.get('device_name')}")
    print(f"UUID: {device.get('uuid')}")
    print(f"Device type: {device_type or 'unknown'}")
    print(f"Fleet: {app.get('slug') or app.get('app_name')}")


def run_service(lookups: CloudLookups, service_id: int) -> None:
    name = lookups.service_id_to_name(service_id)
    if name is None:
        raise OsfetchError(f"Service not found: {service_id}")
    print(name)


def _dispatch(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.command == "version":
        print(f"{APP_NAME} {get_osfetch_version()}")
        return
    if args.command == "setup":
        setup_config.run_setup()
        return

    config = setup_config.load_config()
    _configure_logging(config)

    if args.command == "os":
        if args.os_command == "download":
            run_os_download(config, args)
        else:
            run_os_versions(config, args)
    elif args.command in ("device", "service"):
        with CloudLookups(config) as lookups:
            if args.command == "device":
                run_device(lookups, args.uuid)
            else:
                run_service(lookups, args.service_id)
    else:
        parser.print_help()


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the osfetch command-line interface.

    Application errors are logged and end the process with exit status 1;
    Ctrl-C ends it with status 130.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        _dispatch(parser, args)
    except OsfetchError as e:
        if e.device_type and getattr(args, "os_command", None) == "download":
            log_utils.logger.error(
                f"Failed to download OS image for device type {e.device_type}: {e}"
            )
        else:
            log_utils.logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        log_utils.logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
