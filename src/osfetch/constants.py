"""
Constants and configuration values for osfetch.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

APP_NAME = "osfetch"

# Cloud API
DEFAULT_API_URL = "https://api.balena-cloud.com"
API_VERSION = "v6"
WHOAMI_ENDPOINT = "/user/v1/whoami"
DOWNLOAD_ENDPOINT = "/download"

# Network timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CONNECT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.3
DEFAULT_CHUNK_SIZE = 64 * 1024
HTTP_STATUS_ERROR_THRESHOLD = 400
HTTP_STATUS_RETRY_THRESHOLD = 500
BYTES_PER_MEGABYTE = 1024 * 1024

# OS version tokens
VERSION_MENU = "menu"
VERSION_MENU_ESR = "menu-esr"
MENU_VERSION_TOKENS = (VERSION_MENU, VERSION_MENU_ESR)
VERSION_LATEST = "latest"
VERSION_DEFAULT = "default"
VERSION_RECOMMENDED = "recommended"
VARIANT_DEV = "dev"
VARIANT_PROD = "prod"
DEFAULT_VARIANT_SUFFIX = f".{VARIANT_PROD}"
VARIANT_SUFFIXES = (f".{VARIANT_DEV}", f".{VARIANT_PROD}")
ESR_VERSION_PATTERN = r"^\d{4}\.\d{1,2}\.\d+$"

# Catalog
OS_TYPE_DEFAULT = "default"
OS_TYPE_ESR = "esr"
RELEASE_POLICY_TAG = "release-policy"
RECOMMENDED_ANNOTATION = " (recommended)"
INVALIDATED_ANNOTATION = " (invalidated)"

# Content types
ZIP_MIME_TYPE = "application/zip"
OCTET_STREAM_MIME_TYPE = "application/octet-stream"
COMPRESSED_CONTENT_ENCODINGS = ("gzip", "deflate")

# Decompression flush modes
FLUSH_MODE_NO_FLUSH = "no-flush"
FLUSH_MODE_SYNC_FLUSH = "sync-flush"
DEFAULT_FLUSH_MODE = FLUSH_MODE_NO_FLUSH

# Interactive menu
OS_VERSION_MENU_TITLE = "Select the OS version:"
MENU_QUIT_KEYS = (ord("q"), 27)  # q, ESC

# User messages
MSG_GETTING_OS = "Getting device operating system for {device_type}"
MSG_VERSION_NOT_SPECIFIED = (
    "OS version not specified: using latest released version"
)
MSG_DOWNLOADING = "Downloading OS version {version}"
MSG_DOWNLOADING_SIZE_UNKNOWN = "Downloading OS version {version} (size unknown)"
MSG_DOWNLOAD_COMPLETE = "OS image version {version} downloaded successfully"
MSG_NO_VERSIONS_FOUND = (
    "No OS versions found for device type '{device_type}'. "
    "Double-check the device type slug."
)
MSG_ESR_LOGIN_REQUIRED = (
    "User authentication is required to download OS ESR versions."
)

# Logging configuration
LOGGER_NAME = "osfetch"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "osfetch.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Configuration file names
CONFIG_FILE_NAME = "osfetch.yaml"

# Environment variable names
LOG_LEVEL_ENV_VAR = "OSFETCH_LOG_LEVEL"
API_URL_ENV_VAR = "OSFETCH_API_URL"
API_TOKEN_ENV_VAR = "OSFETCH_API_TOKEN"
DISABLE_FILE_LOGGING_ENV_VAR = "OSFETCH_DISABLE_FILE_LOGGING"

# Temporary download files
TEMP_FILE_SUFFIX = ".part"
