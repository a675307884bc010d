"""Constants used in the project."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3
    PACKAGE_NOT_FOUND = 4
    RESOLUTION_ERROR = 5
    DEPENDENCY_ERROR = 6
    TRANSACTION_ERROR = 7
    PERSISTENCE_ERROR = 8
    CONFIG_ERROR = 9
    TEST_FAILURE = 10
    USAGE_ERROR = 64


class Scope(Enum):
    """Installation scope: per-user (local) or system-wide (global)."""

    LOCAL = "local"
    GLOBAL = "global"


class Actions(Enum):
    """Actions understood by the command line."""

    INSTALL = "install"
    UNINSTALL = "uninstall"
    LOAD = "load"
    UNLOAD = "unload"
    LIST = "list"
    UPDATE = "update"
    REBUILD = "rebuild"
    TEST = "test"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PACKAGES_INDEX_URL = "https://gnu-octave.github.io/packages/packages/"
    FORGE_LIST_URL = "https://octave.sourceforge.io/list_packages.php"
    FORGE_PACKAGE_URL = "https://octave.sourceforge.io/{name}/index.html"
    FORGE_DOWNLOAD_URL = (
        "https://downloads.sourceforge.net/project/octave/"
        "Octave%20Forge%20Packages/Individual%20Package%20Releases/{name}-{version}.tar.gz"
    )
    SUPPORTED_INDICES = ["packages", "forge"]
    DEFAULT_INDEX = "packages"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_CACHE_TTL_SEC = 300
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    INDEX_CACHE_TTL_SEC = 3600
    INDEX_STALE_AFTER_SEC = 7 * 24 * 3600
    INDEX_CACHE_FILE = "packages_index.json"

    RESOLVE_MAX_ROUNDS = 100
    HOST_PACKAGE_NAME = "octave"
    BOOTSTRAP_PACKAGE_NAME = "pkg"

    OCTAVE_EXECUTABLE = "octave-cli"
    MKOCTFILE_EXECUTABLE = "mkoctfile"
    OCTAVE_CONFIG_EXECUTABLE = "octave-config"
    DEFAULT_HOST_VERSION = "9.2.0"
    OCTAVE_HOME = "/usr"
    OCTAVE_API_VERSION = "api-v59"
    MAKE_JOBS = 1

    ENV_CONFIG = "OCTPKG_CONFIG"
    ENV_SEARCH_PATH = "OCTAVE_PATH"
    ENV_EXEC_PATH = "PATH"
    ENV_PREFIX = "OCTPKG_"

    LOCAL_LIST_FILE = "~/.octave_packages"
    LOCAL_PREFIX = "~/octave"
    DESCRIPTION_FILE = "DESCRIPTION"
    MANDATORY_PACKAGE_FILES = ["DESCRIPTION", "COPYING"]
    OPTIONAL_PACKINFO_FILES = ["CITATION", "NEWS", "ONEWS", "ChangeLog", "on_uninstall.m"]
    REQUIRED_DESCRIPTION_FIELDS = [
        "name", "version", "date", "author", "maintainer", "title", "description",
    ]
    ARCH_DEPENDENT_SUFFIXES = (".oct", ".mex", ".a", ".lib", ".so", "tst", ".dll", ".dylib")


def _config_search_paths() -> List[str]:
    """Return candidate YAML config locations in priority order."""
    paths: List[str] = []
    explicit = os.environ.get(Constants.ENV_CONFIG)
    if explicit:
        paths.append(explicit)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.append(os.path.join(xdg, "octpkg", "octpkg.yml"))
    paths.append(os.path.join(os.path.expanduser("~"), ".config", "octpkg", "octpkg.yml"))
    return paths


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the first available YAML configuration.

    Args:
        path: Explicit config path; when given, only this file is considered.

    Returns:
        Parsed mapping, or an empty dict when no file is present.
    """
    if path and not os.path.isfile(path):
        raise FileNotFoundError(f"configuration file {path} does not exist")
    candidates = [path] if path else _config_search_paths()
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        with open(candidate, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError(f"configuration root in {candidate} must be a mapping")
        logger.debug("Loaded configuration from %s", candidate)
        return data
    return {}
