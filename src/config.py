"""Runtime configuration: built-in defaults, YAML file, environment and CLI overrides.

Precedence (lowest to highest): ``Constants`` defaults, the YAML config file,
``OCTPKG_*`` environment variables, explicit overrides from the command line.
Keys are dotted paths such as ``local.prefix`` or ``index.url``; the matching
environment variable is ``OCTPKG_LOCAL_PREFIX`` / ``OCTPKG_INDEX_URL``.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants, Scope, _load_yaml_config
from errors import ConfigError

logger = logging.getLogger(__name__)

_INT_KEYS = {"index.cache_ttl_sec", "index.stale_after_sec", "octave.make_jobs"}
_KNOWN_KEYS = {
    "index.url",
    "index.cache_ttl_sec",
    "index.stale_after_sec",
    "forge.list_url",
    "forge.package_url",
    "forge.download_url",
    "octave.executable",
    "octave.home",
    "octave.version",
    "octave.arch",
    "octave.api_version",
    "octave.make_jobs",
    "local.list",
    "local.prefix",
    "local.archprefix",
    "global.list",
    "global.prefix",
    "global.archprefix",
    "cache_dir",
}
_VERSION_RE = re.compile(r"version\s+(\d+(?:\.\d+)*)", re.IGNORECASE)


@dataclass(frozen=True)
class ScopeConfig:
    """Registry file and directory prefixes of one scope."""
    list: str
    prefix: str
    archprefix: str


@dataclass(frozen=True)
class PkgConfig:  # pylint: disable=too-many-instance-attributes
    """Resolved configuration for one invocation."""
    local: ScopeConfig
    global_: ScopeConfig
    arch: str
    cache_dir: str
    host_version: str
    has_elevated_rights: bool
    index_url: str
    index_cache_ttl: int
    index_stale_after: int
    forge_list_url: str
    forge_package_url: str
    forge_download_url: str
    octave_executable: str
    make_jobs: int

    def scope(self, scope: Scope) -> ScopeConfig:
        return self.local if scope is Scope.LOCAL else self.global_


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, dotted + "."))
        else:
            flat[dotted] = value
    return flat


def _coerce(key: str, value: Any, source: str) -> Any:
    if key not in _KNOWN_KEYS:
        raise ConfigError(f"unknown configuration key '{key}' in {source}")
    if value is None:
        return None
    if key in _INT_KEYS:
        if isinstance(value, bool):
            raise ConfigError(f"'{key}' in {source} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'{key}' in {source} must be an integer") from exc
    if not isinstance(value, (str, int, float)):
        raise ConfigError(f"'{key}' in {source} must be a string")
    return str(value)


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    values = {}
    for key in _KNOWN_KEYS:
        var = Constants.ENV_PREFIX + key.replace(".", "_").upper()
        if var in env and env[var] != "":
            values[key] = _coerce(key, env[var], f"${var}")
    return values


def detect_host_version(executable: str) -> Optional[str]:
    """Ask the interpreter for its version; None when it cannot be run."""
    try:
        proc = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Could not run %s --version: %s", executable, exc)
        return None
    m = _VERSION_RE.search(proc.stdout or "")
    return m.group(1) if m else None


def _elevated() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid and geteuid() == 0)


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> PkgConfig:
    """Build the effective configuration.

    Args:
        path: Explicit YAML file; otherwise the default locations are searched.
        env: Environment mapping (defaults to ``os.environ``).
        overrides: Dotted-key overrides from the command line.

    Raises:
        ConfigError: unknown keys, wrong types or an unreadable file.
    """
    env = os.environ if env is None else env
    try:
        file_values = _load_yaml_config(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML configuration: {exc}") from exc
    except (OSError, ValueError) as exc:
        raise ConfigError(f"could not load configuration: {exc}") from exc

    values: Dict[str, Any] = {}
    for key, value in _flatten(file_values).items():
        values[key] = _coerce(key, value, path or "configuration file")
    values.update(_env_overrides(env))
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = _coerce(key, value, "command line")

    def get(key: str, default: Any) -> Any:
        value = values.get(key)
        return default if value in (None, "") else value

    home = get("octave.home", Constants.OCTAVE_HOME)
    local_prefix = os.path.expanduser(get("local.prefix", Constants.LOCAL_PREFIX))
    local = ScopeConfig(
        list=os.path.expanduser(get("local.list", Constants.LOCAL_LIST_FILE)),
        prefix=local_prefix,
        archprefix=os.path.expanduser(get("local.archprefix", local_prefix)),
    )
    global_ = ScopeConfig(
        list=os.path.expanduser(get("global.list", os.path.join(home, "share", "octave", "octave_packages"))),
        prefix=os.path.expanduser(get("global.prefix", os.path.join(home, "share", "octave", "packages"))),
        archprefix=os.path.expanduser(get("global.archprefix", os.path.join(home, "lib", "octave", "packages"))),
    )
    api_version = get("octave.api_version", Constants.OCTAVE_API_VERSION)
    arch = get("octave.arch", f"{platform.machine()}-{platform.system().lower()}-{api_version}")
    executable = get("octave.executable", Constants.OCTAVE_EXECUTABLE)
    host_version = values.get("octave.version") or detect_host_version(executable)
    if not host_version:
        host_version = Constants.DEFAULT_HOST_VERSION
        logger.debug("Using default host version %s", host_version)

    return PkgConfig(
        local=local,
        global_=global_,
        arch=arch,
        cache_dir=os.path.expanduser(get("cache_dir", os.path.join(local_prefix, ".cache"))),
        host_version=str(host_version),
        has_elevated_rights=_elevated(),
        index_url=get("index.url", Constants.PACKAGES_INDEX_URL),
        index_cache_ttl=get("index.cache_ttl_sec", Constants.INDEX_CACHE_TTL_SEC),
        index_stale_after=get("index.stale_after_sec", Constants.INDEX_STALE_AFTER_SEC),
        forge_list_url=get("forge.list_url", Constants.FORGE_LIST_URL),
        forge_package_url=get("forge.package_url", Constants.FORGE_PACKAGE_URL),
        forge_download_url=get("forge.download_url", Constants.FORGE_DOWNLOAD_URL),
        octave_executable=executable,
        make_jobs=get("octave.make_jobs", Constants.MAKE_JOBS),
    )
