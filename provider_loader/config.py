"""Loader configuration.

Configuration can be built in code, read from the environment, or loaded from
a YAML file with a ``loader`` section:

    loader:
      registry_root: META-INF/services
      encoding: utf-8
      error_policy: skip_entry
      extra_locations:
        - ./plugins
      include_sys_path: true
"""

import codecs
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .domain.exceptions import ConfigurationError
from .domain.value_objects import ErrorPolicy

DEFAULT_REGISTRY_ROOT = "META-INF/services"
DEFAULT_ENCODING = "utf-8"

ENV_REGISTRY_ROOT = "PROVIDER_LOADER_REGISTRY_ROOT"
ENV_ENCODING = "PROVIDER_LOADER_ENCODING"
ENV_ERROR_POLICY = "PROVIDER_LOADER_ERROR_POLICY"
ENV_PATH = "PROVIDER_LOADER_PATH"


@dataclass(frozen=True)
class LoaderConfig:
    """Configuration for provider discovery.

    Attributes:
        registry_root: Directory convention registry resources live under.
        encoding: Text encoding of registry resources.
        error_policy: Reaction to a faulty entry or resource.
        extra_locations: Locations searched before ``sys.path``.
        include_sys_path: Whether the default context searches ``sys.path``.
    """

    registry_root: str = DEFAULT_REGISTRY_ROOT
    encoding: str = DEFAULT_ENCODING
    error_policy: ErrorPolicy = ErrorPolicy.SKIP_ENTRY
    extra_locations: tuple[str, ...] = ()
    include_sys_path: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.registry_root.strip("/"):
            raise ValueError("registry_root cannot be empty")
        if os.path.isabs(self.registry_root):
            raise ValueError("registry_root must be a relative path")
        if not self.encoding:
            raise ValueError("encoding cannot be empty")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ValueError(f"Unknown encoding: {self.encoding}") from e
        if not isinstance(self.error_policy, ErrorPolicy):
            object.__setattr__(self, "error_policy", ErrorPolicy.parse(self.error_policy))
        if not isinstance(self.extra_locations, tuple):
            object.__setattr__(self, "extra_locations", tuple(str(p) for p in self.extra_locations))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "LoaderConfig":
        """Create LoaderConfig from a dictionary.

        Args:
            data: Configuration dictionary. If None, returns default config.

        Raises:
            ValueError: If configuration values are invalid.
        """
        if not data:
            return cls()

        unknown = set(data) - {"registry_root", "encoding", "error_policy", "extra_locations", "include_sys_path"}
        if unknown:
            raise ValueError(f"Unknown loader settings: {', '.join(sorted(unknown))}")

        extra = data.get("extra_locations") or ()
        if isinstance(extra, str):
            extra = (extra,)

        return cls(
            registry_root=data.get("registry_root", DEFAULT_REGISTRY_ROOT),
            encoding=data.get("encoding", DEFAULT_ENCODING),
            error_policy=ErrorPolicy.parse(data.get("error_policy", ErrorPolicy.SKIP_ENTRY)),
            extra_locations=tuple(str(p) for p in extra),
            include_sys_path=bool(data.get("include_sys_path", True)),
        )

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "LoaderConfig":
        """Create LoaderConfig from environment variables.

        Args:
            env: Optional environment mapping (defaults to os.environ).
        """
        env = os.environ if env is None else env
        path = env.get(ENV_PATH, "")
        return cls(
            registry_root=env.get(ENV_REGISTRY_ROOT, DEFAULT_REGISTRY_ROOT),
            encoding=env.get(ENV_ENCODING, DEFAULT_ENCODING),
            error_policy=ErrorPolicy.parse(env.get(ENV_ERROR_POLICY, ErrorPolicy.SKIP_ENTRY)),
            extra_locations=tuple(p for p in path.split(os.pathsep) if p),
        )

    def with_overrides(self, **changes: Any) -> "LoaderConfig":
        """Return a copy with the given non-None fields replaced."""
        values = {
            "registry_root": self.registry_root,
            "encoding": self.encoding,
            "error_policy": self.error_policy,
            "extra_locations": self.extra_locations,
            "include_sys_path": self.include_sys_path,
        }
        values.update({k: v for k, v in changes.items() if v is not None})
        return LoaderConfig(**values)


def load_config(path: str | os.PathLike) -> LoaderConfig:
    """Load loader configuration from a YAML file.

    Relative ``extra_locations`` are resolved against the file's directory.

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}", {"path": str(config_path)})

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}", {"path": str(config_path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}", {"path": str(config_path)})

    section = data.get("loader") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("'loader' section must be a mapping", {"path": str(config_path)})

    try:
        config = LoaderConfig.from_dict(section)
    except ValueError as e:
        raise ConfigurationError(str(e), {"path": str(config_path)}) from e

    base = config_path.parent
    resolved = tuple(str(p if Path(p).is_absolute() else base / p) for p in config.extra_locations)
    return config.with_overrides(extra_locations=resolved)
