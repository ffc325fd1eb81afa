"""Typed configuration loading and access.

Configuration lives in ``shipper.toml`` at the project root:

    tool = "mdbook-katex"
    repo = "owner/mdbook-katex"
    store_dir = "dist"
    targets = ["x86_64-unknown-linux-gnu", "x86_64-unknown-linux-musl"]
    host_target = "x86_64-apple-darwin"
    toolchain = "stable"
    fail_fast = true
    max_workers = 4
    token_env = "GITHUB_TOKEN"

    [retry]
    attempts = 3
    delay_seconds = 1.0

Relative paths are resolved against the directory holding the file.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_HOST_TARGET",
    "DEFAULT_TARGETS",
    "Config",
    "ConfigError",
    "RetryConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "shipper.toml"

DEFAULT_TARGETS: tuple[str, ...] = (
    "x86_64-unknown-linux-gnu",
    "x86_64-unknown-linux-musl",
)
DEFAULT_HOST_TARGET = "x86_64-apple-darwin"
DEFAULT_STORE_DIR = "dist"
DEFAULT_TOKEN_ENV = "GITHUB_TOKEN"
DEFAULT_TOOLCHAIN = "stable"
DEFAULT_MAX_WORKERS = 4
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Bounded retry policy for toolchain installs and release API calls."""

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container.

    ``tool`` may be left unset, in which case the binary name is taken from
    the Cargo package name.
    """

    tool: str | None = None
    project_root: Path = Path(".")
    repo: str | None = None
    store_dir: Path = Path(DEFAULT_STORE_DIR)
    targets: tuple[str, ...] = DEFAULT_TARGETS
    host_target: str = DEFAULT_HOST_TARGET
    toolchain: str = DEFAULT_TOOLCHAIN
    fail_fast: bool = True
    max_workers: int = DEFAULT_MAX_WORKERS
    token_env: str = DEFAULT_TOKEN_ENV
    retry: RetryConfig = field(default_factory=RetryConfig)

    def relative_to(self, base: Path) -> Config:
        """Resolve relative paths against base."""
        root = self.project_root if self.project_root.is_absolute() else base / self.project_root
        store = self.store_dir if self.store_dir.is_absolute() else root / self.store_dir
        return replace(self, project_root=root, store_dir=store)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: If the matrix would produce clashing artifact names.
        """
        retry: StrDict = get_table(data, "retry") or {}

        targets = get_str_list(data, "targets")
        if targets is None:
            if "targets" in data:
                raise ValueError("targets must be a list of target triples")
            targets = list(DEFAULT_TARGETS)
        host_target = get_str(data, "host_target") or DEFAULT_HOST_TARGET

        if len(set(targets)) != len(targets):
            raise ValueError(f"duplicate entries in targets: {targets}")
        if host_target in targets:
            raise ValueError(f"host_target {host_target} is also listed in targets")

        max_workers = get_int(data, "max_workers")
        if max_workers is None:
            max_workers = DEFAULT_MAX_WORKERS
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        attempts = get_int(retry, "attempts")
        if attempts is None:
            attempts = DEFAULT_RETRY_ATTEMPTS
        if attempts < 1:
            raise ValueError("retry.attempts must be >= 1")
        delay = get_float(retry, "delay_seconds")

        fail_fast = get_bool(data, "fail_fast")

        return cls(
            tool=get_str(data, "tool"),
            project_root=Path(get_str(data, "project_root") or "."),
            repo=get_str(data, "repo"),
            store_dir=Path(get_str(data, "store_dir") or DEFAULT_STORE_DIR),
            targets=tuple(targets),
            host_target=host_target,
            toolchain=get_str(data, "toolchain") or DEFAULT_TOOLCHAIN,
            fail_fast=True if fail_fast is None else fail_fast,
            max_workers=max_workers,
            token_env=get_str(data, "token_env") or DEFAULT_TOKEN_ENV,
            retry=RetryConfig(
                attempts=attempts,
                delay_seconds=DEFAULT_RETRY_DELAY_SECONDS if delay is None else max(0.0, delay),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) with paths resolved against the file's directory,
        Err(ConfigError) on failure.
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        config = Config.from_dict(result.value)
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
    return Ok(config.relative_to(path.parent))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config from file, or defaults rooted at the file's directory if absent.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(Config().relative_to(path.parent))
    return load_config(path)
