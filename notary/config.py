# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for the notary command-line wrapper.

The config file is YAML.  Its default location follows the XDG Base
Directory Specification (``$XDG_CONFIG_HOME/notary/notary.yaml``, usually
``~/.config/notary/notary.yaml``) and ``NOTARY_CONFIG`` overrides it.

Any scalar may be written as ``!env VAR_NAME`` to read it from the
environment.  Before the file is resolved, ``.env`` files are loaded from
the config directory and then the working directory; variables that are
already set are left alone, so earlier sources win.

Example::

    access_id: signer@project.iam.gserviceaccount.com
    key_path: !env NOTARY_KEY_PATH
    host: googleapis.com
    secure: true
    default_expiration: 3600
    cache_keys: true
"""

import functools
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from platformdirs import user_config_path

from notary.assembler import DEFAULT_HOST
from notary.errors import ConfigError


logger = logging.getLogger(__name__)

APP_NAME = "notary"
CONFIG_ENV_VAR = "NOTARY_CONFIG"

_BOOL_WORDS = {
    "true": True,
    "yes": True,
    "on": True,
    "1": True,
    "false": False,
    "no": False,
    "off": False,
    "0": False,
}


def get_config_path() -> Path:
    """Path of the config file: ``$NOTARY_CONFIG`` or the XDG default."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return user_config_path(APP_NAME) / "notary.yaml"


def dotenv_paths() -> tuple[Path, ...]:
    """``.env`` files in load order (first wins)."""
    return (user_config_path(APP_NAME) / ".env", Path.cwd() / ".env")


@functools.cache
def load_env_files() -> None:
    """Load ``.env`` files into the environment, once per process.

    ``load_env_files.cache_clear()`` allows a reload.
    """
    for path in dotenv_paths():
        if path.is_file():
            load_dotenv(path, override=False)
            logger.debug("Loaded environment from %s", path)


# ---------------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnvRef:
    """A ``!env NAME`` scalar, looked up when the config is built."""

    name: str

    def lookup(self) -> str | None:
        return os.environ.get(self.name) or None


class _ConfigLoader(yaml.SafeLoader):
    pass


def _construct_env(loader: yaml.SafeLoader, node: yaml.Node) -> EnvRef:
    if not isinstance(node, yaml.ScalarNode):
        raise yaml.constructor.ConstructorError(
            None, None, "!env expects a variable name", node.start_mark
        )
    return EnvRef(str(loader.construct_scalar(node)).strip())


_ConfigLoader.add_constructor("!env", _construct_env)


# ---------------------------------------------------------------------------
# Field conversion
# ---------------------------------------------------------------------------


def _to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    try:
        return _BOOL_WORDS[str(value).strip().lower()]
    except KeyError:
        raise ConfigError(f"Not a boolean: {value!r}") from None


def _to_int(value: object) -> int:
    # YAML reads yes/no/true/false as bool, which int() would accept
    if isinstance(value, bool):
        raise ConfigError(f"Expected an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Not an integer: {value!r}") from None


def _to_str(value: object) -> str:
    return str(value)


_REQUIRED = object()

#: name -> (converter, default); ``_REQUIRED`` marks mandatory fields.
_FIELDS: dict[str, tuple[Any, object]] = {
    "access_id": (_to_str, _REQUIRED),
    "key_path": (_to_str, _REQUIRED),
    "host": (_to_str, DEFAULT_HOST),
    "secure": (_to_bool, True),
    "default_expiration": (_to_int, 3600),
    "cache_keys": (_to_bool, True),
}


def _field(raw: dict[str, Any], name: str) -> Any:
    """Look up, dereference and convert one field of the raw mapping."""
    convert, default = _FIELDS[name]
    value = raw.get(name)
    source = f"'{name}'"
    if isinstance(value, EnvRef):
        source = f"'{name}' (from ${value.name})"
        value = value.lookup()

    if value is None or value == "":
        if default is _REQUIRED:
            raise ConfigError(f"Missing required setting {source}")
        return default

    try:
        return convert(value)
    except ConfigError as e:
        raise ConfigError(f"Invalid setting {source}: {e}") from e


# ---------------------------------------------------------------------------
# Config model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotaryConfig:
    """Signer identity and defaults.

    Attributes:
        access_id: Signer identity (service account email).
        key_path: Path of the PEM private key file.
        host: Storage host suffix.
        secure: Build ``https`` URLs when True.
        default_expiration: Default signature lifetime in seconds.
        cache_keys: Keep parsed keys in memory between calls.
    """

    access_id: str
    key_path: str
    host: str = DEFAULT_HOST
    secure: bool = True
    default_expiration: int = 3600
    cache_keys: bool = True

    def __post_init__(self) -> None:
        if self.default_expiration <= 0:
            raise ConfigError(
                "default_expiration must be positive, "
                f"got {self.default_expiration}"
            )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "NotaryConfig":
        """Build config from a parsed YAML mapping.

        Unknown keys are ignored with a debug message.
        """
        unknown = sorted(set(raw) - set(_FIELDS))
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", unknown)
        return cls(**{name: _field(raw, name) for name in _FIELDS})

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "NotaryConfig":
        """Load ``.env`` files, then read and validate the config file.

        Args:
            config_path: File to read; ``get_config_path()`` when None.

        Raises:
            ConfigError: If the file is missing or unreadable, is not a
                YAML mapping, or a setting is missing or invalid.
        """
        load_env_files()
        path = config_path if config_path is not None else get_config_path()

        try:
            text = path.read_text()
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}") from None
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e

        try:
            raw = yaml.load(text, Loader=_ConfigLoader)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must be a YAML mapping: {path}")

        logger.debug("Loaded config from %s", path)
        return cls.from_dict(raw)
