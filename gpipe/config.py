"""Persisted, encrypted configuration and per-run settings resolution.

Settings are resolved field by field, highest precedence first: command
line option, environment variable, persisted record. The API key alone may
also come from an interactive prompt, which is saved straight away."""

import json
import logging
import os
import sys
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional, Tuple

import click

from gpipe.codec import SecretCodec
from gpipe.errors import ConfigError
from gpipe.keystore import KeyStore, atomic_write

logger = logging.getLogger(__name__)

APP_NAME = "gpipe"
CONFIG_FILE = "config.json"
DEFAULT_MODEL = "llama3-70b-8192"
DEFAULT_TEMPERATURE = 0.7

ENV_API_KEY = "API_KEY"
ENV_BASE_URL = "API_BASE_URL"
ENV_MODEL = "MODEL"
ENV_CONFIG_DIR = "GPIPE_CONFIG_DIR"

Prompt = Callable[[], str]
RESET_HINT = "Run `gpipe --reset` to configure a new API key."


def default_config_dir() -> str:
    return os.getenv(ENV_CONFIG_DIR) or click.get_app_dir(APP_NAME)


def prompt_api_key() -> str:
    if not sys.stdin.isatty():
        raise ConfigError(
            "No API key configured and stdin is not a terminal. "
            "Run `gpipe` from a terminal once, or pass --api-key or API_KEY"
        )
    try:
        return click.prompt("Enter your API key", hide_input=True, err=True).strip()
    except click.Abort as e:
        raise ConfigError("No API key entered") from e


@dataclass(frozen=True)
class Invocation:
    chat: bool = False
    reset: bool = False
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    url: Optional[str] = None
    message: Optional[str] = None
    tokens: Tuple[str, ...] = ()

    @property
    def prompt_text(self) -> str:
        return " ".join(self.tokens)

    def without_reset(self) -> "Invocation":
        return replace(self, reset=False)


@dataclass
class Config:
    api_key: str
    base_url: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class EffectiveSettings:
    api_key: str
    base_url: Optional[str]
    model: str
    temperature: float = DEFAULT_TEMPERATURE

    def __repr__(self):
        return (
            f"EffectiveSettings(api_key='***', base_url={self.base_url!r}, "
            f"model={self.model!r}, temperature={self.temperature!r})"
        )


def first(*values: Optional[str]) -> Optional[str]:
    """Return the first non-empty value."""
    for value in values:
        if value:
            return value
    return None


class ConfigStore:
    directory: str
    keystore: KeyStore
    codec: SecretCodec

    def __init__(self, directory: str = None):
        self.directory = directory or default_config_dir()
        self.keystore = KeyStore(self.directory)
        self.codec = SecretCodec(self.keystore)

    @property
    def path(self) -> str:
        return os.path.join(self.directory, CONFIG_FILE)

    def load(self) -> Optional[Config]:
        """Read and decrypt the persisted record, or None if there is none.

        DecryptionError propagates: a record that cannot be decrypted is a
        corrupted state, not a missing one."""
        try:
            with open(self.path, "r", encoding="utf-8") as file:
                record = json.loads(file.read())
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"{self.path} is not valid UTF-8 JSON ({e}). {RESET_HINT}") from e
        if not isinstance(record, dict) or not record.get("apiKey"):
            raise ConfigError(f"{self.path} has no stored API key. {RESET_HINT}")

        api_key = self.codec.decrypt(record["apiKey"])
        base_url = record.get("baseURL")
        if base_url:
            base_url = self.codec.decrypt(base_url)
        return Config(api_key=api_key, base_url=base_url or None, model=record.get("model"))

    def save(self, api_key: str, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
        if not self.keystore.exists():
            self.keystore.generate_key_pair()
        record = {
            "apiKey": self.codec.encrypt(api_key),
            "baseURL": self.codec.encrypt(base_url) if base_url else None,
            "model": model,
        }
        atomic_write(self.path, json.dumps(record, indent=2).encode("utf-8"))
        logger.info(f"Saved configuration to {self.path}")

    def delete(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass

    def resolve(
        self,
        invocation: Invocation,
        env: Mapping[str, str] = None,
        prompt: Prompt = prompt_api_key,
    ) -> EffectiveSettings:
        """Build the settings for this run.

        At most one prompt is issued. When nothing is persisted yet, a fresh
        key pair is generated before prompting."""
        env = os.environ if env is None else env
        for attempt in range(2):
            stored = self.load()
            api_key = first(invocation.api_key, env.get(ENV_API_KEY), stored and stored.api_key)
            base_url = first(invocation.base_url, env.get(ENV_BASE_URL), stored and stored.base_url)
            model = first(invocation.model, env.get(ENV_MODEL), stored and stored.model)
            if api_key:
                return EffectiveSettings(
                    api_key=api_key,
                    base_url=base_url,
                    model=model or DEFAULT_MODEL,
                    temperature=invocation.temperature,
                )
            if attempt:
                break
            if stored is None:
                logger.info("No configuration found, generating a new key pair")
                self.keystore.generate_key_pair()
            entered = prompt()
            if not entered:
                break
            self.save(entered, base_url, model)
        raise ConfigError("An API key is required")

    def reset(
        self,
        prompt: Prompt = prompt_api_key,
        invocation: Invocation = None,
        env: Mapping[str, str] = None,
    ) -> None:
        """Forget the stored configuration and rotate the key pair, then prompt
        for a new API key and save it with the base URL and model given on
        the command line or in the environment.

        Anything encrypted with the previous key pair becomes unreadable."""
        invocation = invocation or Invocation()
        env = os.environ if env is None else env
        self.delete()
        self.keystore.generate_key_pair()
        logger.info("Configuration reset")
        entered = prompt()
        if not entered:
            raise ConfigError("An API key is required")
        self.save(
            entered,
            first(invocation.base_url, env.get(ENV_BASE_URL)),
            first(invocation.model, env.get(ENV_MODEL)),
        )
