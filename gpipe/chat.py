import logging
import os
import sys
from dataclasses import dataclass, field, replace
from typing import Callable, Iterator, Mapping, Optional, TextIO

import click

from gpipe.client import Completion, Fetched, RemoteClient, fetch_url
from gpipe.compose import compose
from gpipe.config import ConfigStore, EffectiveSettings, Invocation, Prompt, prompt_api_key
from gpipe.modes import Mode, select_mode

logger = logging.getLogger(__name__)

log_levels = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

CHAT_BANNER = "Starting chat mode. Type your message and press Enter to chat."
NO_OP_NOTICE = "Nothing to send. Pass a prompt, pipe text in, or use --chat."


def configure_logging() -> None:
    logging.basicConfig(
        level=log_levels[os.getenv("GPIPE_LOG_LEVEL", "ERROR").upper()],
        filename=os.getenv("GPIPE_LOG_FILE", ".gpipe.log"),
    )


@dataclass
class Context:
    """Everything a single run needs. Built once in the command and passed
    down; the remote client is created on first use so runs that send
    nothing never resolve credentials."""

    invocation: Invocation
    store: ConfigStore
    stdin: TextIO = field(default_factory=lambda: sys.stdin)
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)
    prompt: Prompt = prompt_api_key
    interactive: Optional[bool] = None
    make_client: Callable[[EffectiveSettings], RemoteClient] = RemoteClient
    fetch: Callable[[str], Fetched] = fetch_url
    _settings: Optional[EffectiveSettings] = None
    _client: Optional[RemoteClient] = None

    def __post_init__(self):
        if self.interactive is None:
            self.interactive = self.stdin.isatty()

    @property
    def settings(self) -> EffectiveSettings:
        if self._settings is None:
            self._settings = self.store.resolve(self.invocation, self.env, self.prompt)
            logger.debug(f"Resolved {self._settings!r}")
        return self._settings

    @property
    def client(self) -> RemoteClient:
        if self._client is None:
            self._client = self.make_client(self.settings)
        return self._client

    def echo(self, message: str = "") -> None:
        click.echo(message, file=self.stdout)


def iter_lines(stream: TextIO) -> Iterator[str]:
    """Yield lines one at a time until the stream closes.

    The caller finishes with each line before the next read, so only one
    request is ever in flight; anything typed meanwhile waits in the stream."""
    while True:
        line = stream.readline()
        if not line:
            return
        yield line.rstrip("\r\n")


def send(context: Context, message: str) -> Optional[Completion]:
    if not message:
        logger.info("Composed message is empty, nothing sent")
        return None
    return context.client.complete(message, context.settings.temperature)


def url_content(context: Context) -> Optional[str]:
    url = context.invocation.url
    if not url:
        return None
    return context.fetch(url).content


def run_once(context: Context, primary_input: Optional[str] = None) -> None:
    invocation = context.invocation
    message = compose(url_content(context), invocation.message, primary_input)
    completion = send(context, message)
    if completion is not None:
        context.echo(completion.text)


def run_chat(context: Context) -> None:
    invocation = context.invocation
    context.echo(CHAT_BANNER)
    content = url_content(context)
    for line in iter_lines(context.stdin):
        if not line.strip():
            continue
        logger.debug(f"Chat input: {len(line)} chars")
        context.echo(f"You: {line}")
        completion = send(context, compose(content, invocation.message, line))
        if completion is not None:
            context.echo(f"Assistant: {completion.text}")
    logger.info("Chat input closed")


def run_pipe(context: Context) -> None:
    buffered = context.stdin.read()
    run_once(context, buffered.strip())


def run(context: Context) -> Mode:
    """Execute the mode chosen for this invocation and return it."""
    mode = select_mode(context.invocation, context.interactive)
    logger.info(f"Selected mode: {mode.value}")
    if mode is Mode.RESET:
        context.store.reset(context.prompt, context.invocation, context.env)
        click.echo("Configuration reset.", err=True)
        context = replace(
            context,
            invocation=context.invocation.without_reset(),
            _settings=None,
            _client=None,
        )
        mode = select_mode(context.invocation, context.interactive)
        logger.info(f"Selected mode after reset: {mode.value}")

    if mode is Mode.URL_ONLY:
        run_once(context)
    elif mode is Mode.SINGLE_SHOT:
        run_once(context, context.invocation.prompt_text)
    elif mode is Mode.CHAT:
        run_chat(context)
    elif mode is Mode.PIPE:
        run_pipe(context)
    elif mode is Mode.NO_OP:
        context.echo(NO_OP_NOTICE)
    return mode
