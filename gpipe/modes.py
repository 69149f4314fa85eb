from enum import Enum

from gpipe.config import Invocation


class Mode(Enum):
    RESET = "reset"
    URL_ONLY = "url-only"
    CHAT = "chat"
    SINGLE_SHOT = "single-shot"
    NO_OP = "no-op"
    PIPE = "pipe"


def select_mode(invocation: Invocation, interactive: bool) -> Mode:
    """Pick the execution path. Checks run in order and the first match wins,
    since the flags themselves may overlap."""
    if invocation.reset:
        return Mode.RESET
    if invocation.url and not invocation.tokens and not invocation.chat:
        return Mode.URL_ONLY
    if invocation.chat:
        return Mode.CHAT
    if invocation.tokens:
        return Mode.SINGLE_SHOT
    if interactive and (invocation.url or invocation.message):
        return Mode.SINGLE_SHOT
    if interactive:
        return Mode.NO_OP
    return Mode.PIPE
