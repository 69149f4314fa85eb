import io
import logging

import pytest

from conftest import Prompter
from gpipe import chat
from gpipe.client import Fetched
from gpipe.compose import SEPARATOR
from gpipe.config import Invocation
from gpipe.modes import Mode


def make_context(store, clients, invocation, stdin="", interactive=False, prompt=None, fetch=None):
    return chat.Context(
        invocation=invocation,
        store=store,
        stdin=io.StringIO(stdin),
        stdout=io.StringIO(),
        env={},
        prompt=prompt or Prompter(),
        interactive=interactive,
        make_client=clients,
        fetch=fetch or (lambda url: Fetched(url, f"<page {url}>")),
    )


def test_single_shot(store, clients):
    context = make_context(store, clients, Invocation(api_key="sk", tokens=("what", "is", "2+2")), interactive=True)
    assert chat.run(context) is Mode.SINGLE_SHOT
    assert clients.made[0].calls == [("what is 2+2", 0.7)]
    assert context.stdout.getvalue() == "reply 1\n"


def test_pipe_sends_whole_stream_once(store, clients):
    invocation = Invocation(api_key="sk", message="Summarize:", temperature=0.1)
    context = make_context(store, clients, invocation, stdin="line one\nline two\n")
    assert chat.run(context) is Mode.PIPE
    assert clients.made[0].calls == [("Summarize:" + SEPARATOR + "line one\nline two", 0.1)]


def test_empty_pipe_sends_nothing(store, clients):
    prompt = Prompter()
    context = make_context(store, clients, Invocation(), stdin="", prompt=prompt)
    assert chat.run(context) is Mode.PIPE
    assert clients.made == []
    assert prompt.count == 0
    assert store.load() is None
    assert context.stdout.getvalue() == ""


def test_url_only(store, clients):
    fetched = []

    def fetch(url):
        fetched.append(url)
        return Fetched(url, "page body")

    invocation = Invocation(api_key="sk", url="https://example.com", message="tl;dr")
    context = make_context(store, clients, invocation, interactive=True, fetch=fetch)
    assert chat.run(context) is Mode.URL_ONLY
    assert fetched == ["https://example.com"]
    assert clients.made[0].calls[0][0] == "page body" + SEPARATOR + "tl;dr"


def test_failed_fetch_placeholder_is_sent(store, clients):
    def fetch(url):
        return Fetched(url, "Error: Unable to fetch content from bad", error="boom")

    context = make_context(store, clients, Invocation(api_key="sk", url="bad"), fetch=fetch)
    chat.run(context)
    assert clients.made[0].calls[0][0] == "Error: Unable to fetch content from bad"


def test_chat_handles_lines_in_order(store, clients):
    invocation = Invocation(api_key="sk", chat=True, message="be brief")
    context = make_context(store, clients, invocation, stdin="first\n\n   \nsecond\n", interactive=True)
    assert chat.run(context) is Mode.CHAT
    assert len(clients.made) == 1
    assert [message for message, _ in clients.made[0].calls] == [
        "be brief" + SEPARATOR + "first",
        "be brief" + SEPARATOR + "second",
    ]
    output = context.stdout.getvalue().splitlines()
    assert output == [
        chat.CHAT_BANNER,
        "You: first",
        "Assistant: reply 1",
        "You: second",
        "Assistant: reply 2",
    ]


def test_no_op_on_bare_terminal(store, clients):
    context = make_context(store, clients, Invocation(), interactive=True)
    assert chat.run(context) is Mode.NO_OP
    assert clients.made == []
    assert chat.NO_OP_NOTICE in context.stdout.getvalue()


def test_reset_with_pipe_prompts_before_sending(store, clients):
    store.save("sk-old")
    events = []

    def prompt():
        events.append("prompt")
        return "sk-new"

    def make(settings):
        events.append("client")
        return clients(settings)

    context = make_context(store, make, Invocation(reset=True), stdin="hello", prompt=prompt)
    assert chat.run(context) is Mode.PIPE
    assert events == ["prompt", "client"]
    assert clients.made[0].settings.api_key == "sk-new"
    assert clients.made[0].calls[0][0] == "hello"


def test_bootstrap_on_first_message(store, clients):
    prompt = Prompter("sk-typed")
    context = make_context(store, clients, Invocation(tokens=("hi",)), interactive=True, prompt=prompt)
    chat.run(context)
    assert prompt.count == 1
    assert clients.made[0].settings.api_key == "sk-typed"
    assert store.load().api_key == "sk-typed"


@pytest.mark.parametrize("text,lines", [
    ("a\nb\n", ["a", "b"]),
    ("a\r\nb", ["a", "b"]),
    ("", []),
])
def test_iter_lines(text, lines):
    assert list(chat.iter_lines(io.StringIO(text))) == lines


def test_reset_on_bare_terminal_prints_notice(store, clients):
    context = make_context(store, clients, Invocation(reset=True), interactive=True, prompt=Prompter("sk-new"))
    assert chat.run(context) is Mode.NO_OP
    assert chat.NO_OP_NOTICE in context.stdout.getvalue()
    assert store.load().api_key == "sk-new"


def test_reset_saves_base_url_and_model_from_flags(store, clients):
    store.save("sk-old")
    invocation = Invocation(reset=True, base_url="https://cli.example.com", model="m1")
    context = make_context(store, clients, invocation, stdin="", prompt=Prompter("sk-new"))
    chat.run(context)
    config = store.load()
    assert config.api_key == "sk-new"
    assert config.base_url == "https://cli.example.com"
    assert config.model == "m1"


def test_configure_logging_accepts_critical(monkeypatch, tmp_path):
    seen = {}
    monkeypatch.setenv("GPIPE_LOG_LEVEL", "critical")
    monkeypatch.setenv("GPIPE_LOG_FILE", str(tmp_path / "gpipe.log"))
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: seen.update(kwargs))
    chat.configure_logging()
    assert seen == {"level": logging.CRITICAL, "filename": str(tmp_path / "gpipe.log")}
