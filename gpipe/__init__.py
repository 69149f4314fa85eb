"""Send text to an LLM from the terminal, in chat, one-shot or pipe mode."""

__version__ = "0.1.0"

import click
from dotenv import load_dotenv

from gpipe import chat
from gpipe.config import DEFAULT_TEMPERATURE, RESET_HINT, ConfigStore, Invocation
from gpipe.errors import DecryptionError, GpipeError


@click.command()
@click.version_option(__version__)
@click.option("--chat", "-c", "chat_mode", is_flag=True, help="Start an interactive chat.")
@click.option("--temperature", "-t", type=float, default=DEFAULT_TEMPERATURE, show_default=True, help="Sampling temperature.")
@click.option("--url", "-u", help="Fetch this URL and include its content in the message.")
@click.option("--message", "-m", help="Extra message sent alongside the input.")
@click.option("--reset", "-r", is_flag=True, help="Delete the saved configuration and generate new keys.")
@click.option("--api-key", "-k", help="API key, overrides the saved one.")
@click.option("--base-url", help="API base URL, overrides the saved one.")
@click.option("--model", "--model-name", "model", help="Model to use.")
@click.argument("args", nargs=-1)
def main(chat_mode, temperature, url, message, reset, api_key, base_url, model, args):
    load_dotenv()
    chat.configure_logging()
    invocation = Invocation(
        chat=chat_mode,
        reset=reset,
        api_key=api_key,
        base_url=base_url,
        model=model,
        temperature=temperature,
        url=url,
        message=message,
        tokens=tuple(args),
    )
    context = chat.Context(invocation=invocation, store=ConfigStore())
    try:
        chat.run(context)
    except DecryptionError as e:
        raise click.ClickException(f"{e}. {RESET_HINT}")
    except GpipeError as e:
        raise click.ClickException(str(e))
