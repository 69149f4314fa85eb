from typing import Optional

SEPARATOR = "\n=====================\n"


def compose(
    url_content: Optional[str] = None,
    extra_message: Optional[str] = None,
    primary_input: Optional[str] = None,
) -> str:
    """Join URL content, extra message and primary input, skipping empty
    parts. An empty result means there is nothing to send."""
    segments = [url_content, extra_message, primary_input]
    return SEPARATOR.join(segment for segment in segments if segment)
