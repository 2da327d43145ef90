"""Session protocol encoding.

Control frames are single-line JSON text frames. All functions here are pure:
equal inputs always produce byte-identical frames.
"""

import json
from urllib.parse import urlencode, urlsplit, urlunsplit

from .settings import RecognitionSettings

STOP_FRAME = '{"action":"stop"}'
KEEP_ALIVE_FRAME = '{"action":"no-op"}'

_COMPACT = (",", ":")


def encode_start(settings: RecognitionSettings) -> str:
    """Serialize settings into the start frame, ``"action":"start"`` first."""
    message = {"action": "start", **settings.to_wire()}
    return json.dumps(message, separators=_COMPACT, ensure_ascii=False)


def encode_stop() -> str:
    """Return the terminal control frame."""
    return STOP_FRAME


def encode_keep_alive() -> str:
    """Return a no-op frame that resets the remote inactivity timer."""
    return KEEP_ALIVE_FRAME


def build_recognize_url(
    base_url: str,
    model: str | None = None,
    customization_id: str | None = None,
    learning_opt_out: bool | None = None,
) -> str:
    """Build the recognize endpoint URL with the query parameters that are set.

    Existing query parameters on ``base_url`` are replaced.
    """
    params: list[tuple[str, str]] = []
    if model is not None:
        params.append(("model", model))
    if customization_id is not None:
        params.append(("customization_id", customization_id))
    if learning_opt_out is not None:
        params.append(("x-watson-learning-opt-out", str(learning_opt_out).lower()))

    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))
