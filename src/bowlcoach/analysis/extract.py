"""Normalise the provider's response shapes into plain text.

Gemini responses have reached us in several forms over time: SDK objects
exposing ``text()``, objects or dicts with a ``text`` string, and raw REST
payloads where the text lives in ``candidates[0].content.parts``. Responses
are classified once into a :data:`ResponseShape` and reduced to a string so
nothing downstream branches on the provider's layout again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence, Tuple, Union


@dataclass(frozen=True)
class EmptyResponse:
    pass


@dataclass(frozen=True)
class CallableText:
    producer: Callable[[], Any]


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class CandidateParts:
    parts: Tuple[Any, ...]


ResponseShape = Union[EmptyResponse, CallableText, PlainText, CandidateParts]


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _first_candidate_parts(response: Any) -> Sequence[Any]:
    candidates = _field(response, "candidates") or []
    if not candidates:
        return ()
    content = _field(candidates[0], "content")
    if content is None:
        return ()
    return _field(content, "parts") or ()


def classify(response: Any) -> ResponseShape:
    """Pick the shape in fixed precedence: callable, text field, candidate parts."""
    if response is None:
        return EmptyResponse()
    text = _field(response, "text")
    if callable(text):
        return CallableText(text)
    if isinstance(text, str):
        return PlainText(text)
    return CandidateParts(tuple(_first_candidate_parts(response)))


def extract_text(response: Any) -> str:
    shape = classify(response)
    if isinstance(shape, EmptyResponse):
        return ""
    if isinstance(shape, CallableText):
        produced = shape.producer()
        return "" if produced is None else str(produced)
    if isinstance(shape, PlainText):
        return shape.text
    fragments = [_field(part, "text") for part in shape.parts]
    return "\n".join(fragment for fragment in fragments if isinstance(fragment, str)).strip()


__all__ = [
    "CallableText",
    "CandidateParts",
    "EmptyResponse",
    "PlainText",
    "ResponseShape",
    "classify",
    "extract_text",
]
