"""
Tolerant JSON extraction for generative-model output.

The model is told to answer with a bare JSON object, but sometimes wraps
it in a markdown fence, adds a sentence before or after it, or stops
mid-object. Stages, in order:

  1. strip a leading/trailing ``` fence (optional language tag)
  2. parse the stripped text directly
  3. parse the first balanced {...} span (brace depth, string-aware)
  4. close the open structures of a truncated object and parse that
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from gasreport.errors import MalformedResponseError

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")
_DANGLING_KEY = re.compile(r'([{,])\s*"(?:[^"\\]|\\.)*"\s*:?\s*$')


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    return text.strip()


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    """json.loads that only accepts an object. strict=False lets literal
    newlines inside string values through."""
    try:
        value = json.loads(text, strict=False)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _balanced_span(text: str, start: int) -> Optional[str]:
    """Return text[start:end] where the brace opened at `start` closes, or None."""
    depth = 0
    in_string = False
    i = start
    while i < len(text):
        c = text[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1
    return None


def _close_truncated(text: str) -> str:
    """Append the closing tokens a truncated JSON object is missing."""
    text = re.sub(r",\s*$", "", text.rstrip())

    stack = []
    in_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c in "{[":
            stack.append(c)
        elif c == "}" and stack and stack[-1] == "{":
            stack.pop()
        elif c == "]" and stack and stack[-1] == "[":
            stack.pop()
        i += 1

    if in_string:
        text += '"'
    # A key without its value cannot be completed; drop it
    if stack and stack[-1] == "{":
        dangling = _DANGLING_KEY.search(text)
        if dangling:
            text = text[:dangling.start()] + ("{" if dangling.group(1) == "{" else "")
    for opener in reversed(stack):
        text += "]" if opener == "[" else "}"
    return re.sub(r",\s*([}\]])", r"\1", text)


def parse_model_json(raw_text: str) -> Dict[str, Any]:
    """Recover a JSON object from raw model text.

    Raises:
        MalformedResponseError: no object could be recovered. The error
            carries only a bounded prefix of the offending text.
    """
    if not raw_text or not raw_text.strip():
        raise MalformedResponseError("Model response was empty", raw_text or "")

    text = _strip_code_fence(raw_text)

    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    embedded = None
    unbalanced = None
    start = text.find("{")
    while start != -1:
        span = _balanced_span(text, start)
        if span is None:
            if unbalanced is None:
                unbalanced = start
        else:
            embedded = _loads_object(span)
            if embedded is not None:
                break
        start = text.find("{", start + 1)

    # An unclosed brace ahead of a complete object is either a truncated
    # outer object or a stray brace in prose; prefer the outer object.
    if unbalanced is not None:
        parsed = _loads_object(_close_truncated(text[unbalanced:]))
        if parsed is not None:
            logger.warning("Recovered JSON object from truncated model output")
            return parsed

    if embedded is not None:
        logger.info("Recovered JSON object embedded in surrounding text")
        return embedded

    logger.error(f"Could not recover JSON from model response: {raw_text[:200]!r}")
    raise MalformedResponseError("Model response did not contain a valid JSON object", raw_text)
