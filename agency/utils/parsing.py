"""Shared parsing utilities for oracle responses.

The oracle is asked for a single JSON object but routinely wraps it in
markdown fences, surrounds it with prose, or gives up on JSON entirely and
pastes a raw HTML document. Everything here is tolerant: failures come back
as None, never as exceptions.
"""

import json
import re

import httpx

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_DOCUMENT_RE = re.compile(r"(<!DOCTYPE html.*?</html>|<html[\s>].*?</html>)", re.DOTALL | re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def _loads_object(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _balanced_spans(text: str):
    """Yield every balanced ``{...}`` span, outermost first, left to right.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = None
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end is None:
            return
        yield text[start:end + 1]
        start = text.find("{", end + 1)


def parse_json_object(text: str | None) -> dict | None:
    """Parse a JSON object out of raw oracle text.

    Strategies, in order: clean parse, fence-stripped parse, first balanced
    ``{...}`` span that parses. Returns None when all of them fail.
    """
    if not text or not text.strip():
        return None

    data = _loads_object(text)
    if data is not None:
        return data

    data = _loads_object(strip_fences(text))
    if data is not None:
        return data

    for span in _balanced_spans(text):
        data = _loads_object(span)
        if data is not None:
            return data

    return None


def extract_document(text: str | None) -> str | None:
    """Last-resort rescue of an HTML document embedded in an unparseable response.

    When the document was pasted inside a (broken) JSON string its escapes are
    undone so the result is the document as the model meant it.
    """
    if not text:
        return None
    match = _DOCUMENT_RE.search(text)
    if not match:
        return None
    document = match.group(1)
    if '\\"' in document or "\\n" in document:
        try:
            document = json.loads(f'"{document}"')
        except json.JSONDecodeError:
            document = document.replace("\\n", "\n").replace('\\"', '"').replace("\\/", "/")
    return document


def is_transient(exc: BaseException) -> bool:
    """Return True if the exception is a transient HTTP/network error."""
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return True
    if isinstance(exc, httpx.ConnectError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503)
    return False


def describe_failure(exc: BaseException) -> str:
    """Short human label for a failed oracle attempt, used in retry logs."""
    if is_transient(exc):
        return "transient network error"
    if isinstance(exc, ValueError):
        return "malformed response"
    return "oracle error"
