"""
Credential import from a "copy as cURL" command.

The command is split into shell tokens and walked as (flag, value)
pairs, so every failure surfaces as a CurlParseError naming what was
wrong instead of a silently empty field.
"""

import re
import shlex
from dataclasses import dataclass

DEFAULT_REVISION = "59988163982a4ac4be7c7e7784f006dc48cafcf5"
DEFAULT_TAG_ID = "8a0df086c2034f5e97dcb01c426029ee"

_COOKIE_FLAGS = frozenset({"-b", "--cookie"})
_HEADER_FLAGS = frozenset({"-H", "--header"})
# flags that take a value this parser has no use for
_IGNORED_VALUE_FLAGS = frozenset(
    {
        "-X",
        "--request",
        "-d",
        "--data",
        "--data-raw",
        "--data-binary",
        "--data-urlencode",
        "-A",
        "--user-agent",
        "-e",
        "--referer",
        "-o",
        "--output",
        "-u",
        "--user",
        "--url",
    }
)

# header name -> CurlCredentials field
_HEADER_FIELDS: "dict[str, str]" = {
    "cookie": "cookie",
    "poe-formkey": "form_key",
    "poe-tchannel": "tchannel",
    "poe-revision": "revision",
    "poe-tag-id": "tag_id",
}

_CONTINUATION_RE = re.compile(r"\\\s*\n\s*")


class CurlParseError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class CurlCredentials:
    cookie: "str" = ""
    form_key: "str" = ""
    tchannel: "str" = ""
    revision: "str" = DEFAULT_REVISION
    tag_id: "str" = DEFAULT_TAG_ID


def tokenize(command: "str") -> "list[str]":
    normalized = _CONTINUATION_RE.sub(" ", command).strip()
    try:
        return shlex.split(normalized)
    except ValueError as exc:
        raise CurlParseError(f"cannot tokenize command: {exc}") from exc


def parse_curl(command: "str") -> "CurlCredentials":
    """
    extracts the cookie and poe-* headers from a curl command.

    A -b/--cookie value wins over a "cookie:" header. Fields the
    command does not carry are left empty.
    """
    tokens = tokenize(command)
    if not tokens or tokens[0] != "curl":
        raise CurlParseError("command does not start with 'curl'")

    fields: "dict[str, str]" = {}
    cookie_flag = ""
    position = 1

    while position < len(tokens):
        token = tokens[position]
        position += 1

        if not token.startswith("-") or token == "-":
            # positional argument, the URL
            continue

        flag, value = token, None
        if token.startswith("--") and "=" in token:
            flag, value = token.split("=", 1)

        takes_value = (
            flag in _COOKIE_FLAGS
            or flag in _HEADER_FLAGS
            or flag in _IGNORED_VALUE_FLAGS
        )
        if not takes_value:
            continue

        if value is None:
            if position >= len(tokens):
                raise CurlParseError(f"flag {flag} is missing its value")
            value = tokens[position]
            position += 1

        if flag in _COOKIE_FLAGS:
            cookie_flag = value.strip()
        elif flag in _HEADER_FLAGS:
            name, header_value = _split_header(value)
            field_name = _HEADER_FIELDS.get(name)
            if field_name is not None:
                fields[field_name] = header_value

    if cookie_flag:
        fields["cookie"] = cookie_flag

    if not fields:
        raise CurlParseError("no credentials found in command")

    return CurlCredentials(
        cookie=fields.get("cookie", ""),
        form_key=fields.get("form_key", ""),
        tchannel=fields.get("tchannel", ""),
        revision=fields.get("revision", ""),
        tag_id=fields.get("tag_id", ""),
    )


def _split_header(raw: "str") -> "tuple[str, str]":
    name, sep, value = raw.partition(":")
    if not sep:
        raise CurlParseError(f"header without a colon: {raw!r}")
    return name.strip().lower(), value.strip()
