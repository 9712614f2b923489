"""Pwned Passwords k-anonymity client.

Only the first 5 hex characters of a password hash ever leave the process.
The range endpoint answers with every known suffix for that prefix and the
match happens locally.
"""
from __future__ import annotations

import hashlib
import re
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import httpx

from helpers.ntlm import ntlm_digest

PP_BASE_URL = "https://api.pwnedpasswords.com"
USER_AGENT = "pwncheck/1.0"
DEFAULT_TIMEOUT = 10.0

_PREFIX_RE = re.compile(r"[0-9A-Fa-f]{5}")
_COUNT_RE = re.compile(r"[+-]?[0-9]+")
_SECONDS_RE = re.compile(r"[0-9]+")


class HashType(str, Enum):
    SHA1 = "sha1"
    NTLM = "ntlm"


class PwnedPasswordsError(Exception):
    """Base class for everything this module raises on its own."""


class InvalidPrefixError(PwnedPasswordsError, ValueError):
    def __init__(self, prefix):
        super().__init__(f"invalid prefix: {prefix!r}")
        self.prefix = prefix


class MalformedResponseError(PwnedPasswordsError):
    def __init__(self, line: str):
        super().__init__(f"malformed response: {line!r}")
        self.line = line


class RangeQueryError(PwnedPasswordsError):
    """The range endpoint answered with a non-200 status."""

    def __init__(self, status_code: int, retry_after: Optional[timedelta] = None):
        super().__init__(f"unexpected status code: {status_code}")
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


def is_valid_prefix(prefix) -> bool:
    return isinstance(prefix, str) and _PREFIX_RE.fullmatch(prefix) is not None


def split_hash(hex_hash: str) -> Tuple[str, str]:
    return hex_hash[:5], hex_hash[5:]


def hash_sha1_hex(password: str) -> str:
    return hashlib.sha1(password.encode("utf-8")).hexdigest().upper()


def hash_ntlm_hex(password: str) -> str:
    return ntlm_digest(password.encode("utf-8")).hex().upper()


def split_lines(text: str) -> List[str]:
    """Split a body on LF only; a trailing LF does not add an empty line.

    CR is left in place for the parser, which drops exactly one per line.
    """
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _strip_eol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def parse_suffix_frequencies(lines: Iterable[str]) -> Dict[str, int]:
    """Build ``{suffix: count}`` from ``SUFFIX:COUNT`` lines.

    Zero-count lines are padding and are dropped. A line without a colon, with
    a non-integer count or with a negative count raises
    MalformedResponseError; nothing partial is returned in that case.
    """
    out: Dict[str, int] = {}
    for raw in lines:
        line = _strip_eol(raw)
        suffix, sep, freq = line.partition(":")
        if not sep or not _COUNT_RE.fullmatch(freq):
            raise MalformedResponseError(line)
        n = int(freq)
        if n < 0:
            raise MalformedResponseError(line)
        if n == 0:
            continue  # padding
        out[suffix] = n
    return out


def parse_retry_after(value: Optional[str]) -> Optional[timedelta]:
    if value is None or not _SECONDS_RE.fullmatch(value):
        return None
    return timedelta(seconds=int(value))


def classify_error(status_code: int, headers: Mapping[str, str]) -> RangeQueryError:
    return RangeQueryError(status_code, parse_retry_after(headers.get("Retry-After")))


async def _get(client: Optional[httpx.AsyncClient], url: str, **kwargs) -> httpx.Response:
    if client is not None:
        return await client.get(url, **kwargs)
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as c:
        return await c.get(url, **kwargs)


async def hash_suffixes(
    prefix: str,
    hash_type: HashType = HashType.SHA1,
    add_padding: bool = True,
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = PP_BASE_URL,
    user_agent: str = USER_AGENT,
) -> Dict[str, int]:
    """Return every seen suffix for ``prefix`` with its frequency.

    Exactly one GET is made, with no retries. Transport errors and
    cancellation are raised as-is; a non-200 status becomes RangeQueryError.
    """
    if not is_valid_prefix(prefix):
        raise InvalidPrefixError(prefix)

    headers = {"User-Agent": user_agent}
    if add_padding:
        headers["Add-Padding"] = "true"
    params = {"mode": "ntlm"} if hash_type == HashType.NTLM else None

    url = f"{base_url.rstrip('/')}/range/{prefix}"
    r = await _get(client, url, headers=headers, params=params)
    if r.status_code != 200:
        raise classify_error(r.status_code, r.headers)
    return parse_suffix_frequencies(split_lines(r.text))


async def _lookup(password: str, hash_type: HashType, **kwargs) -> int:
    hex_hash = hash_sha1_hex(password) if hash_type == HashType.SHA1 else hash_ntlm_hex(password)
    prefix, suffix = split_hash(hex_hash)
    suffixes = await hash_suffixes(prefix, hash_type, True, **kwargs)
    return suffixes.get(suffix, 0)


async def pwned_password_count(password: str, **kwargs) -> int:
    """Frequency of ``password`` in the corpus, 0 if neither hash is known.

    SHA-1 is checked first; NTLM is only queried when SHA-1 has no match.
    """
    for hash_type in (HashType.SHA1, HashType.NTLM):
        count = await _lookup(password, hash_type, **kwargs)
        if count:
            return count
    return 0


async def is_pwned_password(password: str, **kwargs) -> bool:
    return await pwned_password_count(password, **kwargs) > 0
