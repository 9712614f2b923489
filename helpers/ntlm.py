"""NTLM password hash (MD4 over the password widened to 16-bit code units).

Every input byte is forwarded as the byte followed by a zero byte, the way
Windows stores single-byte characters as UTF-16LE. Non-ASCII text is NOT
transcoded: each byte is widened on its own, which is what the Pwned
Passwords NTLM corpus expects.
"""
from typing import Union

from passlib.crypto.digest import lookup_hash

DIGEST_SIZE = 16
BLOCK_SIZE = 64

# hashlib's md4 when OpenSSL still provides it, passlib's own otherwise
_md4 = lookup_hash("md4").const

Buffer = Union[bytes, bytearray, memoryview]


def _widen(data: Buffer) -> bytes:
    buf = bytearray(len(data) * 2)
    buf[0::2] = data
    return bytes(buf)


class NTLMHash:
    name = "ntlm"
    digest_size = DIGEST_SIZE
    block_size = BLOCK_SIZE

    def __init__(self, data: Buffer = b""):
        self._h = _md4()
        if data:
            self.update(data)

    def update(self, data: Buffer) -> None:
        self._h.update(_widen(data))

    def write(self, data: Buffer) -> int:
        """File-style write; returns how many input bytes were accepted."""
        self.update(data)
        return len(data)

    def digest(self) -> bytes:
        return self._h.digest()

    def hexdigest(self) -> str:
        return self._h.hexdigest()

    def sum(self, prefix: Buffer = b"") -> bytes:
        """Return ``prefix`` with the current digest appended.

        State is left untouched, so writing may continue afterwards.
        """
        return bytes(prefix) + self.digest()

    def reset(self) -> None:
        self._h = _md4()


def new(data: Buffer = b"") -> NTLMHash:
    return NTLMHash(data)


def ntlm_digest(data: Buffer) -> bytes:
    """NTLM hash of ``data`` in one call."""
    return NTLMHash(data).digest()
