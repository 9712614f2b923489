import argparse
import asyncio
import logging
import sys
from getpass import getpass
from typing import List, Optional

import httpx

import config
from helpers.pwned import (
    HashType,
    PwnedPasswordsError,
    RangeQueryError,
    hash_suffixes,
    is_pwned_password,
)

logger = logging.getLogger("pwncheck")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.TIMEOUT_SEC),
        headers={"User-Agent": config.USER_AGENT},
    )


def _report_error(e: Exception) -> int:
    if isinstance(e, RangeQueryError) and e.retry_after is not None:
        print(f"[ERROR] {e} (retry after {int(e.retry_after.total_seconds())}s)", file=sys.stderr)
    else:
        print(f"[ERROR] {e}", file=sys.stderr)
    return 2


async def _check_password(password: str) -> bool:
    async with _client() as client:
        return await is_pwned_password(
            password,
            client=client,
            base_url=config.PWNED_PASSWORDS_API,
            user_agent=config.USER_AGENT,
        )


async def _range(prefix: str, hash_type: HashType, add_padding: bool):
    async with _client() as client:
        return await hash_suffixes(
            prefix,
            hash_type,
            add_padding,
            client=client,
            base_url=config.PWNED_PASSWORDS_API,
            user_agent=config.USER_AGENT,
        )


def cmd_password(args: argparse.Namespace) -> int:
    password = args.password
    if password is None:
        password = getpass("Enter password to check (input hidden): ")
    if not password:
        print("No password provided.", file=sys.stderr)
        return 2

    try:
        pwned = asyncio.run(_check_password(password))
    except (PwnedPasswordsError, httpx.HTTPError) as e:
        return _report_error(e)

    # Never echo the password itself
    if pwned:
        print("PWNED: this password appears in known breaches. Do not use it.")
        return 1
    print("OK: password not found in Pwned Passwords.")
    return 0


def cmd_range(args: argparse.Namespace) -> int:
    hash_type = HashType.NTLM if args.ntlm else HashType.SHA1
    logger.debug("range query prefix=%s mode=%s", args.prefix, hash_type.value)
    try:
        suffixes = asyncio.run(_range(args.prefix, hash_type, not args.no_padding))
    except (PwnedPasswordsError, httpx.HTTPError) as e:
        return _report_error(e)

    for suffix, count in sorted(suffixes.items()):
        print(f"{suffix}:{count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pwncheck", description="Check passwords against Pwned Passwords (k-anonymity).")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    pw = sub.add_parser("password", help="check whether a password is pwned (SHA-1, then NTLM)")
    pw.add_argument("password", nargs="?", help="omit to be prompted")
    pw.set_defaults(func=cmd_password)

    rg = sub.add_parser("range", help="list suffixes for a 5-hex-character prefix")
    rg.add_argument("prefix")
    rg.add_argument("--ntlm", action="store_true", help="query NTLM hashes instead of SHA-1")
    rg.add_argument("--no-padding", action="store_true", default=not config.ADD_PADDING,
                    help="do not ask the server to pad the response")
    rg.set_defaults(func=cmd_range)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
