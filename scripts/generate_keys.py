#!/usr/bin/env python3
"""
Generate secure keys for the session service.

Usage:
    python scripts/generate_keys.py               # encryption key and API key
    python scripts/generate_keys.py encryption    # ENCRYPTION_KEY only
    python scripts/generate_keys.py unique        # UNIQUE_KEY for deterministic tokens
    python scripts/generate_keys.py api 64        # 64-char API key
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from codeauth.core.constants import DEFAULT_API_KEY_LENGTH, MIN_API_KEY_LENGTH
from codeauth.core.security import TokenCipher, format_key, generate_api_key


def generate_encryption_key() -> str:
    return format_key(TokenCipher.generate_key())


def print_encryption_key(env_var: str = "ENCRYPTION_KEY") -> None:
    key = generate_encryption_key()
    print(f"{env_var} (add to .env):")
    print(f"{env_var}={key}\n")


def print_api_key(length: int) -> None:
    key = generate_api_key(length)
    print("API key (hand to the consuming application):")
    print(f"{key}\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate keys for the session service")
    parser.add_argument(
        "kind",
        nargs="?",
        default="both",
        choices=["both", "encryption", "unique", "api"],
    )
    parser.add_argument("length", nargs="?", type=int, default=DEFAULT_API_KEY_LENGTH)
    args = parser.parse_args(argv)

    length = args.length if args.length >= MIN_API_KEY_LENGTH else DEFAULT_API_KEY_LENGTH

    if args.kind in ("both", "encryption"):
        print_encryption_key()
    if args.kind == "unique":
        print_encryption_key("UNIQUE_KEY")
    if args.kind in ("both", "api"):
        print_api_key(length)
    return 0


if __name__ == "__main__":
    sys.exit(main())
