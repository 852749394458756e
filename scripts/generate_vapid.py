#!/usr/bin/env python3
"""
Generate a VAPID key pair for air quality push alerts.

Prints VAPID_* environment lines, or appends them to an env file:

    python scripts/generate_vapid.py --contact ops@example.com --env-file .env
"""

import argparse
import base64
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_vapid_keys() -> tuple[str, str]:
    """Return (public_key, private_key) as unpadded base64url strings.

    The public key is the uncompressed P-256 point browsers expect as
    applicationServerKey; the private key is the raw 32-byte scalar.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_point = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private_scalar = private_key.private_numbers().private_value.to_bytes(32, "big")
    return _b64url(public_point), _b64url(private_scalar)


def env_lines(contact: str) -> list[str]:
    public_key, private_key = generate_vapid_keys()
    return [
        f"VAPID_PUBLIC_KEY={public_key}",
        f"VAPID_PRIVATE_KEY={private_key}",
        f"VAPID_CONTACT_EMAIL={contact}",
    ]


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--contact", default="alerts@example.com", help="contact address for the VAPID sub claim")
    parser.add_argument("--env-file", type=Path, help="append the keys to this file instead of printing them")
    args = parser.parse_args()

    lines = env_lines(args.contact)
    if args.env_file:
        with args.env_file.open("a", encoding="utf-8") as fh:
            fh.write("\n".join(lines) + "\n")
        print(f"Wrote VAPID keys to {args.env_file}")
    else:
        print("\n".join(lines))


if __name__ == "__main__":
    main()
