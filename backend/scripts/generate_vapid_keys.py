"""
Generate a VAPID key pair for Web Push.

Prints the two values for backend/.env. The public key is also what the
web clients pass as applicationServerKey when they subscribe. Rotating the
keys invalidates every stored subscription; run
`python scripts/clean_push_tokens.py --all-subscriptions` afterwards.

Run from the backend/ directory:
    python scripts/generate_vapid_keys.py
"""
import sys

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid
from py_vapid.utils import b64urlencode


def generate_keys() -> dict:
    """Fresh P-256 pair as url-safe base64 (raw private scalar, uncompressed public point)."""
    vapid = Vapid()
    vapid.generate_keys()
    private_raw = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    public_raw = vapid.public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return {
        "public_key": b64urlencode(public_raw),
        "private_key": b64urlencode(private_raw),
    }


def main() -> int:
    keys = generate_keys()
    print("🔑 VAPID keys generated. Add these to backend/.env:\n")
    print(f"VAPID_PUBLIC_KEY={keys['public_key']}")
    print(f"VAPID_PRIVATE_KEY={keys['private_key']}")
    print("\n⚠️  Keep the private key secret. Existing browser subscriptions stop working with new keys.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
