from __future__ import annotations
import hashlib
import hmac


class HashingError(RuntimeError):
    pass


def _digest_address(raw_address: str) -> bytes:
    # fixed-length input for the keyed stage, whatever the address format
    return hashlib.sha256(raw_address.encode("utf-8")).digest()


def hash_address(raw_address: str, pepper: str) -> str:
    """
    Turn a raw client address into an opaque identifier.

    sha256(address) is fed into hmac-sha256 keyed by the pepper. Without the
    pepper the identifier can't be linked back to an address, and rotating
    the pepper invalidates every identifier issued before.
    """
    if not pepper:
        raise HashingError("pepper is empty")
    try:
        digest = _digest_address(raw_address)
        return hmac.new(pepper.encode("utf-8"), digest, hashlib.sha256).hexdigest()
    except ValueError as exc:
        # hashlib raises ValueError when sha256 is disabled (e.g. FIPS builds)
        raise HashingError("sha256 is unavailable") from exc
