"""Keyed password hashing for wallet authentication."""

import hashlib
import hmac
import secrets


def generate_salt() -> str:
    return secrets.token_hex(32)


def hash_password(password: str, salt: str) -> str:
    """HMAC-SHA512 of the password keyed with the wallet's salt, hex encoded."""
    mac = hmac.new(key=salt.encode("utf-8"), msg=password.encode("utf-8"), digestmod=hashlib.sha512)
    return mac.hexdigest()


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password, salt), expected_hash)
