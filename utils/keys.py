"""
Signing key derivation.

Accepts a BIP-39 recovery phrase (derived on the Pi coin path with
SLIP-0010 ed25519) or a raw ``S...`` secret seed. Never logs or echoes the
secret it was given.
"""

import logging
from typing import Optional

from bip_utils import Bip32Slip10Ed25519
from mnemonic import Mnemonic
from stellar_sdk import Keypair, StrKey

from race_engine.errors import InvalidSecret

logger = logging.getLogger(__name__)

PI_DERIVATION_PATH = "m/44'/314159'/0'"


def derive_ed25519_key(seed: bytes, path: str = PI_DERIVATION_PATH) -> bytes:
    """SLIP-0010 ed25519 private key for a fully hardened path."""
    node = Bip32Slip10Ed25519.FromSeedAndPath(seed, path)
    return node.PrivateKey().Raw().ToBytes()


def keypair_from_mnemonic(phrase: str, passphrase: str = "", language: str = "english") -> Keypair:
    """Derive the account keypair for a recovery phrase."""
    normalized = " ".join(phrase.split()).lower()
    if not Mnemonic(language).check(normalized):
        raise InvalidSecret("Invalid keyphrase. Please check for typos or extra spaces.")
    seed = Mnemonic.to_seed(normalized, passphrase=passphrase)
    return Keypair.from_raw_ed25519_seed(derive_ed25519_key(seed))


def derive_keypair(secret: Optional[str]) -> Keypair:
    """
    Signing keypair for a phrase or secret seed.

    Raises:
        InvalidSecret: empty, malformed, or checksum-failing input
    """
    if secret is None or not secret.strip():
        raise InvalidSecret("Keyphrase is required.")

    candidate = secret.strip()
    if candidate.startswith("S") and " " not in candidate:
        if not StrKey.is_valid_ed25519_secret_seed(candidate):
            raise InvalidSecret("Invalid secret seed.")
        return Keypair.from_secret(candidate)

    keypair = keypair_from_mnemonic(candidate)
    logger.debug(f"🔑 Derived keypair {keypair.public_key[:6]}...")
    return keypair
