"""Signing helpers for the admission logbook."""
from __future__ import annotations

from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..constants import KEY_FILE, PUB_FILE

_PSS = padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.MAX_LENGTH)


def ensure_keypair(key_file=KEY_FILE, pub_file=PUB_FILE):
    """Load the verifier's RSA private key, generating a keypair on first use."""

    key_path = Path(key_file)
    if key_path.exists():
        return serialization.load_pem_private_key(key_path.read_bytes(), password=None)

    print("🔐 Generating new Warden RSA keypair ...")
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    Path(pub_file).write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    print(f"  ✓ Keys written to {key_file}, {pub_file}")
    return private_key


def sign_hash(sha256_hex, key_file=KEY_FILE, pub_file=PUB_FILE):
    """Sign a SHA-256 hex digest and return the signature as hex."""

    private_key = ensure_keypair(key_file, pub_file)
    return private_key.sign(sha256_hex.encode(), _PSS, hashes.SHA256()).hex()


def verify_signature(sha256_hex, signature_hex, pub_file=PUB_FILE):
    """Return ``True`` when *signature_hex* signs *sha256_hex*."""

    public_key = serialization.load_pem_public_key(Path(pub_file).read_bytes())
    try:
        signature = bytes.fromhex(signature_hex)
    except ValueError:
        return False
    try:
        public_key.verify(signature, sha256_hex.encode(), _PSS, hashes.SHA256())
    except InvalidSignature:
        return False
    return True


__all__ = ["ensure_keypair", "sign_hash", "verify_signature"]
