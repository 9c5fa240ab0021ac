"""
Kalshi RSA-based API key authentication.

Kalshi API v2 requires RSA-signed requests:
  - Header: KALSHI-ACCESS-KEY = api_key_id
  - Header: KALSHI-ACCESS-SIGNATURE = base64(RSA_PSS_SHA256(timestamp + method + path))
  - Header: KALSHI-ACCESS-TIMESTAMP = unix_ms

The legacy variant also appends the request body to the signed message.
"""

from __future__ import annotations

import base64
import time
from pathlib import Path

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from config import Config, has_credentials


class SigningError(Exception):
    """Raised when a request cannot be signed. Credentials are unusable for the cycle."""
    pass


class KalshiAuth:
    """Handles RSA key loading and request signing for Kalshi API v2."""

    def __init__(self, api_key_id: str, private_key_path: str, sign_body: bool = False) -> None:
        self.api_key_id = api_key_id
        self.sign_body = sign_body
        self._private_key = self._load_private_key(private_key_path)

    @staticmethod
    def _load_private_key(path: str) -> rsa.RSAPrivateKey:
        """Load RSA private key from PEM file."""
        pem_data = Path(path).read_bytes()
        key = serialization.load_pem_private_key(pem_data, password=None)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError(f"Expected RSA private key, got {type(key).__name__}")
        return key

    def sign_request(
        self,
        method: str,
        path: str,
        timestamp_ms: int | None = None,
        body: str = "",
    ) -> dict[str, str]:
        """
        Generate authentication headers for a Kalshi API request.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: Request path (e.g., /trade-api/v2/portfolio/orders), no query string
            timestamp_ms: Unix timestamp in milliseconds (auto-generated if None)
            body: Serialized request body, signed only when sign_body is set

        Returns:
            Dict of headers to add to the request.

        Raises:
            SigningError: If the key cannot produce a signature.
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)

        message = f"{timestamp_ms}{method.upper()}{path}"
        if self.sign_body and body:
            message += body

        try:
            signature = self._private_key.sign(
                message.encode("utf-8"),
                padding.PSS(
                    mgf=padding.MGF1(hashes.SHA256()),
                    salt_length=padding.PSS.DIGEST_LENGTH,
                ),
                hashes.SHA256(),
            )
        except (ValueError, TypeError) as e:
            raise SigningError(f"Kalshi request signing failed: {e}") from e
        sig_b64 = base64.b64encode(signature).decode("utf-8")

        return {
            "KALSHI-ACCESS-KEY": self.api_key_id,
            "KALSHI-ACCESS-SIGNATURE": sig_b64,
            "KALSHI-ACCESS-TIMESTAMP": str(timestamp_ms),
        }


def build_kalshi_auth(cfg: Config) -> KalshiAuth | None:
    """
    Build auth from config. Returns None when credentials are not configured
    (observe-only mode). Raises if a configured key file cannot be loaded.
    """
    if not has_credentials(cfg):
        return None
    return KalshiAuth(
        api_key_id=cfg.kalshi_api_key_id,
        private_key_path=cfg.kalshi_private_key_path,
        sign_body=cfg.kalshi_sign_body,
    )
