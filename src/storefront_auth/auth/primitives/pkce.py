"""PKCE (Proof Key for Code Exchange) and security parameter generation.

Implements RFC 7636 PKCE parameter generation plus the state (CSRF) and
nonce (replay) values that accompany each authorization attempt.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from storefront_auth.auth.models.errors import PKCEError
from storefront_auth.auth.models.security import (
    AuthorizationParameters,
    PKCEParameters,
    SecurityParameters,
)

NONCE_ALPHABET = string.ascii_letters + string.digits
STATE_ALPHABET = string.ascii_letters + string.digits + "-._~"


def base64url_encode(data: bytes) -> str:
    """Base64url-encode raw bytes without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates the per-attempt PKCE pair, state and nonce.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url); plain is never used
    - Generates code verifiers from 32 bytes of the OS random source
    - Draws state and nonce from ``secrets``, never from a plain PRNG
    """

    def generate_parameters(self, nonce_length: int = 16) -> AuthorizationParameters:
        """Generate everything needed for a new authorization attempt.

        Args:
            nonce_length: Number of characters in the nonce

        Returns:
            AuthorizationParameters: PKCE pair, state and nonce, to be stored
            and consumed together

        Raises:
            PKCEError: If the random source fails
        """
        try:
            code_verifier = self.generate_code_verifier()
            pkce = PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=self.generate_code_challenge(code_verifier),
                code_challenge_method="S256",
            )
            security = SecurityParameters(
                state=self.generate_state(),
                nonce=self.generate_nonce(nonce_length),
            )
        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

        return AuthorizationParameters(pkce=pkce, security=security)

    def generate_code_verifier(self) -> str:
        """Generate a code verifier from 32 random bytes.

        The raw bytes (not their hex text) are base64url-encoded, giving a
        43-character verifier within the RFC 7636 length limits.
        """
        return base64url_encode(secrets.token_bytes(32))

    def generate_code_challenge(self, code_verifier: str) -> str:
        """Generate code challenge from code verifier using S256 method.

        RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
        """
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64url_encode(digest)

    def generate_state(self) -> str:
        """Generate an unguessable 32-character state parameter."""
        return "".join(secrets.choice(STATE_ALPHABET) for _ in range(32))

    def generate_nonce(self, length: int = 16) -> str:
        """Generate an alphanumeric nonce of the given length."""
        if length < 1:
            raise ValueError("Nonce length must be positive")
        return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))
