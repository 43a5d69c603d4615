"""Security-related models for the customer authorization flow.

Contains PKCE parameters and the per-attempt state and nonce values that
travel with them.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters.

    Immutable parameters generated for each authorization attempt to prevent
    authorization code interception attacks (RFC 7636). The verifier never
    leaves the session until the code exchange.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")


@dataclass(frozen=True)
class SecurityParameters:
    """Single-use CSRF state and anti-replay nonce."""

    state: str
    nonce: str = field(repr=False)


@dataclass(frozen=True)
class AuthorizationParameters:
    """Everything generated for one authorization attempt.

    The PKCE pair, state and nonce are generated, stored and consumed
    together.
    """

    pkce: PKCEParameters
    security: SecurityParameters

    @property
    def code_verifier(self) -> str:
        return self.pkce.code_verifier

    @property
    def code_challenge(self) -> str:
        return self.pkce.code_challenge

    @property
    def state(self) -> str:
        return self.security.state

    @property
    def nonce(self) -> str:
        return self.security.nonce
