# ABOUTME: Authorization collaborator interface for metered conversions
# ABOUTME: Claims record, quota/size/format checks, and a fixed-claims authorizer

import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from splat_errors import (
    AuthorizationError,
    FileTooLargeError,
    QuotaExceededError,
    TokenExpiredError,
)

logger = logging.getLogger('gaussian_pipeline')


@dataclass
class TokenClaims:
    """
    Claims granted by a validated credential.

    Attributes:
        sub: Subject (API key id)
        exp: Expiration time (unix seconds)
        iat: Issued-at time (unix seconds)
        conversions_remaining: Conversions allowed; 0 means reject
        max_file_size: Largest accepted input in bytes
        formats: Output format names this credential may produce
    """
    sub: str
    exp: int
    iat: int
    conversions_remaining: int
    max_file_size: int
    formats: List[str] = field(default_factory=list)

    def allows_format(self, format_name: str) -> bool:
        """Check if a specific format is allowed (case-insensitive)."""
        wanted = format_name.lower()
        return any(f.lower() == wanted for f in self.formats)


# (token, verification_key) -> claims; raises AuthorizationError / TokenExpiredError
Authorizer = Callable[[str, str], TokenClaims]


def check_claims(claims: TokenClaims, input_size: int, output_format: Optional[str] = None) -> None:
    """
    Enforce quota, size and format limits before any parsing happens.

    Args:
        claims: Claims returned by the authorizer
        input_size: Size of the PLY input in bytes
        output_format: Requested format name, or None to skip the format check

    Raises:
        QuotaExceededError: No conversions remaining
        FileTooLargeError: Input larger than max_file_size
        AuthorizationError: Output format not permitted
    """
    if claims.conversions_remaining == 0:
        raise QuotaExceededError()

    if input_size > claims.max_file_size:
        raise FileTooLargeError(input_size, claims.max_file_size)

    if output_format is not None and not claims.allows_format(output_format):
        raise AuthorizationError(f"Output format not permitted: {output_format}")

    logger.debug("Authorized %s: %d conversions remaining, %d byte limit",
                 claims.sub, claims.conversions_remaining, claims.max_file_size)


class StaticAuthorizer:
    """
    Authorizer that grants fixed claims to one token under one key.

    Useful for local runs and tests where no signing service is available.
    """

    def __init__(self, token: str, verification_key: str, claims: TokenClaims,
                 clock: Callable[[], float] = time.time):
        self.token = token
        self.verification_key = verification_key
        self.claims = claims
        self.clock = clock

    def __call__(self, token: str, verification_key: str) -> TokenClaims:
        if not hmac.compare_digest(verification_key.encode(), self.verification_key.encode()):
            raise AuthorizationError("Invalid verification key")
        if not hmac.compare_digest(token.encode(), self.token.encode()):
            raise AuthorizationError("Invalid token")
        if self.claims.exp < int(self.clock()):
            raise TokenExpiredError("Token expired")
        return self.claims
