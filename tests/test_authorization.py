# ABOUTME: Tests for claims checks and the static authorizer
# ABOUTME: Quota, size and format limits plus token/key validation

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from authorization import StaticAuthorizer, TokenClaims, check_claims
from splat_errors import (
    AuthorizationError,
    FileTooLargeError,
    QuotaExceededError,
    SplatsError,
    TokenExpiredError,
)

NOW = 1_700_000_000


def make_claims(**overrides):
    values = dict(sub='key_123', exp=NOW + 3600, iat=NOW, conversions_remaining=10,
                  max_file_size=1024, formats=['glb', 'gltf'])
    values.update(overrides)
    return TokenClaims(**values)


class TestTokenClaims:
    """Tests for format permissions."""

    def test_allows_format(self):
        claims = make_claims(formats=['glb', 'GLTF'])
        assert claims.allows_format('glb')
        assert claims.allows_format('GLB')
        assert claims.allows_format('gltf')
        assert not claims.allows_format('splat')

    def test_no_formats(self):
        assert not make_claims(formats=[]).allows_format('glb')


class TestCheckClaims:
    """Tests for quota/size/format enforcement."""

    def test_passes_within_limits(self):
        check_claims(make_claims(), 1024, 'glb')

    def test_zero_quota(self):
        with pytest.raises(QuotaExceededError, match="Quota exceeded"):
            check_claims(make_claims(conversions_remaining=0), 10)

    def test_file_too_large(self):
        with pytest.raises(FileTooLargeError) as excinfo:
            check_claims(make_claims(max_file_size=100), 101)
        assert excinfo.value.size == 101
        assert excinfo.value.limit == 100
        assert str(excinfo.value) == "File too large: 101 bytes exceeds limit of 100 bytes"

    def test_quota_checked_before_size(self):
        with pytest.raises(QuotaExceededError):
            check_claims(make_claims(conversions_remaining=0, max_file_size=1), 1000)

    def test_format_not_permitted(self):
        with pytest.raises(AuthorizationError, match="not permitted"):
            check_claims(make_claims(formats=['glb']), 10, 'gltf')

    def test_format_check_optional(self):
        check_claims(make_claims(formats=[]), 10)

    def test_errors_share_base(self):
        for cls in (AuthorizationError, TokenExpiredError, QuotaExceededError, FileTooLargeError):
            assert issubclass(cls, SplatsError)


class TestStaticAuthorizer:
    """Tests for the fixed-claims authorizer."""

    @pytest.fixture
    def authorizer(self):
        return StaticAuthorizer('tok', 'secret', make_claims(), clock=lambda: NOW)

    def test_valid(self, authorizer):
        assert authorizer('tok', 'secret').sub == 'key_123'

    def test_wrong_key(self, authorizer):
        with pytest.raises(AuthorizationError, match="Invalid verification key"):
            authorizer('tok', 'other')

    def test_wrong_token(self, authorizer):
        with pytest.raises(AuthorizationError, match="Invalid token"):
            authorizer('nope', 'secret')

    def test_expired(self):
        authorizer = StaticAuthorizer('tok', 'secret', make_claims(exp=NOW - 1), clock=lambda: NOW)
        with pytest.raises(TokenExpiredError):
            authorizer('tok', 'secret')

    def test_expiring_this_second_is_valid(self):
        authorizer = StaticAuthorizer('tok', 'secret', make_claims(exp=NOW), clock=lambda: NOW + 0.5)
        assert authorizer('tok', 'secret').exp == NOW
