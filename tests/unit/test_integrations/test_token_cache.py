"""Unit tests for processor access tokens."""
import threading
import time
from conftest import FakeClock
from mindbridge.integrations.airwallex.models import AccessToken, TokenCache


class TestAccessToken:
    """Test AccessToken parsing."""

    def test_parses_processor_expiry_format(self):
        token = AccessToken.from_login_response(
            {"token": "tok", "expires_at": "2025-07-03T04:10:02+0000"},
            now=0
        )

        assert token.expires_at == 1751515802.0

    def test_defaults_to_thirty_minutes(self):
        token = AccessToken.from_login_response({"token": "tok"}, now=1000)

        assert token.expires_at == 1000 + 1800

    def test_validity_margin(self):
        token = AccessToken("tok", expires_at=1000)

        assert token.is_valid(939, 60)
        assert not token.is_valid(940, 60)


class TestTokenCache:
    """Test TokenCache refresh behaviour."""

    def test_reuses_token_until_sixty_seconds_before_expiry(self):
        clock = FakeClock(start=1000)
        cache = TokenCache(margin_seconds=60, clock=clock.now)
        issued = []

        def fetch():
            issued.append(f"tok{len(issued) + 1}")
            return AccessToken(issued[-1], expires_at=clock.now() + 1800)

        assert cache.get_or_refresh(fetch) == "tok1"
        clock.advance(1739)
        assert cache.get_or_refresh(fetch) == "tok1"
        clock.advance(1)
        assert cache.get_or_refresh(fetch) == "tok2"
        assert len(issued) == 2

    def test_concurrent_callers_share_one_refresh(self):
        cache = TokenCache()
        calls = []

        def fetch():
            calls.append(1)
            time.sleep(0.05)
            return AccessToken("tok", expires_at=time.time() + 1800)

        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.get_or_refresh(fetch))) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert results == ["tok"] * 8

    def test_invalidate_only_drops_matching_token(self):
        cache = TokenCache()
        cache.get_or_refresh(lambda: AccessToken("tok2", expires_at=time.time() + 1800))

        cache.invalidate("tok1")
        assert cache.peek() == "tok2"

        cache.invalidate("tok2")
        assert cache.peek() is None
