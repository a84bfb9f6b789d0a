"""
Throttle classes for rate limiting during tests and development.

These throttles use low rates so 429 responses are easy to exercise in automated
tests (see `genealogy/tests/test_throttling.py`) and manual QA. Production rates
are configured per scope in `REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]` and not
altered here.

Classes:
    - `UserBurstThrottle`: 3 requests per minute per authenticated user.
    - `AnonBurstThrottle`: 2 requests per minute per anonymous client.
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class UserBurstThrottle(UserRateThrottle):
    """Low-rate throttle for tests to quickly trigger 429s ("3/min" per user)."""
    rate = "3/min"


class AnonBurstThrottle(AnonRateThrottle):
    """Low-rate throttle for tests to quickly trigger 429s ("2/min" per client IP)."""
    rate = "2/min"
