"""
Rate Limiting Middleware
Sliding-window limits per client address for the /api routes
"""
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, Tuple, Optional
import threading
import logging

from bizpulse.core.responses import error_response

logger = logging.getLogger(__name__)

AUTH_PATHS = ('/api/auth/login', '/api/auth/register')


class RateLimiter:
    """
    Thread-safe in-memory rate limiter using sliding window algorithm.
    Counters live in this process only.
    """

    def __init__(self, max_requests: int, window_seconds: int, auth_max_requests: int,
                 trusted_proxies: Iterable[str] = ()):
        self._requests: Dict[str, list] = defaultdict(list)
        self.trusted_proxies = frozenset(trusted_proxies)
        self._lock = threading.Lock()
        self._last_sweep = datetime.utcnow()
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.auth_max_requests = auth_max_requests

    def _get_client_ip(self, request: Request) -> str:
        """
        Get client IP address from request.
        Forwarding headers only count when the peer is a trusted proxy.
        """
        peer = request.client.host if request.client else "unknown"
        if peer not in self.trusted_proxies:
            return peer

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return peer

    def _cleanup_old_requests(self, key: str):
        """Remove requests outside the time window"""
        cutoff = datetime.utcnow() - timedelta(seconds=self.window_seconds)
        recent = [
            timestamp for timestamp in self._requests.get(key, [])
            if timestamp > cutoff
        ]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)

    def _sweep(self):
        """Drop every key with no requests left in the window, at most once per window"""
        now = datetime.utcnow()
        if now - self._last_sweep < timedelta(seconds=self.window_seconds):
            return
        self._last_sweep = now
        for key in list(self._requests):
            self._cleanup_old_requests(key)

    def _check(self, key: str, limit: int) -> Tuple[bool, Dict]:
        with self._lock:
            self._sweep()
            self._cleanup_old_requests(key)
            timestamps = self._requests.get(key, [])
            current_count = len(timestamps)

            if current_count >= limit:
                oldest_request = min(timestamps)
                retry_after = int((oldest_request + timedelta(seconds=self.window_seconds) - datetime.utcnow()).total_seconds())
                logger.warning(f"Rate limit exceeded for {key}: {current_count}/{limit} requests")
                return False, {
                    'limit': limit,
                    'remaining': 0,
                    'reset': retry_after,
                    'retry_after': max(1, retry_after)
                }

            self._requests[key].append(datetime.utcnow())
            return True, {
                'limit': limit,
                'remaining': limit - current_count - 1,
                'reset': self.window_seconds
            }

    def is_allowed(self, request: Request) -> Tuple[bool, Optional[Dict]]:
        """
        Check the general limit and, for login/register, the stricter auth limit.

        Returns:
            Tuple of (is_allowed, rate_limit_info)
        """
        ip = self._get_client_ip(request)

        if request.url.path in AUTH_PATHS and request.method == "POST":
            allowed, info = self._check(f"auth:{ip}", self.auth_max_requests)
            if not allowed:
                return allowed, info

        return self._check(f"general:{ip}", self.max_requests)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self):
        with self._lock:
            self._requests.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for rate limiting"""

    def __init__(self, app, max_requests: int = 100, window_seconds: int = 900,
                 auth_max_requests: int = 5, enabled: bool = True, trusted_proxies: Iterable[str] = ()):
        super().__init__(app)
        self.enabled = enabled
        self.rate_limiter = RateLimiter(max_requests, window_seconds, auth_max_requests, trusted_proxies)

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or not request.url.path.startswith('/api/'):
            return await call_next(request)

        is_allowed, rate_info = self.rate_limiter.is_allowed(request)

        if not is_allowed:
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                'Too many requests from this IP, please try again later.',
                headers={
                    'Retry-After': str(rate_info.get('retry_after', 60)),
                    'X-RateLimit-Limit': str(rate_info.get('limit', 0)),
                    'X-RateLimit-Remaining': '0',
                    'X-RateLimit-Reset': str(rate_info.get('reset', 60))
                }
            )

        response = await call_next(request)

        if rate_info:
            response.headers['X-RateLimit-Limit'] = str(rate_info['limit'])
            response.headers['X-RateLimit-Remaining'] = str(rate_info['remaining'])
            response.headers['X-RateLimit-Reset'] = str(rate_info['reset'])

        return response
