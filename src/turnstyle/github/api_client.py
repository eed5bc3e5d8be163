# github/api_client.py
from __future__ import annotations

import json
import re
import time
import urllib.error
import urllib.request
from email.message import Message
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode, urljoin

from turnstyle.config import DEFAULT_API_URL
from turnstyle.errors import AbuseDetectedError, APIError, RateLimitedError
from turnstyle.ui.console import get_console

PER_PAGE = 100

_NEXT_LINK = re.compile(r'<([^>]+)>;\s*rel="next"')


def _next_page_url(headers: Message) -> Optional[str]:
    link = headers.get("Link") or ""
    match = _NEXT_LINK.search(link)
    return match.group(1) if match else None


class APIClient:
    """HTTP client for the GitHub REST API."""
    
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize API client.
        
        Args:
            base_url: Base URL of the API (GITHUB_API_URL on Enterprise Server)
            token: Token sent as a bearer credential, if any
            timeout: Socket timeout per request, in seconds
            sleep: Used for the rate-limit retry pause
            clock: Wall clock used to interpret x-ratelimit-reset
        """
        # Ensure base_url doesn't end with /
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock
    
    def _url(self, path: str, params: Optional[dict] = None) -> str:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            url = f"{url}?{urlencode(query)}"
        return url
    
    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "turnstyle",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers
    
    def _send(self, method: str, url: str) -> Tuple[Any, Message]:
        """
        Perform one HTTP round trip.

        Raises:
            urllib.error.HTTPError: left for _request to classify
            APIError: on network failures or invalid JSON
        """
        req = urllib.request.Request(url, headers=self._headers(), method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
                return (json.loads(body) if body else {}), response.headers
        except urllib.error.HTTPError:
            raise
        except urllib.error.URLError as e:
            raise APIError(f"Network error: {e.reason}")
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}")
    
    def _retry_after(self, headers: Message) -> Optional[float]:
        """Seconds to wait before retrying a throttled request, or None when not a quota response."""
        retry_after = headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                return 60.0
        if headers.get("X-RateLimit-Remaining") == "0":
            try:
                reset = float(headers.get("X-RateLimit-Reset") or 0)
            except ValueError:
                reset = 0.0
            return max(0.0, reset - self._clock())
        return None
    
    def _request(self, method: str, url: str) -> Tuple[Any, Message]:
        """
        Make an HTTP request to the API.

        A request that exhausts the primary quota is retried once after the
        advertised delay. A secondary (abuse) limit is only logged.

        Raises:
            RateLimitedError: quota still exhausted after the retry
            AbuseDetectedError: secondary rate limit
            APIError: any other failure
        """
        console = get_console()
        retried = False
        while True:
            try:
                return self._send(method, url)
            except urllib.error.HTTPError as e:
                error_body = e.read().decode("utf-8", errors="replace") if e.fp else ""
                headers = e.headers if e.headers is not None else Message()
                if e.code in (403, 429):
                    lowered = error_body.lower()
                    if "secondary rate limit" in lowered or "abuse" in lowered:
                        console.print_debug(f"Abuse detected for request {method} {url}")
                        raise AbuseDetectedError(
                            f"Secondary rate limit for {method} {url}: {e.code} {e.reason}",
                            status=e.code,
                        )
                    delay = self._retry_after(headers)
                    if delay is not None:
                        console.print_warning(f"Request quota exhausted for request {method} {url}")
                        if retried:
                            raise RateLimitedError(
                                f"Request quota exhausted for {method} {url}",
                                status=e.code,
                            )
                        console.print_debug(f"Retrying after {delay:.0f} seconds!")
                        self._sleep(delay)
                        retried = True
                        continue
                raise APIError(
                    f"API request failed: {e.code} {e.reason}. {error_body}".rstrip(),
                    status=e.code,
                )
    
    def get(self, path: str, params: Optional[dict] = None) -> Any:
        """GET a single resource and return the parsed JSON body."""
        url = self._url(path, params)
        get_console().print_debug(f"API Call: GET {url}")
        data, _headers = self._request("GET", url)
        return data
    
    def paginate(self, path: str, params: Optional[dict] = None, key: Optional[str] = None) -> List[Any]:
        """
        GET every page of a list endpoint.

        Args:
            path: API path (e.g., "/repos/o/r/actions/runs/1/jobs")
            params: Query parameters for the first page
            key: Name of the list inside a wrapped response
                 (e.g., "workflow_runs"); None for bare-array endpoints

        Returns:
            All items, in page order
        """
        params = {"per_page": PER_PAGE, **(params or {})}
        url: Optional[str] = self._url(path, params)
        items: List[Any] = []
        while url:
            get_console().print_debug(f"API Call: GET {url}")
            data, headers = self._request("GET", url)
            page = data.get(key, []) if key is not None and isinstance(data, dict) else data
            if not isinstance(page, list):
                raise APIError(f"Unexpected response shape for {path}: expected a list")
            items.extend(page)
            url = _next_page_url(headers)
        return items
