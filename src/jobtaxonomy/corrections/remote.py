"""
HTTP client for pushing category corrections to the jobs API.
"""

import os
import time
from typing import Optional

import requests

from ..exceptions import ConfigError, RemoteUpdateError

RETRYABLE_STATUS = (500, 502, 503, 504)


class RemoteCategoryClient:
    """
    Updates a job's primary category on the jobs API.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff; anything else fails immediately.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: API root, e.g. https://jobs.example.org
            timeout: Per-request timeout in seconds
            max_retries: Attempts per update (at least 1)
            retry_delay: Base delay for exponential backoff
            session: Optional requests session (for connection reuse)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.retry_delay = retry_delay
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> Optional["RemoteCategoryClient"]:
        """
        Build a client from JOBTAXONOMY_API_* environment variables.

        Returns:
            Client, or None when JOBTAXONOMY_API_URL is not set

        Raises:
            ConfigError: If timeout or retries are not numbers
        """
        base_url = os.getenv("JOBTAXONOMY_API_URL")
        if not base_url:
            return None

        try:
            timeout = float(os.getenv("JOBTAXONOMY_API_TIMEOUT", "10"))
            retries = int(os.getenv("JOBTAXONOMY_API_RETRIES", "3"))
        except ValueError as e:
            raise ConfigError(f"Invalid JOBTAXONOMY_API_* setting: {e}") from e

        return cls(base_url, timeout=timeout, max_retries=retries)

    def category_url(self, job_id: int) -> str:
        return f"{self.base_url}/api/jobs/{job_id}/category"

    def update_category(
        self,
        job_id,
        primary_category: str,
        user_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Set a job's primary category remotely.

        Args:
            job_id: Numeric job id (the API only addresses numeric ids)
            primary_category: New category id
            user_id: Reviewer id
            reason: Free-text reason

        Raises:
            RemoteUpdateError: If the id is not numeric, the request cannot be
                sent, or every attempt failed
        """
        try:
            numeric_id = int(str(job_id).strip())
        except ValueError:
            raise RemoteUpdateError(f"Job id {job_id!r} is not numeric; remote update not possible")

        url = self.category_url(numeric_id)
        payload = {
            "primary_category": primary_category,
            "user_id": user_id,
            "reason": reason,
        }

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.session.put(url, json=payload, timeout=self.timeout)
                if resp.status_code in RETRYABLE_STATUS:
                    last_error = f"HTTP {resp.status_code}"
                else:
                    resp.raise_for_status()
                    return
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = str(e)
            except requests.HTTPError as e:
                raise RemoteUpdateError(f"Remote update for job {job_id} rejected: {e}") from e
            except requests.RequestException as e:
                raise RemoteUpdateError(f"Remote update for job {job_id} failed: {e}") from e

            if attempt < self.max_retries:
                backoff = self.retry_delay * (2 ** (attempt - 1))
                print(
                    f"   [WARN] Remote update for job {job_id} failed ({last_error}) "
                    f"(attempt {attempt}/{self.max_retries}); retrying in {backoff:.1f}s..."
                )
                time.sleep(backoff)

        raise RemoteUpdateError(
            f"Remote update for job {job_id} failed after {self.max_retries} attempts: {last_error}"
        )
