"""HTTP client with timeouts, optional retries, and streamed downloads."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from geolite_import.common.constants import USER_AGENT
from geolite_import.common.errors import DownloadError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
DOWNLOAD_CHUNK_SIZE = 1024 * 128


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 600.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(DownloadError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "*/*"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {status}")
        if status >= 400:
            raise HttpRequestError(f"HTTP status: {status}")

    def _download(self, url: str, target_path: Path, headers: dict[str, str] | None) -> int:
        try:
            response = self.session.get(
                url,
                headers=self._headers(headers),
                timeout=(self.timeout.connect, self.timeout.read),
                stream=True,
                allow_redirects=True,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableHttpError(f"Transport failure fetching {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request failed for {url}: {exc}") from exc

        try:
            self._raise_for_status_or_retry(response)
            written = 0
            with target_path.open("wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as exc:
            raise RetryableHttpError(f"Transport failure reading {url}: {exc}") from exc
        finally:
            response.close()
        return written

    def download_to_file(
        self,
        url: str,
        target_path: Path,
        *,
        headers: dict[str, str] | None = None,
    ) -> int:
        """Stream ``url`` into ``target_path`` and return the number of bytes written."""

        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> int:
            return self._download(url, target_path, headers)

        return _wrapped()
