"""
图像下载服务

通过HTTP GET获取远程图像的完整字节内容
"""

import time
from typing import Optional

import httpx

from imagehelper.core.config import Settings, get_settings
from imagehelper.core.exceptions import RemoteFetchError
from imagehelper.core.logging import get_logger, redact_url

logger = get_logger(__name__)


class ImageFetcher:
    """
    远程图像下载器

    不做重试，也不设置默认超时；需要超时或重试的调用方自行在外层处理。
    传入的client由调用方负责关闭，否则每次调用创建并关闭自己的client。
    """

    def __init__(self,
                 client: Optional[httpx.AsyncClient] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = client

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.fetch_timeout),
            follow_redirects=True,
            headers={"User-Agent": self.settings.user_agent},
        )

    async def fetch(self, url: str) -> bytes:
        """下载URL并返回响应体"""
        start_time = time.time()
        safe_url = redact_url(url)

        try:
            if self._client is not None:
                data = await self._download(self._client, url)
            else:
                async with self._build_client() as client:
                    data = await self._download(client, url)
        except RemoteFetchError:
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteFetchError(safe_url, f"{type(e).__name__}: {e}") from e

        logger.debug(
            f"Downloaded {len(data)} bytes from {safe_url}",
            extra={"url": safe_url, "duration": time.time() - start_time}
        )
        return data

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise RemoteFetchError(
                    redact_url(url),
                    response.reason_phrase or "request failed",
                    status_code=response.status_code
                )

            limit = self.settings.max_download_bytes
            if limit is None:
                return await response.aread()

            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > limit:
                    raise RemoteFetchError(
                        redact_url(url),
                        f"response body exceeds {limit} bytes",
                        status_code=response.status_code
                    )
                chunks.append(chunk)
            return b"".join(chunks)
