"""
Test configuration and fixtures
"""
import io
from typing import Callable, Dict, Tuple

import httpx
import pytest
import pytest_asyncio
from PIL import Image, ImageFont

from imagehelper.core.config import Settings
from imagehelper.services.fetcher import ImageFetcher
from imagehelper.services.image_processing import ImagePipeline

BASE_URL = "https://images.example.com"


class TestSettings(Settings):
    """Test configuration settings"""
    __test__ = False

    environment: str = "testing"
    log_level: str = "DEBUG"
    default_format: str = "png"
    fetch_timeout: float = 5.0


@pytest.fixture
def test_settings() -> TestSettings:
    """Test settings fixture"""
    return TestSettings(_env_file=None)


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """创建测试图像字节数据的工厂"""
    def _make(size: Tuple[int, int] = (100, 100),
              color="red",
              fmt: str = "PNG",
              mode: str = "RGB") -> bytes:
        img = Image.new(mode, size, color=color)
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        return buf.getvalue()
    return _make


@pytest.fixture
def sample_image_bytes(make_image_bytes) -> bytes:
    """100x100 红色PNG"""
    return make_image_bytes()


@pytest.fixture
def served_images(make_image_bytes) -> Dict[str, bytes]:
    """MockTransport 提供的远程图像"""
    return {
        "/red.png": make_image_bytes((100, 200), color="red"),
        "/wide.jpg": make_image_bytes((400, 200), color="blue", fmt="JPEG"),
        "/square.bmp": make_image_bytes((100, 100), color="green", fmt="BMP"),
        "/not-an-image.txt": b"plain text, not pixels",
    }


@pytest.fixture
def mock_transport(served_images) -> httpx.MockTransport:
    """按路径返回图像，其余路径返回404"""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/server-error":
            return httpx.Response(500)
        body = served_images.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)
    return httpx.MockTransport(handler)


@pytest_asyncio.fixture
async def http_client(mock_transport):
    async with httpx.AsyncClient(transport=mock_transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def fetcher(http_client, test_settings) -> ImageFetcher:
    return ImageFetcher(client=http_client, settings=test_settings)


@pytest.fixture
def pipeline(fetcher, test_settings) -> ImagePipeline:
    return ImagePipeline(fetcher=fetcher, settings=test_settings)


@pytest.fixture
def system_font_name() -> str:
    """返回可用的系统字体名，没有则跳过"""
    for name in ("DejaVuSans", "LiberationSans-Regular", "Arial", "FreeSans"):
        for candidate in (name, f"{name}.ttf"):
            try:
                ImageFont.truetype(candidate, 12)
                return name
            except OSError:
                continue
    pytest.skip("No TrueType system font available")


@pytest.fixture
def open_image() -> Callable[[bytes], Image.Image]:
    """解码结果字节"""
    def _open(data: bytes) -> Image.Image:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img
    return _open
