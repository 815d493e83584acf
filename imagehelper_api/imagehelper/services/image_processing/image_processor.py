"""
图像处理管线

下载（或直接接收字节）→ 解码 → 单次变换 → 编码 → 封装结果。
所有操作共用同一条管线，差异只在 ImageOperation。
"""

import asyncio
import io
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError
import pillow_heif

from imagehelper.core.config import Settings, get_settings
from imagehelper.core.exceptions import DecodeError, ImageHelperError, ParameterError
from imagehelper.core.logging import get_logger, log_error, redact_url
from imagehelper.services.fetcher import ImageFetcher

from .formats import ImageFormat, encode_image
from .operations import (
    AddWatermark,
    ChangeFormat,
    ConvertToGrayscale,
    Crop,
    Flip,
    FlipAxis,
    GenerateQrCode,
    GenerateThumbnail,
    ImageOperation,
    Resize,
    ResizeByPercentage,
    Rotate,
    Sharpen,
)
from .result import OperationResult, get_unique_file_name

# 注册HEIF格式支持（仅用于解码源图像）
pillow_heif.register_heif_opener()

logger = get_logger(__name__)

Source = Union[str, bytes, bytearray, memoryview, None]
FormatLike = Union[ImageFormat, str, None]


@dataclass
class TransformRequest:
    """单次变换请求"""
    operation: ImageOperation
    source: Source = None
    image_format: FormatLike = None
    file_name: Optional[str] = None


class ImagePipeline:
    """图像处理管线"""

    def __init__(self,
                 fetcher: Optional[ImageFetcher] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.fetcher = fetcher or ImageFetcher(settings=self.settings)

    def resolve_format(self, image_format: FormatLike) -> ImageFormat:
        """未指定格式时使用配置的默认格式"""
        if image_format is None:
            image_format = self.settings.default_format
        return ImageFormat.from_string(image_format)

    async def acquire(self, source: Source) -> bytes:
        """URL则下载，字节则直接使用"""
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source)
        if isinstance(source, str) and source:
            return await self.fetcher.fetch(source)
        raise ParameterError(
            "Source must be an image URL or raw image bytes",
            parameter="source",
            value=type(source).__name__
        )

    def decode(self, data: bytes) -> Image.Image:
        """解码为完整加载的图像"""
        if not data:
            raise DecodeError("empty input", 0)

        try:
            img = Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise DecodeError(str(e), len(data)) from e

        try:
            img.load()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            img.close()
            raise DecodeError(str(e), len(data)) from e
        return img

    def _mutate(self, operation: ImageOperation, img: Optional[Image.Image]) -> Image.Image:
        try:
            return operation.apply(img, self.settings)
        except ImageHelperError:
            raise
        except Exception as e:
            raise ImageHelperError(
                f"Failed to apply {operation.kind}: {str(e)}",
                error_code="PROCESSING_FAILED",
                details={"operation": operation.kind, "error": str(e)}
            ) from e

    def _encode(self, img: Image.Image, image_format: ImageFormat) -> Tuple[bytes, Tuple[int, int]]:
        data = encode_image(img, image_format, jpeg_quality=self.settings.jpeg_quality)
        return data, img.size

    def transform_bytes(self,
                        data: bytes,
                        operation: ImageOperation,
                        image_format: ImageFormat) -> Tuple[bytes, Tuple[int, int]]:
        """解码、变换、编码（不涉及网络）"""
        with self.decode(data) as img:
            mutated = self._mutate(operation, img)
            try:
                return self._encode(mutated, image_format)
            finally:
                if mutated is not img:
                    mutated.close()

    def render(self,
               operation: ImageOperation,
               image_format: ImageFormat) -> Tuple[bytes, Tuple[int, int]]:
        """无源图像的操作直接生成像素再编码"""
        with self._mutate(operation, None) as img:
            return self._encode(img, image_format)

    async def run(self, request: TransformRequest) -> OperationResult:
        """执行完整的处理流程"""
        operation = request.operation
        if not isinstance(operation, ImageOperation):
            raise ParameterError(
                "operation must be an ImageOperation",
                parameter="operation",
                value=type(operation).__name__
            )

        start_time = time.time()
        context = {"operation": operation.kind}
        if isinstance(request.source, str):
            context["url"] = redact_url(request.source)

        try:
            # 1. 先确定输出格式，不支持的格式不做任何网络请求
            image_format = self.resolve_format(request.image_format)

            # 2-4. 获取、解码、变换、编码
            if operation.requires_source:
                data = await self.acquire(request.source)
                encoded, (width, height) = self.transform_bytes(data, operation, image_format)
            else:
                encoded, (width, height) = self.render(operation, image_format)

            # 5. 封装结果
            file_name = get_unique_file_name(request.file_name, image_format)
            result = OperationResult.from_bytes(encoded, file_name, image_format, width, height)
        except ImageHelperError as e:
            log_error(logger, e, context)
            raise

        duration = time.time() - start_time
        logger.info(
            f"{operation.kind} -> {result.file_name} ({width}x{height}, {result.size_bytes} bytes)",
            extra={**context, "file_name": result.file_name, "duration": duration}
        )
        return result

    async def run_many(self, requests: List[TransformRequest]) -> List[Union[OperationResult, Exception]]:
        """并发执行多个独立请求，按输入顺序返回结果或异常"""
        results = await asyncio.gather(
            *(self.run(request) for request in requests),
            return_exceptions=True
        )

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        failed = sum(1 for result in results if isinstance(result, Exception))
        if failed:
            logger.warning(f"{failed} of {len(results)} requests failed")
        return list(results)

    async def resize(self, source: Source, width: int, height: int,
                     file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """缩放到指定宽高"""
        return await self.run(TransformRequest(Resize(width, height), source, image_format, file_name))

    async def resize_by_percentage(self, source: Source, percentage: float,
                                   file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """按百分比缩放（0.5 表示一半）"""
        return await self.run(TransformRequest(ResizeByPercentage(percentage), source, image_format, file_name))

    async def change_format(self, source: Source,
                            file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """格式转换"""
        return await self.run(TransformRequest(ChangeFormat(), source, image_format, file_name))

    async def crop(self, source: Source, x: int, y: int, width: int, height: int,
                   file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """裁剪"""
        return await self.run(TransformRequest(Crop(x, y, width, height), source, image_format, file_name))

    async def rotate(self, source: Source, angle: float,
                     file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """旋转"""
        return await self.run(TransformRequest(Rotate(angle), source, image_format, file_name))

    async def add_watermark(self, source: Source, text: str,
                            file_name: Optional[str] = None, image_format: FormatLike = None,
                            font_name: Optional[str] = None, font_size: Optional[int] = None) -> OperationResult:
        """添加文字水印"""
        operation = AddWatermark(text, font_name=font_name, font_size=font_size)
        return await self.run(TransformRequest(operation, source, image_format, file_name))

    async def convert_to_grayscale(self, source: Source,
                                   file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """灰度化"""
        return await self.run(TransformRequest(ConvertToGrayscale(), source, image_format, file_name))

    async def flip(self, source: Source, axis: Union[FlipAxis, str],
                   file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """翻转"""
        return await self.run(TransformRequest(Flip(axis), source, image_format, file_name))

    async def sharpen(self, source: Source, amount: float,
                      file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """锐化"""
        return await self.run(TransformRequest(Sharpen(amount), source, image_format, file_name))

    async def generate_thumbnail(self, source: Source, max_dimension: int,
                                 file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """生成缩略图"""
        return await self.run(TransformRequest(GenerateThumbnail(max_dimension), source, image_format, file_name))

    async def generate_qr_code(self, text: str, size: int,
                               file_name: Optional[str] = None, image_format: FormatLike = None) -> OperationResult:
        """生成二维码"""
        return await self.run(TransformRequest(GenerateQrCode(text, size), None, image_format, file_name))


@lru_cache()
def get_image_pipeline() -> ImagePipeline:
    """默认管线实例"""
    return ImagePipeline()
