"""
图像处理服务模块

提供下载、解码、变换、编码及结果封装功能
"""

from .formats import ImageFormat
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
    Operation,
    Resize,
    ResizeByPercentage,
    Rotate,
    Sharpen,
)
from .result import OperationResult, get_unique_file_name
from .image_processor import ImagePipeline, TransformRequest, get_image_pipeline

__all__ = [
    "ImagePipeline",
    "TransformRequest",
    "get_image_pipeline",
    "ImageFormat",
    "OperationResult",
    "get_unique_file_name",
    "ImageOperation",
    "Operation",
    "Resize",
    "ResizeByPercentage",
    "ChangeFormat",
    "Crop",
    "Rotate",
    "AddWatermark",
    "ConvertToGrayscale",
    "Flip",
    "FlipAxis",
    "Sharpen",
    "GenerateThumbnail",
    "GenerateQrCode",
]
