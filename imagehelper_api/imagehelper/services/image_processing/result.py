"""
处理结果封装

同一份字节同时提供原始字节、Base64和可上传文件三种形式
"""

import base64
import io
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile
from starlette.datastructures import Headers

from .formats import ImageFormat


def get_unique_file_name(file_name: Optional[str], image_format: ImageFormat) -> str:
    """文件名为空时生成UUID，并追加格式扩展名"""
    if not file_name:
        file_name = str(uuid.uuid4())
    return f"{file_name}.{image_format.extension}"


@dataclass(frozen=True)
class OperationResult:
    """处理后的图像数据"""
    byte_array: bytes
    base64: str
    form_file: UploadFile
    file_name: str
    format: ImageFormat
    width: int
    height: int

    @classmethod
    def from_bytes(cls,
                   data: bytes,
                   file_name: str,
                   image_format: ImageFormat,
                   width: int,
                   height: int) -> "OperationResult":
        """从编码后的字节构建结果"""
        data = bytes(data)
        form_file = UploadFile(
            file=io.BytesIO(data),
            size=len(data),
            filename=file_name,
            headers=Headers({"content-type": image_format.content_type}),
        )
        return cls(
            byte_array=data,
            base64=base64.b64encode(data).decode("ascii"),
            form_file=form_file,
            file_name=file_name,
            format=image_format,
            width=width,
            height=height,
        )

    @property
    def size_bytes(self) -> int:
        return len(self.byte_array)

