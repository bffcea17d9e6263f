"""Request-scoped value objects for the image pipeline."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class UploadedAsset:
    path: Path
    original_name: str
    source_format: str  # normalized: jpg/jpeg/jfif -> "jpeg"
    size: int  # bytes


@dataclass
class ResizeSpec:
    width: int
    height: int
    maintain_aspect_ratio: bool = False


@dataclass
class CropSpec:
    x: int
    y: int
    width: int
    height: int


@dataclass
class CompressionSpec:
    """Either a direct quality level or a byte budget; the budget wins when set."""

    quality: int
    max_bytes: Optional[int] = None


@dataclass
class EncodedResult:
    data: bytes
    format: str
    quality: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class BulkItemResult:
    """Outcome for one file of a bulk request: either ``result`` or ``error`` is set."""

    original_name: str
    result: Optional[EncodedResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
