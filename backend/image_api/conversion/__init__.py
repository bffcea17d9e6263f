from .service import ImageService
from .models import BulkItemResult, CompressionSpec, CropSpec, EncodedResult, ResizeSpec, UploadedAsset

__all__ = ["ImageService", "BulkItemResult", "CompressionSpec", "CropSpec", "EncodedResult", "ResizeSpec", "UploadedAsset"]
