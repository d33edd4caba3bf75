from bookmarks_worker.acquisition.base import AcquisitionStrategy
from bookmarks_worker.acquisition.models import AcquiredImage
from bookmarks_worker.acquisition.pipeline import ImageAcquisitionPipeline, build_pipeline
from bookmarks_worker.acquisition.storage import ThumbnailStorage

__all__ = [
    "AcquiredImage",
    "AcquisitionStrategy",
    "ImageAcquisitionPipeline",
    "ThumbnailStorage",
    "build_pipeline",
]
