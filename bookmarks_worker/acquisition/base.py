from abc import ABC, abstractmethod
from typing import ClassVar

from bookmarks_worker.acquisition.exceptions import AcquisitionError
from bookmarks_worker.acquisition.models import AcquiredImage
from bookmarks_worker.fetch.exceptions import FetchFailedError
from bookmarks_worker.imaging.exceptions import ImageError


class AcquisitionStrategy(ABC):
    """Contract for one way of producing a thumbnail for a URL."""

    name: ClassVar[str]

    def try_acquire(self, url: str) -> AcquiredImage:
        """Run the strategy, converting a fall-through into a failed AcquiredImage."""
        try:
            storage_path = self.acquire(url)
        except (AcquisitionError, ImageError, FetchFailedError) as exc:
            return AcquiredImage.failed(self.name, str(exc) or type(exc).__name__)
        return AcquiredImage.succeeded(self.name, storage_path)

    @abstractmethod
    def acquire(self, url: str) -> str:
        """Produce and store a thumbnail for ``url``.

        Returns:
            The relative storage path of the saved thumbnail.

        Raises:
            AcquisitionError: if this strategy cannot produce a thumbnail.
        """
