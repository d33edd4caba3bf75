from bookmarks_worker.acquisition.base import AcquisitionStrategy
from bookmarks_worker.acquisition.downloader import CandidateDownloader
from bookmarks_worker.acquisition.models import AcquiredImage
from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.acquisition.strategies import (
    ContentImageStrategy,
    FaviconStrategy,
    FileTypeIconStrategy,
    OgImageStrategy,
    PageSpeedStrategy,
    PlaceholderStrategy,
)
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.imaging.processor import ImageProcessor
from bookmarks_worker.logging.logger import Log


class ImageAcquisitionPipeline:
    """Tries each strategy in order and returns the first thumbnail produced."""

    def __init__(self, strategies: list[AcquisitionStrategy]) -> None:
        if not strategies:
            raise ValueError("ImageAcquisitionPipeline needs at least one strategy")
        self._strategies = list(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [strategy.name for strategy in self._strategies]

    def acquire(self, url: str) -> AcquiredImage:
        errors: list[str] = []
        for strategy in self._strategies:
            outcome = strategy.try_acquire(url)
            if outcome.success:
                Log.info(f"Thumbnail for {url} acquired via {strategy.name}")
                return outcome
            Log.info(f"Strategy {strategy.name} fell through for {url}: {outcome.error}")
            errors.append(f"{strategy.name}: {outcome.error}")
        summary = "; ".join(errors)
        return AcquiredImage.failed("none", f"All thumbnail strategies failed ({summary})")


def build_pipeline(
    settings: Settings,
    fetcher: SafeFetcher,
    processor: ImageProcessor,
    storage: ThumbnailStorage,
) -> ImageAcquisitionPipeline:
    """Wire the strategies in their fixed fall-through order."""
    downloader = CandidateDownloader(fetcher, processor, settings)
    return ImageAcquisitionPipeline(
        [
            FileTypeIconStrategy(processor, storage),
            PageSpeedStrategy(fetcher, downloader, storage, settings),
            OgImageStrategy(fetcher, downloader, storage, settings),
            ContentImageStrategy(fetcher, downloader, storage, settings),
            FaviconStrategy(downloader, storage, settings),
            PlaceholderStrategy(processor, storage),
        ]
    )
