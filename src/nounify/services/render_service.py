"""Render stage: detection result -> composited surface -> export.

Every accepted input (source image, threshold) starts a new epoch. A render
captures its epoch and checks it before each commit; once a newer input is
accepted the old render's results are discarded. Renders draw into a private
surface and only swap it in, together with the ready flag, at the very end,
so no partially drawn surface is ever exportable.
"""

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from nounify.core.config import get_settings
from nounify.core.errors import ExportBlocked, InvalidLandmarks, NounifyError, StaleResult
from nounify.core.logging import configure_logging, get_logger
from nounify.faces.geometry import OverlayTransform, compute_overlay_transform
from nounify.faces.pipeline import DetectionPipeline, retrieve_exception, validate_min_confidence
from nounify.render.compositor import draw_overlay
from nounify.render.image import SourceImage, load_image
from nounify.render.overlay import OverlayAsset
from nounify.render.surface import RasterSurface, encode_png

logger = get_logger(__name__)

ImageSource = SourceImage | bytes | str | Path
ExportSink = Callable[[str, bytes], Any]


class RenderState(str, Enum):
    """State of the stage for the current input."""

    IDLE = "idle"
    RENDERING = "rendering"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class FaceOutcome:
    """Result of compositing one face."""

    index: int
    transform: OverlayTransform | None = None
    error: NounifyError | None = None

    @property
    def drawn(self) -> bool:
        return self.error is None


@dataclass
class RenderOutcome:
    """Per-render summary: one FaceOutcome per detected face, in detector order."""

    epoch: int
    image_key: str
    min_confidence: float
    faces: list[FaceOutcome] = field(default_factory=list)

    @property
    def drawn_count(self) -> int:
        return sum(1 for f in self.faces if f.drawn)

    @property
    def skipped(self) -> list[FaceOutcome]:
        return [f for f in self.faces if not f.drawn]


class RenderStage:
    """Owns the raster surface and ready flag for the current input."""

    def __init__(
        self,
        pipeline: DetectionPipeline | None = None,
        overlay: OverlayAsset | None = None,
        scale_factor: float | None = None,
    ):
        """Initialize render stage.

        Args:
            pipeline: Detection pipeline; a default InsightFace pipeline if omitted
            overlay: Overlay asset; loaded from settings if omitted
            scale_factor: Overlay width per unit of eye distance; from settings if omitted
        """
        settings = get_settings()
        self.pipeline = pipeline or DetectionPipeline()
        self.overlay = overlay or OverlayAsset.from_settings()
        self.scale_factor = scale_factor if scale_factor is not None else settings.overlay_scale_factor
        self.output_filename = settings.output_filename

        self.epoch = 0
        self.ready = False
        self.state = RenderState.IDLE
        self.surface: RasterSurface | None = None
        self.outcome: RenderOutcome | None = None
        self.error: BaseException | None = None
        self._task: asyncio.Task[RenderOutcome | None] | None = None

    @property
    def provisional(self) -> bool:
        """True when the visible surface must not be mistaken for a final result."""
        return self.surface is not None and not self.ready

    @property
    def is_busy(self) -> bool:
        """True while the current input is still loading, detecting or drawing."""
        return self._task is not None and not self._task.done()

    @property
    def model_ready(self) -> bool:
        return self.pipeline.is_model_ready()

    async def warm_up(self) -> None:
        """Prepare the process ahead of the first input.

        Configures logging, then loads the detection models and overlay asset.
        """
        configure_logging()
        await asyncio.gather(self.pipeline.ensure_model(), self.overlay.wait_loaded())

    def submit(
        self, source: ImageSource, min_confidence: float | None = None
    ) -> "asyncio.Task[RenderOutcome | None]":
        """Accept a new input and start rendering it.

        Supersedes any render in flight: its results will never be committed.

        Args:
            source: Decoded SourceImage, raw JPEG/PNG bytes, or a file path
            min_confidence: Detection threshold in [0, 1]; settings default if None

        Returns:
            Task resolving to the RenderOutcome, or None if superseded
        """
        threshold = validate_min_confidence(min_confidence)

        self.epoch += 1
        epoch = self.epoch
        self.ready = False
        self.state = RenderState.RENDERING
        self.error = None

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._render(epoch, source, threshold))
        self._task.add_done_callback(retrieve_exception)
        logger.debug(f"Accepted input for epoch {epoch} (min_confidence={threshold})")
        return self._task

    async def wait(self) -> RenderOutcome | None:
        """Wait for the render of the latest input.

        Follows supersession: if a newer input is submitted while waiting,
        waits for that one instead.

        Raises:
            NounifyError: If the latest render failed
        """
        while self._task is not None:
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                # Only a superseded render may be skipped; our own cancellation propagates
                if task is self._task or not task.cancelled():
                    raise
                if current is not None and current.cancelling():
                    raise
                continue
            if task is self._task:
                break
        return self.outcome

    def _check(self, epoch: int) -> None:
        if epoch != self.epoch:
            raise StaleResult(epoch, self.epoch)

    async def _render(
        self, epoch: int, source: ImageSource, threshold: float
    ) -> RenderOutcome | None:
        try:
            image = source if isinstance(source, SourceImage) else await load_image(source)
            self._check(epoch)

            # A new image discards all detection state for previous images
            self.pipeline.prune(image.key)
            self.overlay.start_loading()

            faces = await self.pipeline.detect(image, threshold)
            self._check(epoch)

            await self.overlay.wait_loaded()
            self._check(epoch)

            surface = RasterSurface(image.width, image.height)
            surface.draw_image(image.pixels, 0, 0)

            outcome = RenderOutcome(epoch=epoch, image_key=image.key, min_confidence=threshold)
            for index, face in enumerate(faces):
                try:
                    transform = compute_overlay_transform(
                        face, scale_factor=self.scale_factor, asset_size=self.overlay.size
                    )
                except InvalidLandmarks as e:
                    logger.warning(f"Skipping face {index}: {e}")
                    outcome.faces.append(FaceOutcome(index=index, error=e))
                    continue

                await draw_overlay(surface, self.overlay, transform)
                self._check(epoch)
                outcome.faces.append(FaceOutcome(index=index, transform=transform))

            self._check(epoch)
        except StaleResult as e:
            logger.debug(f"Discarding render: {e}")
            return None
        except Exception as e:
            if epoch != self.epoch:
                logger.debug(f"Discarding failure from superseded epoch {epoch}: {e}")
                return None
            self.state = RenderState.FAILED
            self.error = e
            logger.error(f"Render failed for epoch {epoch}: {e}")
            raise

        self.surface = surface
        self.outcome = outcome
        self.ready = True
        self.state = RenderState.READY
        logger.info(
            f"Render ready for epoch {epoch}: {outcome.drawn_count} overlays drawn, "
            f"{len(outcome.skipped)} faces skipped"
        )
        return outcome

    def export_png(self) -> bytes:
        """Encode the finished surface as PNG.

        Raises:
            ExportBlocked: If the current render is not ready
        """
        if not self.ready or self.surface is None:
            raise ExportBlocked(f"Render is not ready (state: {self.state.value})")
        return self.surface.to_png()

    async def export(self, sink: ExportSink) -> str:
        """Hand the finished PNG to `sink(filename, data)`; returns the filename.

        The sink may be a plain callable or a coroutine function.
        """
        data = self.export_png()
        result = sink(self.output_filename, data)
        if inspect.isawaitable(result):
            await result
        logger.info(f"Exported {self.output_filename} ({len(data)} bytes)")
        return self.output_filename

    def preview_png(self) -> bytes | None:
        """PNG of the visible surface, veiled while provisional."""
        if self.surface is None:
            return None
        if self.ready:
            return self.surface.to_png()
        return encode_png(self.surface.provisional_preview())

    def reset(self) -> None:
        """Discard all render and detection state."""
        self.epoch += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.ready = False
        self.state = RenderState.IDLE
        self.surface = None
        self.outcome = None
        self.error = None
        self.pipeline.clear()


async def render_to_png(
    source: ImageSource,
    min_confidence: float | None = None,
    stage: RenderStage | None = None,
) -> bytes:
    """Run one image through the whole pipeline and return the PNG."""
    stage = stage or RenderStage()
    stage.submit(source, min_confidence)
    await stage.wait()
    return stage.export_png()
