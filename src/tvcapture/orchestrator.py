"""
Capture Compositor - Job orchestration

Decides which captures a job produces and runs them concurrently:

| mode               | subtitle | normal | captioned |
|--------------------|----------|--------|-----------|
| VideoOnly          | any      | yes    | no        |
| CompositingCaption | yes      | no     | yes       |
| CompositingCaption | no       | yes    | no        |
| Both               | yes      | yes    | yes       |
| Both               | no       | yes    | no        |

The normal capture takes the direct-transfer path (frame buffer moved into
the output, no blending) only when it is the sole production and there is no
superimpose or comment layer to draw.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial

from .capture.job import CaptureJob, CaptureMode, CompositeResult
from .render.compositor import LayerCompositor, create_default_compositor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputPlan:
    """Which captures a job produces, and how."""

    normal: bool
    captioned: bool
    direct: bool  # Normal capture via direct transfer


def plan_outputs(job: CaptureJob) -> OutputPlan:
    """Apply the mode / layer decision table to a job."""
    has_subtitle = job.subtitle_layer is not None

    captioned = has_subtitle and job.mode in (CaptureMode.COMPOSITING_CAPTION, CaptureMode.BOTH)
    normal = job.mode in (CaptureMode.VIDEO_ONLY, CaptureMode.BOTH) or (
        job.mode == CaptureMode.COMPOSITING_CAPTION and not has_subtitle
    )
    # Direct transfer consumes the frame, so it must be the only production
    direct = (
        normal
        and not captioned
        and job.overlay_layer is None
        and job.comment_layer_spec is None
    )
    return OutputPlan(normal=normal, captioned=captioned, direct=direct)


class CaptureCompositor:
    """
    Runs capture jobs: one worker-thread task per requested output.

    Each output gets its own copy of the capture metadata, so the two tasks
    never write the composited flags of a shared record.
    """

    def __init__(self, compositor: LayerCompositor | None = None):
        """
        Initialize the capture compositor.

        Args:
            compositor: Layer compositor used for each output (defaults to config)
        """
        self._compositor = compositor or create_default_compositor()
        self._job_count = 0

    @property
    def job_count(self) -> int:
        """Number of jobs composited successfully."""
        return self._job_count

    async def composite(self, job: CaptureJob) -> CompositeResult:
        """
        Produce the captures a job requires.

        Every scheduled output runs to completion before this returns. If any
        output fails, its error is raised instead of returning a partial result.

        Raises:
            JobAlreadyProcessedError: If the job was composited before
            CaptureError: If a required output could not be produced
        """
        job.mark_processed()
        plan = plan_outputs(job)
        logger.info(
            f"Compositing capture {job.frame.width}x{job.frame.height}: mode={job.mode.value}, "
            f"normal={plan.normal} (direct={plan.direct}), captioned={plan.captioned}"
        )

        loop = asyncio.get_running_loop()
        tasks: dict[str, asyncio.Future] = {}

        if plan.captioned:
            tasks["captioned"] = loop.run_in_executor(
                None,
                partial(
                    self._compositor.composite_captioned,
                    job.frame,
                    job.metadata,
                    subtitle_layer=job.subtitle_layer,
                    overlay_layer=job.overlay_layer,
                    comment_layer_spec=job.comment_layer_spec,
                ),
            )

        if plan.normal:
            if plan.direct:
                produce = partial(self._compositor.composite_direct, job.frame, job.metadata)
            else:
                produce = partial(
                    self._compositor.composite_normal,
                    job.frame,
                    job.metadata,
                    overlay_layer=job.overlay_layer,
                    comment_layer_spec=job.comment_layer_spec,
                )
            tasks["normal"] = loop.run_in_executor(None, produce)

        results = await asyncio.gather(*tasks.values(), return_exceptions=True)
        outputs = dict(zip(tasks.keys(), results))

        failures = [(name, r) for name, r in outputs.items() if isinstance(r, BaseException)]
        for name, error in failures:
            logger.error(f"Failed to produce {name} capture: {error}")
        if failures:
            raise failures[0][1]

        self._job_count += 1
        return CompositeResult(
            normal=outputs["normal"][0] if "normal" in outputs else None,
            captioned=outputs["captioned"][0] if "captioned" in outputs else None,
        )


# Global instance (lazy)
_compositor_instance: CaptureCompositor | None = None


def get_capture_compositor() -> CaptureCompositor:
    """Get or create the global capture compositor."""
    global _compositor_instance
    if _compositor_instance is None:
        _compositor_instance = CaptureCompositor()
    return _compositor_instance
