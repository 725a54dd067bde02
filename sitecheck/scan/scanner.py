"""
SiteCheck Scan — Camera QR Polling Task

start_scan() opens the camera, then polls one frame per tick until a code
decodes or the scan is cancelled. The camera is released on every exit:
first decode, cancel(), task teardown, or a decoder failure.
"""
import asyncio
import logging
from typing import Any, Callable, Optional

from sitecheck import config

logger = logging.getLogger("scan.scanner")


class ScanError(Exception):
    notice = "Scanning failed. Select the machine manually."


class CameraUnavailableError(ScanError):
    notice = "Camera scanning is not available on this device. Select the machine manually."


class CameraPermissionError(ScanError):
    notice = "Camera permission was denied. Select the machine manually."


def scan_notice(exc: BaseException) -> str:
    """User-facing notice for a scan failure; the manual path stays usable."""
    if isinstance(exc, ScanError):
        return exc.notice
    return ScanError.notice


class ScanHandle:
    """Running scan. cancel() stops it at the next tick; wait() gives the text."""

    def __init__(self, camera, decode: Callable[[Any], Optional[str]], frame_interval: float):
        self.camera = camera
        self.decode = decode
        self.frame_interval = frame_interval
        self.result: Optional[str] = None
        self.released = False
        self.frames = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        self._cancelled = True

    def teardown(self) -> None:
        """Hard stop (owning view went away); still releases the camera."""
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> Optional[str]:
        try:
            return await self._task
        except asyncio.CancelledError:
            return None

    async def _run(self) -> Optional[str]:
        try:
            while not self._cancelled:
                frame = self.camera.read_frame()
                self.frames += 1
                if frame is not None:
                    text = self.decode(frame)
                    if text:
                        self.result = text
                        logger.info(f"[Scan] decoded after {self.frames} frames")
                        return text
                await asyncio.sleep(self.frame_interval)
            logger.info("[Scan] cancelled by user")
            return None
        finally:
            self._release()

    def _release(self, _task=None) -> None:
        if not self.released:
            self.released = True
            self.camera.release()


def start_scan(
    open_camera: Callable[[], Any],
    decode: Callable[[Any], Optional[str]],
    frame_interval: float = config.SCAN_FRAME_INTERVAL,
) -> ScanHandle:
    """Open the camera and start polling. Must be called inside a running loop.

    open_camera() may raise CameraUnavailableError or CameraPermissionError;
    those propagate to the caller, which shows scan_notice(exc).
    """
    loop = asyncio.get_running_loop()
    camera = open_camera()
    handle = ScanHandle(camera, decode, frame_interval)
    handle._task = loop.create_task(handle._run())
    # Covers a task torn down before its first step ran.
    handle._task.add_done_callback(handle._release)
    return handle
