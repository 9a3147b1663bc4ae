"""
Video / Telemetry Synchronization

Keeps an onboard video and the telemetry cursor aligned through a single
offset: telemetry_ms = video_ms + sync_offset_ms.

    - Locked and playing: every frame tick moves the telemetry cursor to the
      sample nearest the video's current time.
    - Locked and paused: scrubbing telemetry seeks the video (throttled).
    - Unlocked: both clocks move independently; frame stepping and direct
      seeks are only allowed here.

The two directions would otherwise feed back into each other. While a frame
tick is pushing an index to the host, _is_syncing is set and scrub
notifications are ignored.
"""

import asyncio
import bisect
import time
from typing import Any, Callable, List, Optional, Protocol, Sequence

from . import constants
from .config import VideoSyncConfig
from .exceptions import VideoSyncError
from .log import get_logger
from .models import Sample, VideoSyncRecord, VideoSyncState
from .utils import clamp

logger = get_logger(__name__)


# ============================================================================
# PORTS
# ============================================================================

class VideoPlayer(Protocol):
    """The slice of a video element the engine drives."""

    @property
    def duration(self) -> float: ...

    @property
    def current_time(self) -> float: ...

    @property
    def paused(self) -> bool: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...


class FrameScheduler(Protocol):
    """Per-frame callback registration, cancellable by handle."""

    def request_frame(self, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class SyncStore(Protocol):
    def load(self, session_id: str) -> Optional[VideoSyncRecord]: ...

    def save(self, record: VideoSyncRecord) -> None: ...

    def delete(self, session_id: str) -> None: ...


class AsyncioFrameScheduler:
    """Frame ticks on an asyncio event loop at a fixed rate."""

    def __init__(self, fps: float = constants.DEFAULT_FPS,
                 loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.fps = fps
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(1.0 / self.fps, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


# ============================================================================
# HELPERS
# ============================================================================

def find_nearest_index(times: Sequence[float], target_ms: float) -> int:
    """
    Index of the timestamp closest to target_ms in a non-decreasing sequence.

    On a tie between the two neighbours of the insertion point, the later
    one wins. Returns 0 for an empty sequence.
    """
    if not times:
        return 0
    lo = bisect.bisect_left(times, target_ms)
    if lo >= len(times):
        return len(times) - 1
    if lo > 0 and abs(times[lo - 1] - target_ms) < abs(times[lo] - target_ms):
        return lo - 1
    return lo


def detect_fps(frame_media_times: Sequence[float],
               config: VideoSyncConfig = VideoSyncConfig()) -> Optional[int]:
    """
    Estimate a video's frame rate from consecutive frame media times (seconds).

    Deltas that are non-positive or 0.2 s and above are ignored as seeks.
    At least FPS_DETECT_FRAMES usable deltas are required.

    Returns:
        Rounded fps within [config.min_fps, config.max_fps], or None.
    """
    deltas = [
        b - a for a, b in zip(frame_media_times, frame_media_times[1:])
        if 0 < b - a < constants.FPS_DETECT_MAX_DELTA_S
    ]
    if len(deltas) < constants.FPS_DETECT_FRAMES:
        return None
    fps = round(1.0 / (sum(deltas) / len(deltas)))
    if config.min_fps <= fps <= config.max_fps:
        return fps
    return None


# ============================================================================
# ENGINE
# ============================================================================

class VideoSyncEngine:
    """
    Owns the sync offset, lock and play flags for one session.

    Args:
        samples: Session samples (only timestamps are used).
        scheduler: Frame scheduler driving the locked-playback loop.
        on_scrub: Called with a sample index when video drives telemetry.
        store: Optional persistence for the offset and chosen video.
        session_id: Key for the store.
        config: Fps defaults and scrub-seek throttle.
        clock: Monotonic clock in seconds, used for the seek throttle.
    """

    def __init__(self, samples: Sequence[Sample], scheduler: FrameScheduler,
                 on_scrub: Callable[[int], None],
                 store: Optional[SyncStore] = None,
                 session_id: Optional[str] = None,
                 config: VideoSyncConfig = VideoSyncConfig(),
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._times: List[float] = [s.t for s in samples]
        self._scheduler = scheduler
        self._on_scrub = on_scrub
        self._store = store
        self._session_id = session_id
        self._config = config
        self._clock = clock

        self._player: Optional[VideoPlayer] = None
        self._video_name: Optional[str] = None
        self._video_handle: Optional[str] = None

        self._locked = False
        self._playing = False
        self._offset_ms = 0.0
        self._fps = float(config.default_fps)
        self._current_index = 0
        self._video_current_time = 0.0
        self._out_of_range = False

        self._is_syncing = False
        self._frame_handle: Any = None
        self._generation = 0
        self._last_seek_ms = float("-inf")
        self._pending_seek: Optional[float] = None
        self._seek_handle: Any = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def sync_offset_ms(self) -> float:
        return self._offset_ms

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_out_of_range(self) -> bool:
        return self._out_of_range

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def loop_active(self) -> bool:
        return self._frame_handle is not None

    def snapshot(self) -> VideoSyncState:
        return VideoSyncState(
            video_name=self._video_name,
            is_locked=self._locked,
            is_playing=self._playing,
            sync_offset_ms=self._offset_ms,
            fps=self._fps,
            video_duration=self._player.duration if self._player is not None else 0.0,
            video_current_time=self._player.current_time if self._player is not None else self._video_current_time,
            current_index=self._current_index,
            is_out_of_range=self._out_of_range,
        )

    # ------------------------------------------------------------------
    # Video lifecycle
    # ------------------------------------------------------------------

    def load_video(self, player: VideoPlayer, video_name: str,
                   video_handle: Optional[str] = None, persist: bool = True) -> None:
        """Attach a video. Any running frame loop for the previous video is cancelled."""
        self._cancel_loop()
        self._player = player
        self._video_name = video_name
        self._video_handle = video_handle
        self._playing = not player.paused
        self._video_current_time = player.current_time
        self._out_of_range = False
        logger.info("Loaded video {!r} ({:.1f}s)", video_name, player.duration)
        if persist:
            self._persist()
        self._update_loop()

    def unload_video(self) -> None:
        self._cancel_loop()
        self._cancel_pending_seek()
        self._player = None
        self._playing = False
        self._out_of_range = False
        self._video_current_time = 0.0

    def restore(self, opener: Callable[[VideoSyncRecord], Optional[VideoPlayer]]) -> bool:
        """
        Re-apply the persisted offset and try to re-acquire the persisted video.

        Args:
            opener: Turns a stored record into a player, returning None (or
                raising OSError / VideoSyncError) when the video is gone.

        Returns:
            True if a video was re-attached. Failing to re-acquire the video
            leaves the engine unsynced but otherwise usable.
        """
        if self._store is None or self._session_id is None:
            return False
        record = self._store.load(self._session_id)
        if record is None:
            return False

        self._offset_ms = record.sync_offset_ms
        self._video_name = record.video_name
        self._video_handle = record.video_handle

        try:
            player = opener(record)
        except (OSError, VideoSyncError) as exc:
            logger.warning("Could not re-acquire video {!r}: {}", record.video_name, exc)
            return False
        if player is None:
            logger.info("Video {!r} not available, continuing unsynced", record.video_name)
            return False

        self.load_video(player, record.video_name, record.video_handle, persist=False)
        return True

    def close(self) -> None:
        """Tear down: cancel the frame loop and drop the video."""
        self.unload_video()
        self._on_scrub = lambda index: None

    # ------------------------------------------------------------------
    # Lock / playback controls
    # ------------------------------------------------------------------

    def set_locked(self, locked: bool) -> None:
        if locked == self._locked:
            return
        self._locked = locked
        logger.debug("Video sync {}", "locked" if locked else "unlocked")
        if not locked:
            self._cancel_loop()
            self._cancel_pending_seek()
        self._update_loop()

    def toggle_lock(self) -> None:
        self.set_locked(not self._locked)

    def play(self) -> None:
        if self._player is None:
            return
        self._player.play()
        self._playing = True
        self._update_loop()

    def pause(self) -> None:
        if self._player is None:
            return
        self._player.pause()
        self._playing = False
        self._video_current_time = self._player.current_time
        self._cancel_loop()

    def toggle_play(self) -> None:
        if self._player is None:
            return
        if self._player.paused:
            self.play()
        else:
            self.pause()

    def set_fps(self, fps: float) -> None:
        if not self._config.min_fps <= fps <= self._config.max_fps:
            raise VideoSyncError(f"fps {fps} outside [{self._config.min_fps}, {self._config.max_fps}]")
        self._fps = float(fps)

    def detect_fps(self, frame_media_times: Sequence[float]) -> Optional[int]:
        """Detect and apply the video's fps; returns it, or None if undetermined."""
        fps = detect_fps(frame_media_times, self._config)
        if fps is not None:
            self._fps = float(fps)
        return fps

    # ------------------------------------------------------------------
    # Clock operations
    # ------------------------------------------------------------------

    def set_sync_point(self) -> None:
        """Anchor the current telemetry sample to the current video frame."""
        if self._player is None or not self._times:
            return
        self._offset_ms = self._times[self._current_index] - self._player.current_time * 1000.0
        logger.info("Sync offset set to {:.0f} ms", self._offset_ms)
        self._persist()

    def step_frame(self, direction: int) -> None:
        """
        Move the video one frame forward (1) or back (-1); unlocked only.

        Raises:
            VideoSyncError: If direction is not 1 or -1.
        """
        if direction not in (1, -1):
            raise VideoSyncError(f"frame step direction must be 1 or -1, got {direction}")
        if self._player is None or self._locked:
            return
        target = clamp(self._player.current_time + direction / self._fps, 0.0, self._player.duration)
        self._player.seek(target)
        self._video_current_time = target

    def seek_video(self, seconds: float) -> None:
        if self._player is None or self._locked:
            return
        target = clamp(seconds, 0.0, self._player.duration)
        self._player.seek(target)
        self._video_current_time = target

    def on_telemetry_scrub(self, index: int) -> None:
        """
        The host moved the telemetry cursor.

        When locked and paused the video follows, unless the target time is
        outside the video, in which case the engine flags out-of-range and
        pauses instead of seeking. Notifications raised by the engine's own
        frame loop are ignored.
        """
        if not self._times:
            return
        self._current_index = int(clamp(index, 0, len(self._times) - 1))

        if self._is_syncing:
            return
        if not self._locked or self._playing or self._player is None:
            return

        player = self._player
        video_sec = (self._times[self._current_index] - self._offset_ms) / 1000.0
        if video_sec < 0 or video_sec > player.duration:
            if not self._out_of_range:
                logger.info("Telemetry at {:.0f} ms is outside the video, pausing", self._times[self._current_index])
            self._out_of_range = True
            self._pending_seek = None
            if not player.paused:
                player.pause()
            self._video_current_time = player.current_time
            return
        self._out_of_range = False

        now_ms = self._clock() * 1000.0
        if now_ms - self._last_seek_ms < self._config.seek_throttle_ms:
            # The latest target is sought once the throttle window has passed
            self._pending_seek = video_sec
            if self._seek_handle is None:
                self._seek_handle = self._scheduler.request_frame(self._flush_seek)
            return
        self._seek_to(video_sec, now_ms)

    def _seek_to(self, video_sec: float, now_ms: float) -> None:
        player = self._player
        self._pending_seek = None
        self._last_seek_ms = now_ms
        # Skip sub-frame seeks
        if abs(player.current_time - video_sec) > 0.5 / self._fps:
            player.seek(video_sec)
        self._video_current_time = video_sec

    def _flush_seek(self) -> None:
        self._seek_handle = None
        target = self._pending_seek
        if target is None:
            return
        if self._player is None or not self._locked or self._playing:
            self._pending_seek = None
            return
        now_ms = self._clock() * 1000.0
        if now_ms - self._last_seek_ms < self._config.seek_throttle_ms:
            self._seek_handle = self._scheduler.request_frame(self._flush_seek)
            return
        self._seek_to(target, now_ms)

    def _cancel_pending_seek(self) -> None:
        self._pending_seek = None
        if self._seek_handle is not None:
            self._scheduler.cancel(self._seek_handle)
            self._seek_handle = None

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def _should_loop(self) -> bool:
        return self._player is not None and self._locked and self._playing

    def _update_loop(self) -> None:
        if self._should_loop() and self._frame_handle is None:
            self._schedule(self._generation)

    def _schedule(self, generation: int) -> None:
        self._frame_handle = self._scheduler.request_frame(lambda: self._on_frame(generation))

    def _cancel_loop(self) -> None:
        # Bumping the generation also neutralizes a callback already in flight
        self._generation += 1
        if self._frame_handle is not None:
            self._scheduler.cancel(self._frame_handle)
            self._frame_handle = None

    def _on_frame(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._frame_handle = None
        if not self._should_loop():
            return

        player = self._player
        video_ms = player.current_time * 1000.0
        index = find_nearest_index(self._times, video_ms + self._offset_ms)
        self._current_index = index

        self._is_syncing = True
        try:
            self._on_scrub(index)
        finally:
            self._is_syncing = False

        self._video_current_time = player.current_time
        self._out_of_range = player.current_time > player.duration

        if player.paused:
            # Playback ended or was paused outside the engine
            self._playing = False
            return
        if generation == self._generation:
            self._schedule(generation)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self._store is None or self._session_id is None or not self._video_name:
            return
        self._store.save(VideoSyncRecord(
            session_id=self._session_id,
            sync_offset_ms=self._offset_ms,
            video_name=self._video_name,
            video_handle=self._video_handle,
        ))
