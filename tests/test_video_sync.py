"""Tests for the video/telemetry sync engine."""

import asyncio

import pytest

from conftest import make_line_samples
from lapsync.exceptions import VideoSyncError
from lapsync.models import VideoSyncRecord
from lapsync.storage import JsonSyncStore
from lapsync.video_sync import AsyncioFrameScheduler, VideoSyncEngine, detect_fps, find_nearest_index


class FakePlayer:
    def __init__(self, duration=60.0, current_time=0.0, paused=True):
        self.duration = duration
        self.current_time = current_time
        self.paused = paused
        self.seeks = []

    def play(self):
        self.paused = False

    def pause(self):
        self.paused = True

    def seek(self, seconds):
        self.seeks.append(seconds)
        self.current_time = seconds


class FakeScheduler:
    """Collects frame callbacks; tick() runs the pending ones."""

    def __init__(self):
        self.pending = {}
        self.requested = []
        self._next = 0

    def request_frame(self, callback):
        self._next += 1
        self.pending[self._next] = callback
        self.requested.append(callback)
        return self._next

    def cancel(self, handle):
        self.pending.pop(handle, None)

    def tick(self):
        callbacks, self.pending = list(self.pending.values()), {}
        for callback in callbacks:
            callback()


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def samples():
    # 100 samples, 100 ms apart
    return make_line_samples([20.0] * 100)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scrubs():
    return []


@pytest.fixture
def engine(samples, scheduler, clock, scrubs):
    return VideoSyncEngine(samples, scheduler, scrubs.append, clock=clock)


class TestFindNearestIndex:
    TIMES = [0.0, 40.0, 100.0, 180.0, 200.0, 330.0]

    def test_matches_brute_force(self):
        for target in range(-50, 400, 5):
            expected = min(range(len(self.TIMES)), key=lambda i: (abs(self.TIMES[i] - target), -i))
            assert find_nearest_index(self.TIMES, target) == expected, target

    def test_tie_picks_later(self):
        assert find_nearest_index([0.0, 100.0], 50.0) == 1

    def test_bounds(self):
        assert find_nearest_index(self.TIMES, -1000.0) == 0
        assert find_nearest_index(self.TIMES, 1e9) == len(self.TIMES) - 1
        assert find_nearest_index([], 10.0) == 0


class TestDetectFps:
    def test_thirty_fps(self):
        assert detect_fps([i / 30 for i in range(12)]) == 30

    def test_seek_deltas_ignored(self):
        frames = [i / 25 for i in range(12)] + [5.0 + i / 25 for i in range(3)]
        assert detect_fps(frames) == 25

    def test_not_enough_frames(self):
        assert detect_fps([i / 30 for i in range(5)]) is None

    def test_out_of_range(self):
        assert detect_fps([i / 500 for i in range(20)]) is None


class TestLockedPlayback:
    def test_frame_loop_drives_telemetry(self, engine, scheduler, scrubs):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        assert not engine.loop_active

        engine.play()
        assert engine.loop_active
        player.current_time = 1.0
        scheduler.tick()

        assert scrubs == [10]
        assert engine.current_index == 10
        assert engine.loop_active

    def test_sync_offset_applied(self, engine, scheduler, scrubs):
        player = FakePlayer(current_time=0.5)
        engine.load_video(player, "onboard.mp4")
        engine.on_telemetry_scrub(20)
        engine.set_sync_point()
        assert engine.sync_offset_ms == pytest.approx(1500.0)

        engine.set_locked(True)
        engine.play()
        player.current_time = 1.0
        scheduler.tick()
        assert scrubs[-1] == 25

    def test_own_scrubs_do_not_seek(self, samples, scheduler, clock):
        player = FakePlayer()
        engine = None

        def echo(index):
            engine.on_telemetry_scrub(index)

        engine = VideoSyncEngine(samples, scheduler, echo, clock=clock)
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        engine.play()
        player.current_time = 2.0
        scheduler.tick()

        assert player.seeks == []
        assert engine.current_index == 20

    def test_unlock_cancels_loop(self, engine, scheduler, scrubs):
        engine.load_video(FakePlayer(), "onboard.mp4")
        engine.set_locked(True)
        engine.play()
        stale = scheduler.requested[-1]

        engine.set_locked(False)
        assert not engine.loop_active
        stale()
        scheduler.tick()
        assert scrubs == []

    def test_playback_end_stops_loop(self, engine, scheduler):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        engine.play()

        player.paused = True
        scheduler.tick()
        assert not engine.is_playing
        assert not engine.loop_active

    def test_pause(self, engine):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        engine.toggle_play()
        assert engine.is_playing and not player.paused
        engine.toggle_play()
        assert not engine.is_playing and player.paused
        assert not engine.loop_active


class TestLockedScrub:
    def test_scrub_seeks_video(self, engine):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)

        engine.on_telemetry_scrub(30)
        assert player.seeks == [pytest.approx(3.0)]
        assert engine.snapshot().video_current_time == pytest.approx(3.0)

    def test_seeks_are_throttled(self, engine, clock):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)

        engine.on_telemetry_scrub(30)
        clock.now += 0.01
        engine.on_telemetry_scrub(40)
        assert len(player.seeks) == 1
        assert engine.current_index == 40

        clock.now += 0.1
        engine.on_telemetry_scrub(50)
        assert player.seeks[-1] == pytest.approx(5.0)

    def test_out_of_range_pauses(self, engine):
        player = FakePlayer(duration=2.0)
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        player.paused = False

        engine.on_telemetry_scrub(50)
        assert engine.is_out_of_range
        assert player.paused
        assert player.seeks == []

    def test_before_video_start_pauses_inside_throttle_window(self, engine, clock):
        player = FakePlayer(current_time=0.5)
        engine.load_video(player, "onboard.mp4")
        engine.on_telemetry_scrub(20)
        engine.set_sync_point()
        engine.set_locked(True)
        player.paused = False

        engine.on_telemetry_scrub(60)
        assert player.seeks == [pytest.approx(4.5)]
        clock.now += 0.02
        # 500 ms of telemetry is 1 s before the video starts
        engine.on_telemetry_scrub(5)
        assert engine.is_out_of_range
        assert player.paused
        assert player.seeks == [pytest.approx(4.5)]

    def test_throttled_target_sought_later(self, engine, scheduler, clock):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)

        engine.on_telemetry_scrub(30)
        clock.now += 0.01
        engine.on_telemetry_scrub(40)
        scheduler.tick()
        assert len(player.seeks) == 1

        clock.now += 0.1
        scheduler.tick()
        assert player.seeks[-1] == pytest.approx(4.0)
        assert not scheduler.pending

    def test_throttled_target_dropped_on_unlock(self, engine, scheduler, clock):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        engine.on_telemetry_scrub(30)
        clock.now += 0.01
        engine.on_telemetry_scrub(40)

        engine.set_locked(False)
        clock.now += 0.1
        scheduler.tick()
        assert len(player.seeks) == 1

    def test_unlocked_scrub_does_not_seek(self, engine):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.on_telemetry_scrub(30)
        assert player.seeks == []
        assert engine.current_index == 30

    def test_index_clamped(self, engine):
        engine.on_telemetry_scrub(500)
        assert engine.current_index == 99


class TestUnlockedControls:
    def test_sync_point_is_idempotent(self, engine):
        engine.load_video(FakePlayer(current_time=0.5), "onboard.mp4")
        engine.on_telemetry_scrub(20)
        engine.set_sync_point()
        engine.set_sync_point()
        assert engine.sync_offset_ms == pytest.approx(1500.0)

    def test_snapshot_tracks_unlocked_playback(self, engine):
        player = FakePlayer()
        engine.load_video(player, "onboard.mp4")
        engine.play()
        assert not engine.loop_active
        player.current_time = 7.25
        assert engine.snapshot().video_current_time == pytest.approx(7.25)

    def test_step_frame(self, engine):
        player = FakePlayer(current_time=1.0)
        engine.load_video(player, "onboard.mp4")
        engine.step_frame(1)
        assert player.current_time == pytest.approx(1.0 + 1 / 30)
        engine.step_frame(-1)
        assert player.current_time == pytest.approx(1.0)

    def test_step_frame_ignored_when_locked(self, engine):
        player = FakePlayer(current_time=1.0)
        engine.load_video(player, "onboard.mp4")
        engine.set_locked(True)
        engine.step_frame(1)
        engine.seek_video(10.0)
        assert player.seeks == []

    def test_step_direction_validated(self, engine):
        engine.load_video(FakePlayer(), "onboard.mp4")
        with pytest.raises(VideoSyncError):
            engine.step_frame(2)

    def test_seek_clamped(self, engine):
        player = FakePlayer(duration=60.0)
        engine.load_video(player, "onboard.mp4")
        engine.seek_video(100.0)
        assert player.current_time == 60.0
        engine.seek_video(-5.0)
        assert player.current_time == 0.0

    def test_set_fps(self, engine):
        engine.set_fps(60)
        assert engine.fps == 60.0
        with pytest.raises(VideoSyncError):
            engine.set_fps(0.5)
        with pytest.raises(VideoSyncError):
            engine.set_fps(240)

    def test_detect_fps_applies(self, engine):
        assert engine.detect_fps([i / 60 for i in range(12)]) == 60
        assert engine.fps == 60.0
        assert engine.detect_fps([0.0]) is None
        assert engine.fps == 60.0


class TestPersistence:
    @pytest.fixture
    def store(self, tmp_path):
        return JsonSyncStore(tmp_path / "video_sync.json")

    def test_sync_point_is_saved(self, samples, scheduler, clock, store):
        engine = VideoSyncEngine(samples, scheduler, lambda i: None, store=store, session_id="s1", clock=clock)
        engine.load_video(FakePlayer(current_time=0.5), "onboard.mp4", video_handle="h1")
        engine.on_telemetry_scrub(20)
        engine.set_sync_point()

        assert store.load("s1") == VideoSyncRecord("s1", 1500.0, "onboard.mp4", "h1")

    def test_restore(self, samples, scheduler, clock, store):
        store.save(VideoSyncRecord("s1", 1500.0, "onboard.mp4", "h1"))
        engine = VideoSyncEngine(samples, scheduler, lambda i: None, store=store, session_id="s1", clock=clock)

        opened = []
        assert engine.restore(lambda record: opened.append(record) or FakePlayer())
        assert opened[0].video_handle == "h1"
        assert engine.sync_offset_ms == 1500.0
        assert engine.snapshot().video_name == "onboard.mp4"

    def test_restore_without_video(self, samples, scheduler, clock, store):
        store.save(VideoSyncRecord("s1", 1500.0, "onboard.mp4"))
        engine = VideoSyncEngine(samples, scheduler, lambda i: None, store=store, session_id="s1", clock=clock)
        assert not engine.restore(lambda record: None)
        # Offset still applies even though the video is gone
        assert engine.sync_offset_ms == 1500.0

    def test_restore_open_error(self, samples, scheduler, clock, store):
        store.save(VideoSyncRecord("s1", 1500.0, "onboard.mp4"))
        engine = VideoSyncEngine(samples, scheduler, lambda i: None, store=store, session_id="s1", clock=clock)

        def opener(record):
            raise OSError("permission denied")

        assert not engine.restore(opener)

    def test_restore_nothing_stored(self, samples, scheduler, clock, store):
        engine = VideoSyncEngine(samples, scheduler, lambda i: None, store=store, session_id="s2", clock=clock)
        assert not engine.restore(lambda record: FakePlayer())


class TestAsyncioFrameScheduler:
    def test_runs_and_cancels_callbacks(self):
        async def run():
            scheduler = AsyncioFrameScheduler(fps=100)
            fired = []
            scheduler.request_frame(lambda: fired.append("kept"))
            handle = scheduler.request_frame(lambda: fired.append("cancelled"))
            scheduler.cancel(handle)
            await asyncio.sleep(0.05)
            return fired

        assert asyncio.run(run()) == ["kept"]

    def test_drives_engine_loop(self, samples):
        async def run():
            scrubs = []
            engine = VideoSyncEngine(samples, AsyncioFrameScheduler(fps=100), scrubs.append)
            player = FakePlayer(current_time=1.0)
            engine.load_video(player, "onboard.mp4")
            engine.set_locked(True)
            engine.play()
            await asyncio.sleep(0.05)
            engine.close()
            return scrubs

        scrubs = asyncio.run(run())
        assert scrubs
        assert set(scrubs) == {10}


class TestClose:
    def test_close_stops_everything(self, engine, scheduler, scrubs):
        engine.load_video(FakePlayer(), "onboard.mp4")
        engine.set_locked(True)
        engine.play()
        stale = scheduler.requested[-1]

        engine.close()
        stale()
        scheduler.tick()
        assert scrubs == []
        assert not engine.loop_active
        assert engine.snapshot().video_duration == 0.0
