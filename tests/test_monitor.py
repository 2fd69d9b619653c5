import asyncio
import time

from bedside.monitor import PresenceMonitor
from bedside.presence import Match, NoFace
from conftest import make_settings, person


class FakeCamera:
    def __init__(self, fail=False):
        self.fail = fail
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.fail:
            raise OSError("camera unplugged")
        return "frame"


class SlowRecognizer:
    def __init__(self, verdict, delay=0.05):
        self.verdict = verdict
        self.delay = delay

    def detect(self, frame):
        time.sleep(self.delay)
        return self.verdict


class RecordingOrchestrator:
    def __init__(self):
        self.verdicts = []
        self.deactivated = 0

    def observe(self, verdict):
        self.verdicts.append(verdict)

    def deactivate(self):
        self.deactivated += 1


def test_ticks_are_skipped_while_a_poll_is_outstanding():
    async def scenario():
        orch = RecordingOrchestrator()
        ada = person("Ada")
        monitor = PresenceMonitor(FakeCamera(), SlowRecognizer(Match(ada, 0.2)), orch, make_settings())
        first = monitor.tick()
        assert monitor.tick() is None
        assert monitor.tick() is None
        await first
        assert monitor.polls == 1
        assert monitor.skipped_ticks == 2
        assert len(orch.verdicts) == 1
        assert monitor.tick() is not None

    asyncio.run(scenario())


def test_sensor_failure_reads_as_no_face():
    async def scenario():
        orch = RecordingOrchestrator()
        monitor = PresenceMonitor(FakeCamera(fail=True), SlowRecognizer(None), orch, make_settings())
        await monitor.tick()
        assert isinstance(orch.verdicts[0], NoFace)

    asyncio.run(scenario())


def test_run_polls_until_stopped_then_deactivates():
    async def scenario():
        orch = RecordingOrchestrator()
        monitor = PresenceMonitor(
            FakeCamera(), SlowRecognizer(NoFace(), delay=0.0), orch, make_settings(tick_interval_s=0.01)
        )
        stop = asyncio.Event()
        runner = asyncio.create_task(monitor.run(stop))
        await asyncio.sleep(0.1)
        stop.set()
        await runner
        assert monitor.polls >= 3
        assert orch.deactivated == 1

    asyncio.run(scenario())
