"""Tests for the monitor loop, driven by a fake clock."""

import signal

from shuteye.config import MonitorSettings
from shuteye.models import ActivityStatus
from shuteye.monitor import (
    COOL_DOWN,
    DECLINED_MESSAGE,
    FAILED_MESSAGE,
    UNAVAILABLE_MESSAGE,
    MonitorLoop,
)
from shuteye.shutdown import ImmediatePoweroff, ShutdownInvoker
from shuteye.state import ActivityStateStore
from shuteye.tracker import InactivityTracker


class RecordingInvoker:
    """Records invocation times; returns results from a real invoker."""

    def __init__(self, clock, mechanisms) -> None:
        self.clock = clock
        self.times = []
        self._invoker = ShutdownInvoker(mechanisms)

    def invoke(self, delay_minutes):
        self.times.append(self.clock.now)
        return self._invoker.invoke(delay_minutes)


def build_loop(settings, clock, table, notifier, invoker):
    return MonitorLoop(
        settings,
        process_table=table,
        tracker=InactivityTracker(ActivityStateStore(settings.state_path)),
        notifier=notifier,
        invoker=invoker,
        clock=clock,
        sleep=clock.sleep,
    )


class TestTick:
    """Test single evaluations."""

    def test_active_tick(self, settings, clock, make_table, notifier, make_mechanism):
        """A running watched process yields an active tick."""
        loop = build_loop(
            settings,
            clock,
            make_table(lambda elapsed: ["alpha --serve"]),
            notifier,
            RecordingInvoker(clock, [make_mechanism("ok")]),
        )

        outcome = loop.tick()

        assert outcome.status is ActivityStatus.ACTIVE
        assert outcome.matched_pattern == "alpha"
        assert outcome.triggered is False

    def test_idle_tick_reports_remaining(self, settings, clock, make_table, notifier, make_mechanism):
        """An idle tick before the timeout reports the time left."""
        loop = build_loop(
            settings, clock, make_table(), notifier, RecordingInvoker(clock, [make_mechanism("ok")])
        )
        loop.tick()
        clock.now += 600

        outcome = loop.tick()

        assert outcome.status is ActivityStatus.IDLE
        assert outcome.elapsed.total_seconds() == 600
        assert outcome.remaining.total_seconds() == 3000
        assert notifier.messages == []


class TestScenarios:
    """End-to-end runs of the loop with simulated time."""

    def test_shutdown_after_timeout(self, settings, clock, start, make_table, notifier, make_mechanism):
        """With no activity, exactly one attempt is made at the 60 minute mark."""
        invoker = RecordingInvoker(clock, [make_mechanism("ok")])
        loop = build_loop(settings, clock, make_table(), notifier, invoker)

        assert loop.run() == 0

        assert invoker.times == [start + 3600]
        assert notifier.messages == [
            "System will shut down in 1 minute(s) due to inactivity of monitored processes"
        ]

    def test_activity_resets_timer(self, settings, clock, start, make_table, notifier, make_mechanism):
        """Activity at minute 30 moves the shutdown to minute 90."""
        table = make_table(lambda elapsed: ["alpha runner"] if elapsed == 1800 else [])
        invoker = RecordingInvoker(clock, [make_mechanism("ok")])
        loop = build_loop(settings, clock, table, notifier, invoker)

        loop.run()

        assert invoker.times == [start + 5400]

    def test_third_mechanism_succeeds(self, settings, clock, make_table, notifier, make_mechanism, caplog):
        """Two failures then a success end the loop without a cool-down."""
        caplog.set_level("INFO")
        invoker = RecordingInvoker(
            clock,
            [
                make_mechanism("one", outcomes=[False]),
                make_mechanism("two", outcomes=[False]),
                make_mechanism("three"),
            ],
        )
        loop = build_loop(settings, clock, make_table(), notifier, invoker)

        assert loop.run() == 0

        messages = [r.getMessage() for r in caplog.records]
        failures = [m for m in messages if "failed" in m]
        assert len(failures) == 2
        success = messages.index("Shutdown scheduled in 1 minute(s) via 'three'")
        assert all(messages.index(f) < success for f in failures)
        assert COOL_DOWN.total_seconds() not in clock.sleeps
        assert FAILED_MESSAGE not in notifier.messages

    def test_cool_down_and_retry(self, settings, clock, start, make_table, notifier, make_mechanism):
        """A failed attempt notifies users, cools down, then retries straight away."""
        mechanism = make_mechanism("flaky", outcomes=[False, True])
        invoker = RecordingInvoker(clock, [mechanism])
        loop = build_loop(settings, clock, make_table(), notifier, invoker)

        assert loop.run() == 0

        assert invoker.times == [start + 3600, start + 3600 + 300]
        assert FAILED_MESSAGE in notifier.messages
        assert clock.sleeps[-1] == 300
        assert notifier.messages.count(
            "System will shut down in 1 minute(s) due to inactivity of monitored processes"
        ) == 2

    def test_no_mechanism_message(self, settings, clock, make_table, notifier, make_mechanism):
        """When nothing is available users are told no command exists."""
        invoker = RecordingInvoker(clock, [make_mechanism("missing", available=False)])
        loop = build_loop(settings, clock, make_table(), notifier, invoker)
        loop.tick()
        clock.now += 3600

        outcome = loop.tick()

        assert outcome.shutdown.ok is False
        assert notifier.messages[-1] == UNAVAILABLE_MESSAGE

    def test_declined_poweroff_message(self, settings, clock, make_table, notifier):
        """When poweroff cannot honor the delay users hear it would have shut down."""
        commands = []
        poweroff = ImmediatePoweroff(
            runner=lambda cmd, **kw: commands.append(cmd),
            which=lambda name: "/sbin/poweroff" if name == "poweroff" else None,
        )
        loop = build_loop(settings, clock, make_table(), notifier, RecordingInvoker(clock, [poweroff]))
        loop.tick()
        clock.now += 3600

        outcome = loop.tick()

        assert outcome.shutdown.declined is True
        assert notifier.messages[-1] == DECLINED_MESSAGE
        assert FAILED_MESSAGE not in notifier.messages
        assert commands == []

    def test_second_pattern_keeps_machine_up(self, temp_dir, clock, make_table, notifier, make_mechanism):
        """Only 'invoke --serve' running still counts as activity."""
        settings = MonitorSettings.from_values(
            patterns=["ollama runner", "invoke"],
            state_path=temp_dir / "last_active",
            log_path=temp_dir / "shuteye.log",
        )
        store = ActivityStateStore(settings.state_path)
        store.write(clock.now - 7200)
        invoker = RecordingInvoker(clock, [make_mechanism("ok")])
        loop = build_loop(settings, clock, make_table(lambda e: ["invoke --serve"]), notifier, invoker)

        outcome = loop.tick()

        assert outcome.status is ActivityStatus.ACTIVE
        assert store.read() == int(clock.now)
        assert invoker.times == []

    def test_timer_survives_restart(self, settings, clock, start, make_table, notifier, make_mechanism):
        """A new loop over the same state file keeps counting."""
        first = build_loop(
            settings, clock, make_table(), notifier, RecordingInvoker(clock, [make_mechanism("ok")])
        )
        first.tick()
        clock.now += 1800

        invoker = RecordingInvoker(clock, [make_mechanism("ok")])
        second = build_loop(settings, clock, make_table(), notifier, invoker)
        second.run()

        assert invoker.times == [start + 3600]


class TestStopping:
    """Test termination without a shutdown."""

    def test_stop_event_ends_loop(self, settings, clock, make_table, notifier, make_mechanism):
        """Setting the stop event exits between ticks."""
        loop = build_loop(
            settings, clock, make_table(), notifier, RecordingInvoker(clock, [make_mechanism("ok")])
        )

        def stop_after_sleep(seconds):
            clock.sleep(seconds)
            loop.stop_event.set()

        loop._sleep = stop_after_sleep

        assert loop.run() == 0
        assert loop.process_table.captures == 1

    def test_signal_handler_sets_stop_event(self, settings, clock, make_table, notifier, make_mechanism):
        """SIGTERM requests a stop."""
        loop = build_loop(
            settings, clock, make_table(), notifier, RecordingInvoker(clock, [make_mechanism("ok")])
        )

        loop._handle_signal(signal.SIGTERM, None)

        assert loop.stop_event.is_set()
        assert loop.run() == 0
        assert loop.process_table.captures == 0
