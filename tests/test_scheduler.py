from __future__ import annotations

from applist_backup.ops.scheduler import BackupScheduler


class FakeOrchestrator:
    def __init__(self) -> None:
        self.is_disposed = False
        self.triggers = 0
        self.running = False

    def trigger_backup(self, destination=None) -> bool:
        self.triggers += 1
        if self.running:
            return False
        self.running = True
        return True


def test_start_sets_interval():
    scheduler = BackupScheduler(FakeOrchestrator())

    assert scheduler.start(1.5) is True
    assert scheduler.active
    assert scheduler.interval_ms == 5_400_000
    scheduler.stop()
    assert not scheduler.active


def test_zero_interval_disables():
    scheduler = BackupScheduler(FakeOrchestrator())
    scheduler.start(2)

    assert scheduler.start(0) is False
    assert not scheduler.active


def test_tick_triggers_backup_through_orchestrator():
    orch = FakeOrchestrator()
    scheduler = BackupScheduler(orch)
    scheduler.start(24)

    scheduler._on_timeout()
    scheduler._on_timeout()

    assert orch.triggers == 2
    assert scheduler.ticks == 2
    scheduler.stop()


def test_tick_after_dispose_stops_timer():
    orch = FakeOrchestrator()
    scheduler = BackupScheduler(orch)
    scheduler.start(1)
    orch.is_disposed = True

    scheduler._on_timeout()

    assert orch.triggers == 0
    assert not scheduler.active


def test_real_timer_fires(wait_until):
    orch = FakeOrchestrator()
    scheduler = BackupScheduler(orch)
    # 0.00001 h is 36 ms
    scheduler.start(0.00001)

    assert wait_until(lambda: orch.triggers >= 1, timeout=2.0)
    scheduler.stop()
