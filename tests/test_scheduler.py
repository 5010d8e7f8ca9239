import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import nodes_media.scheduler as scheduler_module  # noqa: E402
from nodes_media.config import GuardSettings  # noqa: E402
from nodes_media.resource_guard import ResourceGuard  # noqa: E402


class FakeScheduler:
    def __init__(self):
        self.jobs = []
        self.running = False
        self.shutdown_calls = []

    def add_job(self, func, trigger=None, id=None, name=None, max_instances=None, replace_existing=False):
        self.jobs.append(
            {
                "func": func,
                "trigger": trigger,
                "id": id,
                "name": name,
                "max_instances": max_instances,
                "replace_existing": replace_existing,
            }
        )

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.shutdown_calls.append(wait)
        self.running = False


def test_housekeeping_schedules_sweep_every_interval():
    guard = ResourceGuard.from_settings(GuardSettings())
    fake = FakeScheduler()

    returned = scheduler_module.start_housekeeping(guard, 5, scheduler=fake)

    assert returned is fake
    assert fake.running
    assert len(fake.jobs) == 1
    job = fake.jobs[0]
    assert job["func"] == guard.sweep
    assert job["id"] == scheduler_module.SWEEP_JOB_ID
    assert job["max_instances"] == 1
    assert job["replace_existing"] is True
    assert job["trigger"].interval == timedelta(minutes=5)


def test_stop_housekeeping_only_shuts_down_running_scheduler():
    fake = FakeScheduler()

    scheduler_module.stop_housekeeping(fake)
    assert fake.shutdown_calls == []

    fake.start()
    scheduler_module.stop_housekeeping(fake)
    assert fake.shutdown_calls == [False]
