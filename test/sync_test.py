import os
import threading

from client.queue import LocalPendingQueue
from client.sync import SyncEngine
from client.trigger import SyncTrigger
from factories import make_punch
from models.schema import SyncState, SyncStatus
from utils.errors import ServerRejection, TransportFault


class FakeRemote:
    def __init__(self):
        self.online = True
        self.accepted = []
        self.fail_ids = set()
        self.reject_ids = set()
        self.lose_ack_ids = set()

    def submit(self, punch):
        if not self.online or punch.id in self.fail_ids:
            raise TransportFault("Network is unreachable")
        if punch.id in self.reject_ids:
            raise ServerRejection("latitude: Field required", status_code=400)
        self.accepted.append(punch)
        if punch.id in self.lose_ack_ids:
            self.lose_ack_ids.discard(punch.id)
            raise TransportFault("Read timed out")
        return len(self.accepted)


def queue_with(storage_dir, *punch_ids):
    queue = LocalPendingQueue(storage_dir)
    for punch_id in punch_ids:
        queue.enqueue(make_punch("in" if punch_id % 2 else "out", 8 + punch_id, id=punch_id))
    return queue


def test_pass_drains_queue_in_order(storage_dir):
    queue = queue_with(storage_dir, 1, 2, 3)
    remote = FakeRemote()

    report = SyncEngine(queue, remote).run()

    assert report.synced == 3
    assert report.failed == 0
    assert [p.id for p in remote.accepted] == [1, 2, 3]
    assert queue.list_pending() == []


def test_second_pass_is_a_noop(storage_dir):
    queue = queue_with(storage_dir, 1, 2)
    remote = FakeRemote()
    engine = SyncEngine(queue, remote)

    engine.run()
    report = engine.run()

    assert report.attempted == 0
    assert len(remote.accepted) == 2
    assert queue.list_pending() == []


def test_failure_does_not_block_later_records(storage_dir):
    queue = queue_with(storage_dir, 1, 2, 3)
    remote = FakeRemote()
    remote.fail_ids.add(2)

    report = SyncEngine(queue, remote).run()

    assert report.synced == 2
    assert report.failed == 1
    assert [p.id for p in queue.list_pending()] == [2]


def test_offline_pass_keeps_everything(storage_dir):
    queue = queue_with(storage_dir, 1, 2)
    remote = FakeRemote()
    remote.online = False

    report = SyncEngine(queue, remote).run()

    assert report.failed == 2
    assert [p.id for p in queue.list_pending()] == [1, 2]


def test_rejected_record_is_dropped(storage_dir):
    queue = queue_with(storage_dir, 1, 2)
    remote = FakeRemote()
    remote.reject_ids.add(1)

    report = SyncEngine(queue, remote).run()

    assert report.rejected == 1
    assert report.synced == 1
    assert queue.list_pending() == []


def test_lost_acknowledgment_is_delivered_at_least_once(storage_dir):
    queue = queue_with(storage_dir, 1)
    remote = FakeRemote()
    remote.lose_ack_ids.add(1)
    engine = SyncEngine(queue, remote)

    engine.run()
    assert [p.id for p in queue.list_pending()] == [1]
    engine.run()

    assert queue.list_pending() == []
    assert len([p for p in remote.accepted if p.id == 1]) >= 1


def test_pass_only_covers_its_snapshot(storage_dir):
    queue = queue_with(storage_dir, 1, 2)

    class EnqueueingRemote(FakeRemote):
        def submit(self, punch):
            if punch.id == 1:
                queue.enqueue(make_punch("in", 20, id=99))
            return super().submit(punch)

    remote = EnqueueingRemote()
    report = SyncEngine(queue, remote).run()

    assert report.attempted == 2
    assert [p.id for p in remote.accepted] == [1, 2]
    assert [p.id for p in queue.list_pending()] == [99]


def test_unreadable_queue_aborts_pass(storage_dir):
    os.makedirs(storage_dir)
    queue = LocalPendingQueue(storage_dir)
    with open(queue.path, "w") as f:
        f.write("garbage")

    report = SyncEngine(queue, FakeRemote()).run()

    assert report.aborted is True
    assert report.attempted == 0


def test_overlapping_pass_is_skipped(storage_dir):
    queue = queue_with(storage_dir, 1)
    started = threading.Event()
    release = threading.Event()

    class SlowRemote(FakeRemote):
        def submit(self, punch):
            started.set()
            release.wait(5)
            return super().submit(punch)

    remote = SlowRemote()
    engine = SyncEngine(queue, remote)
    results = []
    worker = threading.Thread(target=lambda: results.append(engine.run()))
    worker.start()
    assert started.wait(5)

    assert engine.state == SyncState.RUNNING
    assert engine.run() is None

    release.set()
    worker.join(5)
    assert results[0].synced == 1
    assert engine.state == SyncState.IDLE
    assert len(remote.accepted) == 1


def test_reconnect_runs_a_pass_and_clears_request(storage_dir):
    queue = queue_with(storage_dir, 1)
    completed = []
    trigger = SyncTrigger(SyncEngine(queue, FakeRemote()), on_complete=completed.append)
    trigger.schedule()
    assert trigger.sync_requested is True

    report = trigger.on_reconnect()

    assert report.synced == 1
    assert trigger.sync_requested is False
    assert completed == [report]


def test_failed_pass_keeps_request(storage_dir):
    remote = FakeRemote()
    remote.online = False
    trigger = SyncTrigger(SyncEngine(queue_with(storage_dir, 1), remote))
    trigger.schedule()

    trigger.run_now()

    assert trigger.sync_requested is True


def test_background_trigger(storage_dir):
    queue = queue_with(storage_dir, 1, 2)
    remote = FakeRemote()
    trigger = SyncTrigger(SyncEngine(queue, remote), background=True)

    assert trigger.on_reconnect() is None
    trigger.wait(5)

    assert len(remote.accepted) == 2
    assert queue.list_pending() == []


def test_report_carries_synced_punches_with_server_ids(storage_dir):
    queue = queue_with(storage_dir, 11, 12)
    remote = FakeRemote()
    remote.reject_ids.add(12)

    report = SyncEngine(queue, remote).run()

    assert [p.id for p in report.synced_punches] == [1]
    assert report.synced_punches[0].sync_status == SyncStatus.SYNCED
    assert report.synced_punches[0].timestamp == make_punch("in", 19).timestamp


def test_reconnect_with_nothing_to_sync_is_skipped(storage_dir):
    remote = FakeRemote()
    completed = []
    trigger = SyncTrigger(SyncEngine(LocalPendingQueue(storage_dir), remote), on_complete=completed.append)

    assert trigger.on_reconnect() is None
    assert completed == []


def test_reconnect_with_leftover_records_runs_without_request(storage_dir):
    remote = FakeRemote()
    trigger = SyncTrigger(SyncEngine(queue_with(storage_dir, 1), remote))
    assert trigger.sync_requested is False

    report = trigger.on_reconnect()

    assert report.synced == 1
