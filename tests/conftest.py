import copy
from datetime import datetime, timedelta, timezone

import pytest

from models.bill import Bill, SyncStatus
from models.sync import SyncQueueItem
from services.sync_service import SyncService

USER = "42"


def make_bill(name="Rent", amount="100.00", due=datetime(2024, 12, 24), **kwargs) -> Bill:
    return Bill(name=name, amount=amount, due_date=due, **kwargs)


class InMemoryBillStore:
    """Local store double; hands out copies the way a database would."""

    def __init__(self, user_id=USER):
        self.user_id = user_id
        self.bills: dict[str, Bill] = {}
        self.last_sync_time = None
        self.fail_writes = False
        self.cleared = False

    def get_all(self):
        return [copy.deepcopy(b) for b in self.bills.values()]

    def get_dirty(self):
        return [copy.deepcopy(b) for b in self.bills.values() if b.is_dirty]

    def get(self, bill_id):
        bill = self.bills.get(bill_id)
        return copy.deepcopy(bill) if bill else None

    def insert(self, bill):
        if self.fail_writes:
            raise RuntimeError("disk full")
        if bill.id in self.bills:
            raise ValueError(f"duplicate bill {bill.id}")
        self.bills[bill.id] = copy.deepcopy(bill)
        return bill

    def update(self, bill):
        if self.fail_writes:
            raise RuntimeError("disk full")
        if bill.id not in self.bills:
            raise LookupError(bill.id)
        self.bills[bill.id] = copy.deepcopy(bill)
        return bill

    def delete(self, bill_id):
        return self.bills.pop(bill_id, None) is not None

    def clear(self):
        self.bills.clear()
        self.last_sync_time = None
        self.cleared = True

    def get_last_sync_time(self):
        return self.last_sync_time

    def set_last_sync_time(self, when):
        self.last_sync_time = when


class InMemoryQueue:
    def __init__(self):
        self.items = {}

    def get_all(self):
        return {k: copy.deepcopy(v) for k, v in self.items.items()}

    def enqueue(self, bill_id, action):
        if bill_id in self.items:
            self.items[bill_id].action = action
        else:
            self.items[bill_id] = SyncQueueItem(bill_id, action)

    def save(self, item):
        self.items[item.bill_id] = copy.deepcopy(item)

    def remove(self, bill_ids):
        for bill_id in bill_ids:
            self.items.pop(bill_id, None)

    def clear(self):
        self.items.clear()


class FakeRemote:
    """
    Remote store double.

    ``fail_on_call`` makes the Nth ``batch_write`` call raise; ``gate``,
    when set, blocks every batch until the event is set.
    """

    def __init__(self):
        self.docs: dict[str, dict[str, dict]] = {}
        self.batches: list[list] = []
        self.calls = 0
        self.query_calls = []
        self.fail_on_call = None
        self.gate = None
        self.deleted_users = []

    def put(self, user_id, bill):
        self.docs.setdefault(user_id, {})[bill.id] = bill.to_remote()

    async def batch_write(self, user_id, ops, max_batch_size=400):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on_call == self.calls:
            raise ConnectionError("remote unavailable")
        self.batches.append(list(ops))
        docs = self.docs.setdefault(user_id, {})
        for op in ops:
            if op.is_delete:
                docs.pop(op.bill_id, None)
            else:
                docs.setdefault(op.bill_id, {}).update(op.fields)

    async def query(self, user_id, modified_after=None):
        self.query_calls.append(modified_after)
        docs = self.docs.get(user_id, {})
        return [
            (bill_id, dict(data)) for bill_id, data in docs.items()
            if modified_after is None or data.get("lastModified") is None or data["lastModified"] > modified_after
        ]

    async def delete_all(self, user_id, max_batch_size=400):
        self.deleted_users.append(user_id)
        return len(self.docs.pop(user_id, {}))

    @property
    def batch_sizes(self):
        return [len(b) for b in self.batches]


class FakeConnectivity:
    def __init__(self, online=True):
        self.online = online

    async def is_online(self):
        return self.online


class FakeJob:
    def __init__(self, queue, callback, when, name, chat_id, data):
        self.queue = queue
        self.callback = callback
        self.when = when
        self.name = name
        self.chat_id = chat_id
        self.data = data
        self.removed = False

    def schedule_removal(self):
        self.removed = True
        self.queue._jobs.remove(self)


class FakeJobQueue:
    def __init__(self):
        self._jobs: list[FakeJob] = []

    def run_once(self, callback, when, name=None, chat_id=None, data=None, **kwargs):
        job = FakeJob(self, callback, when, name, chat_id, data)
        self._jobs.append(job)
        return job

    def get_jobs_by_name(self, name):
        return tuple(job for job in self._jobs if job.name == name)

    def jobs(self):
        return tuple(self._jobs)


class Clock:
    """Mutable UTC clock for backoff tests."""

    def __init__(self, start=datetime(2024, 12, 20, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def store():
    return InMemoryBillStore()


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def connectivity():
    return FakeConnectivity()


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
async def sync(store, remote, connectivity, queue, clock):
    service = SyncService(store, remote, connectivity, queue, debounce_seconds=0.05, clock=clock)
    service.set_user_id(USER)
    yield service
    await service.close()


def seed(store, count, status=SyncStatus.CREATED, **kwargs):
    bills = []
    for i in range(count):
        bill = make_bill(name=f"Bill {i}", sync_status=status, **kwargs)
        store.insert(bill)
        bills.append(bill)
    return bills

