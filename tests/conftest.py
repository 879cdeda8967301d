"""
Shared fixtures for table polling tests.
"""

import threading
import time
from collections import defaultdict
from concurrent.futures import Future

import pytest

from src.polling.scheduler import TablePollingScheduler


class ScriptedDataAccess:
    """In-memory Data Access returning scripted responses per table.

    Each call to fetch_all() consumes the next scripted response; the last
    response repeats forever. A response may be a list of rows or an
    exception instance (delivered through the future).
    """

    def __init__(self):
        self.responses = {}
        self.calls = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0
        self.fetch_delay = 0.0
        self._cond = threading.Condition()

    def script(self, table, *responses):
        self.responses[table] = list(responses)

    def fetch_all(self, table):
        with self._cond:
            index = self.calls[table]
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.fetch_delay:
                time.sleep(self.fetch_delay)
            script = self.responses.get(table, [[]])
            response = script[min(index, len(script) - 1)]
            if callable(response) and not isinstance(response, BaseException):
                response = response(index)
            future = Future()
            if isinstance(response, BaseException):
                future.set_exception(response)
            else:
                future.set_result([dict(row) for row in response])
            return future
        finally:
            with self._cond:
                self.in_flight -= 1
                self.calls[table] += 1
                self._cond.notify_all()

    def wait_for_calls(self, table, count, timeout=5.0):
        with self._cond:
            return self._cond.wait_for(lambda: self.calls[table] >= count, timeout)


class Recorder:
    """Collects listener invocations in arrival order."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def listener(self, kind):
        def callback(rows):
            with self._lock:
                self.events.append((kind, rows))
        return callback

    def attach(self, scheduler, table):
        scheduler.on_all_values(table, self.listener("all"))
        scheduler.on_new_values(table, self.listener("new"))
        scheduler.on_old_values(table, self.listener("old"))

    def of(self, kind):
        with self._lock:
            return [rows for k, rows in self.events if k == kind]

    def __len__(self):
        with self._lock:
            return len(self.events)


@pytest.fixture
def data_access():
    return ScriptedDataAccess()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def scheduler(data_access):
    engine = TablePollingScheduler(data_access, fetch_timeout=1.0, join_timeout=2.0)
    yield engine
    engine.shutdown()


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout=2.0, interval=0.005):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
