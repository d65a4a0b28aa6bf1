import os

os.environ["FLASK_ENV"] = "test"
os.environ["GEMINI_API_KEY"] = ""
os.environ["FIREBASE_CREDENTIALS"] = ""
os.environ.setdefault("OTP_SECRET_KEY", "test-otp-secret")

import pytest

from ecc_app import create_app, runtime


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, db, path):
        self.db = db
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def get(self, transaction=None):
        self.db.reads.append(self.path)
        if self.path in self.db.fail_paths:
            raise RuntimeError("simulated read failure")
        return FakeSnapshot(self.id, self.db.docs.get(self.path))

    def set(self, data, merge=False):
        current = self.db.docs.get(self.path) or {}
        self.db.docs[self.path] = {**current, **data} if merge else dict(data)

    def delete(self):
        self.db.docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, db, path, filters=None, order=None, limit_count=None, cursor=None):
        self.db = db
        self.path = path
        self.filters = list(filters or [])
        self.order = order
        self.limit_count = limit_count
        self.cursor = cursor

    def _copy(self, **changes):
        params = {
            "filters": self.filters,
            "order": self.order,
            "limit_count": self.limit_count,
            "cursor": self.cursor,
        }
        params.update(changes)
        return FakeQuery(self.db, self.path, **params)

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        return self._copy(filters=self.filters + [args])

    def order_by(self, field, direction=None):
        return self._copy(order=(field, direction))

    def limit(self, count):
        return self._copy(limit_count=count)

    def start_after(self, snapshot):
        return self._copy(cursor=snapshot.id)

    def document(self, doc_id=None):
        if doc_id is None:
            self.db.auto_ids += 1
            doc_id = f"auto{self.db.auto_ids}"
        return FakeDocRef(self.db, f"{self.path}/{doc_id}")

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return None, ref

    def stream(self):
        prefix = self.path + "/"
        rows = []
        for path, data in self.db.docs.items():
            if not path.startswith(prefix) or "/" in path[len(prefix):]:
                continue
            rows.append(FakeSnapshot(path[len(prefix):], data))
        for field, op, value in self.filters:
            if op == "==":
                rows = [row for row in rows if row.to_dict().get(field) == value]
            elif op == ">=":
                rows = [row for row in rows if row.to_dict().get(field) >= value]
            elif op == "<=":
                rows = [row for row in rows if row.to_dict().get(field) <= value]
        if self.order:
            field, direction = self.order
            rows.sort(key=lambda row: row.to_dict().get(field), reverse=str(direction).upper().endswith("DESCENDING"))
        if self.cursor is not None:
            ids = [row.id for row in rows]
            if self.cursor in ids:
                rows = rows[ids.index(self.cursor) + 1:]
        if self.limit_count is not None:
            rows = rows[:self.limit_count]
        return iter(rows)


class FakeBatch:
    def __init__(self, db):
        self.db = db
        self.ops = []

    def set(self, ref, data):
        self.ops.append(("set", ref, data))

    def update(self, ref, data):
        self.ops.append(("update", ref, data))

    def delete(self, ref):
        self.ops.append(("delete", ref, None))

    def commit(self):
        if self.db.fail_commit_at is not None and len(self.db.commits) == self.db.fail_commit_at:
            raise RuntimeError("simulated commit failure")
        for kind, ref, data in self.ops:
            if kind == "set":
                ref.set(data)
            elif kind == "update":
                ref.set(data, merge=True)
            else:
                ref.delete()
        self.db.commits.append(len(self.ops))


class FakeTransaction:
    def set(self, ref, data, merge=False):
        ref.set(data, merge=merge)

    def delete(self, ref):
        ref.delete()


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.reads = []
        self.commits = []
        self.fail_paths = set()
        self.fail_commit_at = None
        self.auto_ids = 0

    def document(self, path):
        return FakeDocRef(self, path)

    def collection(self, path):
        return FakeQuery(self, path)

    def batch(self):
        return FakeBatch(self)

    def transaction(self):
        return FakeTransaction()


class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def fake_db():
    return FakeFirestore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def client():
    flask_app = create_app()
    flask_app.config["TESTING"] = True
    runtime.jobs.clear()
    runtime.RATE_LIMIT_EVENTS.clear()
    with flask_app.test_client() as test_client:
        yield test_client
    runtime.jobs.clear()
    runtime.RATE_LIMIT_EVENTS.clear()


@pytest.fixture(autouse=True)
def disable_sentry(monkeypatch):
    monkeypatch.setattr(runtime, "sentry_sdk", None)
