"""
In-memory stand-in for the Firestore client surface the backend uses.

Supports nested collections, FieldFilter queries, ordered/limited streams,
write batches that commit all-or-nothing, `last_update_time` preconditions,
snapshot listeners and failure injection.
"""
import copy
import enum
import itertools
import threading
import uuid
from datetime import datetime, timedelta, timezone

from google.api_core import exceptions as gcp_exceptions

EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class ChangeType(enum.Enum):
    ADDED = 1
    REMOVED = 2
    MODIFIED = 3


class FakeWriteOption:
    def __init__(self, last_update_time=None):
        self.last_update_time = last_update_time


class FakeSnapshot:
    def __init__(self, reference, data, update_time):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)

    def get(self, field):
        return (self._data or {}).get(field)


class FakeChange:
    def __init__(self, type_, document):
        self.type = type_
        self.document = document


def _deep_merge(target: dict, updates: dict) -> dict:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class FakeClient:
    def __init__(self):
        self._docs = {}
        self._update_times = {}
        self._clock = itertools.count(1)
        self._lock = threading.RLock()
        self.watches = []
        self.write_count = 0
        self.commit_count = 0
        # Collections whose writes fail, simulating a store outage
        self.fail_writes_to = set()

    # ---------------- public surface ----------------
    def collection(self, name):
        return FakeCollection(self, name)

    def collection_group(self, name):
        return FakeQuery(self, name, group=True)

    def document(self, path):
        return FakeDocRef(self, path)

    def batch(self):
        return FakeBatch(self)

    def write_option(self, **kwargs):
        return FakeWriteOption(**kwargs)

    # ---------------- test helpers ----------------
    def seed(self, path, data):
        with self._lock:
            self._docs[path] = copy.deepcopy(data)
            self._update_times[path] = self._tick()

    def data(self, path):
        with self._lock:
            return copy.deepcopy(self._docs.get(path))

    def paths(self, prefix=""):
        with self._lock:
            return sorted(p for p in self._docs if p.startswith(prefix))

    # ---------------- internals ----------------
    def _tick(self):
        return EPOCH + timedelta(microseconds=next(self._clock))

    def _snapshot(self, path):
        with self._lock:
            return FakeSnapshot(FakeDocRef(self, path), self._docs.get(path), self._update_times.get(path))

    def _apply(self, ops):
        with self._lock:
            for op, path, _data, extra in ops:
                if path.split("/")[0] in self.fail_writes_to:
                    raise gcp_exceptions.ServiceUnavailable(f"writes to {path} unavailable")
                exists = path in self._docs
                if op == "create" and exists:
                    raise gcp_exceptions.AlreadyExists(f"{path} already exists")
                if op == "update":
                    if not exists:
                        raise gcp_exceptions.NotFound(f"No document to update: {path}")
                    if extra is not None and extra.last_update_time is not None \
                            and extra.last_update_time != self._update_times.get(path):
                        raise gcp_exceptions.FailedPrecondition(f"{path} changed since it was read")

            # Stage against a copy so one bad op leaves nothing applied
            staged = copy.deepcopy(self._docs)
            for op, path, data, extra in ops:
                if op == "delete":
                    staged.pop(path, None)
                elif op == "update" or (op == "set" and extra):
                    staged[path] = _deep_merge(staged.get(path) or {}, data)
                else:
                    staged[path] = copy.deepcopy(data)

            stamp = self._tick()
            for _op, path, _data, _extra in ops:
                self._update_times[path] = stamp
            self._docs = staged
            self.write_count += len(ops)
            self.commit_count += 1
            watches = list(self.watches)

        for watch in watches:
            watch._refresh()
        return stamp


class FakeBatch:
    def __init__(self, client):
        self._client = client
        self._ops = []

    def set(self, reference, document_data, merge=False):
        self._ops.append(("set", reference.path, document_data, merge))

    def create(self, reference, document_data):
        self._ops.append(("create", reference.path, document_data, None))

    def update(self, reference, field_updates, option=None):
        self._ops.append(("update", reference.path, field_updates, option))

    def delete(self, reference, option=None):
        self._ops.append(("delete", reference.path, None, option))

    def commit(self):
        if not self._ops:
            return []
        return self._client._apply(self._ops)


class FakeDocRef:
    def __init__(self, client, path):
        self._client = client
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    @property
    def parent(self):
        return FakeCollection(self._client, self.path.rsplit("/", 1)[0])

    def collection(self, name):
        return FakeCollection(self._client, f"{self.path}/{name}")

    def get(self, transaction=None):
        return self._client._snapshot(self.path)

    def set(self, document_data, merge=False):
        return self._client._apply([("set", self.path, document_data, merge)])

    def create(self, document_data):
        return self._client._apply([("create", self.path, document_data, None)])

    def update(self, field_updates, option=None):
        return self._client._apply([("update", self.path, field_updates, option)])

    def delete(self):
        return self._client._apply([("delete", self.path, None, None)])


OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
    "array-contains": lambda a, b: isinstance(a, list) and b in a,
}


class FakeQuery:
    def __init__(self, client, path, group=False, filters=None, orders=None, limit=None):
        self._client = client
        self.path = path
        self._group = group
        self._filters = list(filters or [])
        self._orders = list(orders or [])
        self._limit = limit

    def _copy(self, **changes):
        params = dict(group=self._group, filters=self._filters, orders=self._orders, limit=self._limit)
        params.update(changes)
        return FakeQuery(self._client, self.path, **params)

    def where(self, field_path=None, op_string=None, value=None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path, direction="ASCENDING"):
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count):
        return self._copy(limit=count)

    def _matches_path(self, doc_path):
        parts = doc_path.split("/")
        if self._group:
            return len(parts) >= 2 and parts[-2] == self.path
        return doc_path.rsplit("/", 1)[0] == self.path and len(parts) == len(self.path.split("/")) + 1

    def _results(self):
        with self._client._lock:
            rows = [(p, d) for p, d in self._client._docs.items() if self._matches_path(p)]
        for field, op, value in self._filters:
            rows = [(p, d) for p, d in rows if OPS[op](d.get(field), value)]
        for field, direction in reversed(self._orders):
            rows.sort(key=lambda row: (row[1].get(field) is None, row[1].get(field)),
                      reverse=str(direction).upper().startswith("DESC"))
        if self._limit is not None:
            rows = rows[: self._limit]
        return [self._client._snapshot(p) for p, _ in rows]

    def stream(self, transaction=None):
        return iter(self._results())

    def get(self, transaction=None):
        return self._results()

    def count(self, alias=None):
        return FakeAggregationQuery(self, alias or "field_1")

    def on_snapshot(self, callback):
        watch = FakeWatch(self, callback)
        with self._client._lock:
            self._client.watches.append(watch)
        watch._refresh()
        return watch


class FakeAggregationResult:
    def __init__(self, alias, value):
        self.alias = alias
        self.value = value


class FakeAggregationQuery:
    def __init__(self, query, alias):
        self._query = query
        self._alias = alias

    def get(self, transaction=None):
        return [[FakeAggregationResult(self._alias, len(self._query._results()))]]


class FakeCollection(FakeQuery):
    def __init__(self, client, path):
        super().__init__(client, path)
        self.id = path.rsplit("/", 1)[-1]

    @property
    def parent(self):
        if "/" not in self.path:
            return None
        return FakeDocRef(self._client, self.path.rsplit("/", 1)[0])

    def document(self, document_id=None):
        return FakeDocRef(self._client, f"{self.path}/{document_id or uuid.uuid4().hex[:20]}")

    def add(self, document_data, document_id=None):
        ref = self.document(document_id)
        stamp = ref.create(document_data)
        return stamp, ref


class FakeWatch:
    def __init__(self, query, callback):
        self._query = query
        self._callback = callback
        self._last = {}
        self.unsubscribed = False

    def _refresh(self):
        if self.unsubscribed:
            return
        docs = self._query._results()
        current = {doc.id: doc.to_dict() for doc in docs}
        changes = []
        for doc in docs:
            if doc.id not in self._last:
                changes.append(FakeChange(ChangeType.ADDED, doc))
            elif self._last[doc.id] != current[doc.id]:
                changes.append(FakeChange(ChangeType.MODIFIED, doc))
        for doc_id, data in self._last.items():
            if doc_id not in current:
                gone = FakeSnapshot(FakeDocRef(self._query._client, f"{self._query.path}/{doc_id}"), data, None)
                changes.append(FakeChange(ChangeType.REMOVED, gone))
        self._last = current
        if changes or not hasattr(self, "_primed"):
            self._primed = True
            self._callback(docs, changes, datetime.now(timezone.utc))

    def unsubscribe(self):
        self.unsubscribed = True
        with self._query._client._lock:
            if self in self._query._client.watches:
                self._query._client.watches.remove(self)
