"""Firestore read cache and write batching.

Reads go through a small TTL map keyed by path plus operation parameters.
Writes can be queued and flushed in batches that respect the Firestore limit
of 500 operations per commit.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from ecc_app.repositories import chats_repo
from ecc_app.services.message_compressor import compress_messages

DEFAULT_APP_ID = 'ecc-app-ab284'
CACHE_TTL_SECONDS = 5 * 60
MAX_CACHE_SIZE = 200
MAX_BATCH_SIZE = 500
AUTO_FLUSH_THRESHOLD = 10

OP_SET = 'set'
OP_UPDATE = 'update'
OP_DELETE = 'delete'
BATCH_OPERATION_KINDS = {OP_SET, OP_UPDATE, OP_DELETE}

SEARCHABLE_FIELDS = ('name', 'generatedContent', 'bookContent')


class BatchWriteError(RuntimeError):
    """A chunk failed to commit; earlier chunks are already applied."""

    def __init__(self, committed, cause):
        super().__init__(f"Batch commit failed after {committed} operations: {cause}")
        self.committed = committed
        self.cause = cause


@dataclass
class CacheEntry:
    key: str
    data: Any
    timestamp: float


@dataclass
class BatchOperation:
    kind: str
    target_ref: Any
    payload: Optional[dict] = None

    def __post_init__(self):
        if self.kind not in BATCH_OPERATION_KINDS:
            raise ValueError(f"Unknown batch operation kind: {self.kind}")


def to_datetime(value):
    """Normalize stored timestamps (Firestore, protobuf, epoch dicts) to datetime."""
    if isinstance(value, datetime):
        return value
    if hasattr(value, 'ToDatetime'):
        return value.ToDatetime()
    if isinstance(value, dict) and 'seconds' in value:
        seconds = float(value.get('seconds') or 0) + float(value.get('nanoseconds') or 0) / 1e9
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    return value


def snapshot_to_dict(snapshot):
    data = snapshot.to_dict() or {}
    return {'id': snapshot.id, **data}


class DatabaseOptimizer:
    def __init__(
        self,
        db,
        *,
        app_id=DEFAULT_APP_ID,
        firestore_module=None,
        cache_ttl_seconds=CACHE_TTL_SECONDS,
        max_cache_size=MAX_CACHE_SIZE,
        clock=time.time,
        logger=None,
    ):
        self.db = db
        self.app_id = app_id
        self.firestore_module = firestore_module
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_cache_size = max_cache_size
        self.clock = clock
        self.logger = logger or logging.getLogger('ecc_app.database')
        self.query_cache = {}
        self.batch_operations = []
        self.cache_hits = 0
        self.cache_misses = 0
        self.last_cleanup = None
        self._lock = threading.RLock()

    # --- cache primitives ---

    def _cache_get(self, key):
        with self._lock:
            entry = self.query_cache.get(key)
            if entry is not None and self.clock() - entry.timestamp < self.cache_ttl_seconds:
                self.cache_hits += 1
                return True, entry.data
            self.cache_misses += 1
            return False, None

    def _cache_set(self, key, data):
        with self._lock:
            # Re-inserting moves the key to the tail so eviction stays FIFO by write.
            self.query_cache.pop(key, None)
            self.query_cache[key] = CacheEntry(key=key, data=data, timestamp=self.clock())
            self._trim_cache()

    def invalidate(self, key):
        with self._lock:
            return self.query_cache.pop(key, None) is not None

    def _trim_cache(self):
        overflow = len(self.query_cache) - self.max_cache_size
        if overflow <= 0:
            return
        for key in list(self.query_cache.keys())[:overflow]:
            self.query_cache.pop(key, None)

    def cleanup_cache(self):
        now = self.clock()
        with self._lock:
            expired = [
                key for key, entry in self.query_cache.items()
                if now - entry.timestamp > self.cache_ttl_seconds
            ]
            for key in expired:
                self.query_cache.pop(key, None)
            self._trim_cache()
            self.last_cleanup = now
            return len(expired)

    # --- reads ---

    def get_cached_document(self, path, force_refresh=False):
        cache_key = f"doc:{path}"
        if not force_refresh:
            hit, data = self._cache_get(cache_key)
            if hit:
                return data
        try:
            snapshot = chats_repo.get_doc_by_path(self.db, path)
            result = snapshot_to_dict(snapshot) if snapshot.exists else None
        except Exception as exc:
            self.logger.error(f"Error fetching cached document {path}: {exc}")
            return None
        self._cache_set(cache_key, result)
        return result

    def load_chat_history(self, user_id, page_size=10, start_after=None):
        cache_key = f"chat_history:{user_id}:{page_size}:{start_after or 'first'}"
        hit, data = self._cache_get(cache_key)
        if hit:
            return data
        try:
            docs = chats_repo.list_chats_page(
                self.db,
                self.app_id,
                user_id,
                page_size,
                start_after_id=start_after,
                firestore_module=self.firestore_module,
            )
        except Exception as exc:
            self.logger.error(f"Error loading chat history for {user_id}: {exc}")
            return {'chats': [], 'has_more': False}
        result = {
            'chats': [snapshot_to_dict(doc) for doc in docs],
            'last_doc_id': docs[-1].id if docs else None,
            'has_more': len(docs) == page_size,
        }
        self._cache_set(cache_key, result)
        return result

    def load_messages(self, user_id, chat_id, limit=50):
        cache_key = f"messages:{user_id}:{chat_id}:{limit}"
        hit, data = self._cache_get(cache_key)
        if hit:
            return data
        try:
            chat_doc = self.get_cached_document(chats_repo.chat_doc_path(self.app_id, user_id, chat_id))
            if not chat_doc:
                return []
            messages = list(chat_doc.get('messages') or [])
            if len(messages) > limit:
                messages = compress_messages(messages, limit)
            messages = [
                {**message, 'timestamp': to_datetime(message.get('timestamp'))}
                for message in messages
            ]
        except Exception as exc:
            self.logger.error(f"Error loading messages for chat {chat_id}: {exc}")
            return []
        self._cache_set(cache_key, messages)
        return messages

    def search_content(self, user_id, search_term='', filters=None):
        filters = filters or {}
        filters_key = json.dumps(filters, sort_keys=True, default=str)
        cache_key = f"search:{user_id}:{search_term}:{filters_key}"
        hit, data = self._cache_get(cache_key)
        if hit:
            return data
        try:
            docs = chats_repo.list_generated_content(
                self.db,
                self.app_id,
                user_id,
                subject=filters.get('subject'),
                date_range=filters.get('date_range'),
                firestore_module=self.firestore_module,
            )
        except Exception as exc:
            self.logger.error(f"Error searching content for {user_id}: {exc}")
            return []
        results = [snapshot_to_dict(doc) for doc in docs]
        if search_term:
            needle = search_term.lower()
            results = [
                item for item in results
                if any(needle in str(item.get(field) or '').lower() for field in SEARCHABLE_FIELDS)
            ]
        self._cache_set(cache_key, results)
        return results

    # --- writes ---

    def batch_write(self, operations):
        operations = list(operations or [])
        if not operations:
            return 0
        committed = 0
        for offset in range(0, len(operations), MAX_BATCH_SIZE):
            chunk = operations[offset:offset + MAX_BATCH_SIZE]
            batch = self.db.batch()
            for operation in chunk:
                if operation.kind == OP_SET:
                    batch.set(operation.target_ref, operation.payload or {})
                elif operation.kind == OP_UPDATE:
                    batch.update(operation.target_ref, operation.payload or {})
                else:
                    batch.delete(operation.target_ref)
            try:
                batch.commit()
            except Exception as exc:
                raise BatchWriteError(committed, exc) from exc
            committed += len(chunk)
        return committed

    def update_user_preferences(self, user_id, preferences):
        user_ref = chats_repo.user_doc_ref(self.db, self.app_id, user_id)
        self.batch_write([
            BatchOperation(OP_UPDATE, user_ref, {
                'preferences': preferences,
                'lastUpdated': datetime.now(timezone.utc),
            }),
        ])
        self.invalidate(f"doc:{chats_repo.user_path(self.app_id, user_id)}")

    def queue_operation(self, operation):
        with self._lock:
            self.batch_operations.append(operation)
            should_flush = len(self.batch_operations) >= AUTO_FLUSH_THRESHOLD
        if should_flush:
            self.flush_batch_operations()

    def record_analytics(self, user_id, event, metadata=None):
        self.queue_operation(BatchOperation(
            OP_SET,
            chats_repo.new_analytics_doc_ref(self.db, self.app_id),
            {
                'userId': user_id,
                'event': event,
                'metadata': metadata or {},
                'timestamp': datetime.now(timezone.utc),
            },
        ))

    def flush_batch_operations(self):
        with self._lock:
            if not self.batch_operations:
                return 0
            pending = list(self.batch_operations)
            self.batch_operations = []
        try:
            return self.batch_write(pending)
        except BatchWriteError as exc:
            with self._lock:
                self.batch_operations = pending[exc.committed:] + self.batch_operations
            raise

    def get_performance_metrics(self):
        with self._lock:
            lookups = self.cache_hits + self.cache_misses
            return {
                'cache_size': len(self.query_cache),
                'cache_hit_rate': (self.cache_hits / lookups) if lookups else 0,
                'pending_batch_operations': len(self.batch_operations),
                'last_cleanup': self.last_cleanup,
            }
