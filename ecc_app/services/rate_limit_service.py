"""Fixed-window rate limiting, Firestore-backed with an in-process fallback."""

import hashlib
import re
from dataclasses import dataclass

from ecc_app.repositories import rate_limit_repo

KEY_PART_RE = re.compile(r'[^a-z0-9_.:@-]+')


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int


def normalize_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = KEY_PART_RE.sub('_', raw)
    return safe[:max_len] if safe else fallback


def build_key(rule, actor):
    return f"{rule.name}:{normalize_key_part(actor)}"


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


def _check_firestore(key, rule, now_ts, *, db, firestore_module, counter_collection):
    window_start = int(now_ts // rule.window_seconds) * int(rule.window_seconds)
    retry_after = max(1, int((window_start + rule.window_seconds) - now_ts))
    counter_ref = rate_limit_repo.counter_doc_ref(
        db, counter_collection, window_counter_id(key, rule.window_seconds, window_start)
    )

    @firestore_module.transactional
    def _txn(txn):
        snapshot = counter_ref.get(transaction=txn)
        count = int((snapshot.to_dict() or {}).get('count', 0) or 0) if snapshot.exists else 0
        if count >= rule.limit:
            return False, retry_after
        txn.set(counter_ref, {
            'key': key,
            'count': count + 1,
            'window_start': window_start,
            'window_seconds': int(rule.window_seconds),
            'updated_at': now_ts,
            'expires_at': window_start + (rule.window_seconds * 3),
        }, merge=True)
        return True, 0

    return _txn(db.transaction())


def _check_memory(key, rule, now_ts, *, events, lock):
    with lock:
        cutoff = now_ts - rule.window_seconds
        kept = [ts for ts in events.get(key, []) if ts >= cutoff]
        if len(kept) >= rule.limit:
            events[key] = kept
            return False, max(1, int((kept[0] + rule.window_seconds) - now_ts))
        kept.append(now_ts)
        events[key] = kept
    return True, 0


def check_rate_limit(
    rule,
    actor,
    *,
    db,
    firestore_module,
    counter_collection,
    in_memory_events,
    in_memory_lock,
    time_module,
    logger=None,
):
    """Return ``(allowed, retry_after_seconds)`` for one hit against ``rule``."""
    key = build_key(rule, actor)
    now_ts = time_module.time()
    if db is not None and firestore_module is not None:
        try:
            return _check_firestore(
                key, rule, now_ts,
                db=db, firestore_module=firestore_module, counter_collection=counter_collection,
            )
        except Exception as exc:
            if logger is not None:
                logger.info(f"⚠️ Firestore rate limit check failed for {rule.name}, using memory: {exc}")
    return _check_memory(key, rule, now_ts, events=in_memory_events, lock=in_memory_lock)
