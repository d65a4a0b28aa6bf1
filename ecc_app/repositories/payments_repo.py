"""Firestore accessors for manual payment requests."""


def add_request(db, payload):
    return db.collection('payment_requests').add(payload)
