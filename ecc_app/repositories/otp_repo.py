"""Firestore accessors for pending OTP codes."""


def doc_ref(db, collection_name, record_id):
    return db.collection(collection_name).document(record_id)


def get_doc(db, collection_name, record_id):
    return doc_ref(db, collection_name, record_id).get()


def set_doc(db, collection_name, record_id, payload):
    return doc_ref(db, collection_name, record_id).set(payload)


def delete_doc(db, collection_name, record_id):
    return doc_ref(db, collection_name, record_id).delete()
