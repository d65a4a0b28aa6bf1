"""Firestore paths and accessors for per-user chats and generated content."""

from .query_utils import apply_date_range, apply_where, order_desc


def user_path(app_id, uid):
    return f"artifacts/{app_id}/users/{uid}"


def chats_path(app_id, uid):
    return f"{user_path(app_id, uid)}/chats"


def chat_doc_path(app_id, uid, chat_id):
    return f"{chats_path(app_id, uid)}/{chat_id}"


def generated_content_path(app_id, uid):
    return f"{user_path(app_id, uid)}/generatedContent"


def analytics_path(app_id):
    return f"artifacts/{app_id}/analytics"


def get_doc_by_path(db, path):
    return db.document(path).get()


def user_doc_ref(db, app_id, uid):
    return db.document(user_path(app_id, uid))


def new_analytics_doc_ref(db, app_id):
    return db.collection(analytics_path(app_id)).document()


def list_chats_page(db, app_id, uid, page_size, start_after_id=None, firestore_module=None):
    collection = db.collection(chats_path(app_id, uid))
    query = order_desc(collection, 'lastUpdated', firestore_module).limit(page_size)
    if start_after_id:
        cursor = collection.document(start_after_id).get()
        if getattr(cursor, 'exists', False):
            query = query.start_after(cursor)
    return list(query.stream())


def list_generated_content(db, app_id, uid, subject=None, date_range=None, firestore_module=None):
    query = order_desc(db.collection(generated_content_path(app_id, uid)), 'createdAt', firestore_module)
    if subject:
        query = apply_where(query, 'subject', '==', subject)
    query = apply_date_range(query, 'createdAt', date_range)
    return list(query.stream())
