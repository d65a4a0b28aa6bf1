"""Shared Firestore query helpers.

Uses keyword-based filters to avoid positional-argument warnings in newer
Firestore SDK versions. Falls back to positional style for simple test doubles
that do not support keyword filters.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def apply_date_range(query, field_path, date_range):
    if not isinstance(date_range, dict):
        return query
    start = date_range.get('start')
    end = date_range.get('end')
    if start is not None:
        query = apply_where(query, field_path, '>=', start)
    if end is not None:
        query = apply_where(query, field_path, '<=', end)
    return query


def order_desc(query, field_path, firestore_module=None):
    if firestore_module is None:
        return query.order_by(field_path, direction='DESCENDING')
    return query.order_by(field_path, direction=firestore_module.Query.DESCENDING)
