from ecc_app.repositories.query_utils import apply_date_range, apply_where


class _FilterCapableQuery:
    def __init__(self):
        self.kwargs = None

    def where(self, *args, **kwargs):
        self.kwargs = kwargs
        return self


class _PositionalOnlyQuery:
    def __init__(self):
        self.calls = []

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        self.calls.append(args)
        return self


def test_apply_where_prefers_field_filter_keyword():
    query = _FilterCapableQuery()

    result = apply_where(query, "subject", "==", "Science")

    assert result is query
    assert "filter" in query.kwargs


def test_apply_where_falls_back_to_positional_for_simple_test_doubles():
    query = _PositionalOnlyQuery()

    apply_where(query, "subject", "==", "Science")

    assert query.calls == [("subject", "==", "Science")]


def test_apply_date_range_adds_only_given_bounds():
    query = _PositionalOnlyQuery()

    apply_date_range(query, "createdAt", {"start": 10})
    apply_date_range(query, "createdAt", None)

    assert query.calls == [("createdAt", ">=", 10)]
