import pytest

from noticesync.core.models import Notice, Priority, SourceCategory


def make(id=1, category=SourceCategory.GENERAL, **kwargs):
    kwargs.setdefault("title", "t")
    kwargs.setdefault("message", "m")
    return Notice(id=id, source_category=category, published_at_ms=0, **kwargs)


def test_source_category_parse_accepts_values_and_aliases():
    assert SourceCategory.parse("general") is SourceCategory.GENERAL
    assert SourceCategory.parse("exam-announcement") is SourceCategory.EXAM
    assert SourceCategory.parse(" DIRECT ") is SourceCategory.DIRECT
    with pytest.raises(ValueError):
        SourceCategory.parse("sms")


def test_priority_parse_and_rank():
    assert Priority.parse("URGENT") is Priority.URGENT
    assert Priority.parse("") is None
    assert Priority.parse("critical") is None
    assert Priority.LOW.rank < Priority.MEDIUM.rank < Priority.HIGH.rank < Priority.URGENT.rank


def test_identity_is_scoped_by_category():
    general = make(5, SourceCategory.GENERAL)
    direct = make(5, SourceCategory.DIRECT)

    assert general.key != direct.key
    assert hash(general) == hash(make(5, SourceCategory.GENERAL, title="changed"))
    assert len({general, direct, make(5, SourceCategory.GENERAL)}) == 2
    assert len({n.key for n in (general, direct, make(5, SourceCategory.GENERAL, title="changed"))}) == 2


def test_expiry():
    notice = make(expires_at_ms=1_000)
    assert notice.is_expired(1_001)
    assert not notice.is_expired(1_000)
    assert not make().is_expired(10**15)
