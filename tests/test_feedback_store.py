from datetime import datetime, timedelta

import pytest

from coffeeline.errors import ValidationError
from coffeeline.extensions import db
from coffeeline.models import Feedback
from coffeeline.services import feedback_store
from coffeeline.services.feedback_store import FeedbackFilter, compute_stats
from coffeeline.utils.validators import validate_feedback

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _fb(**kw):
    data = dict(
        customer_name="Ana Lopez",
        phone_number="+15550000001",
        account_number="ACC-100",
        coffee_type="Arabica",
        coffee_weight=2.5,
        customer_location="Main St",
        coffee_quality=5,
        delivery_experience=4,
        created_at=NOW,
    )
    data.update(kw)
    fb = Feedback(**data)
    db.session.add(fb)
    db.session.commit()
    return fb


def _valid_form(**kw):
    data = {
        "customer_name": "  Ana   Lopez ",
        "phone_number": "(555) 000-0001",
        "account_number": "ACC-100",
        "coffee_type": "Arabica",
        "coffee_weight": "2.5",
        "customer_location": "Main St",
        "coffee_quality": "5",
        "delivery_experience": 4,
        "comments": "",
    }
    data.update(kw)
    return data


def test_validate_feedback_cleans_values():
    out = validate_feedback(_valid_form())
    assert out["customer_name"] == "Ana Lopez"
    assert out["phone_number"] == "5550000001"
    assert out["coffee_weight"] == 2.5
    assert out["coffee_quality"] == 5
    assert out["delivery_experience"] == 4
    assert out["comments"] is None


def test_validate_feedback_reports_every_bad_field():
    with pytest.raises(ValidationError) as ei:
        validate_feedback(_valid_form(
            customer_name="", account_number=" ", coffee_quality="6", delivery_experience="0", coffee_weight="-1",
        ))
    assert set(ei.value.errors) == {
        "customer_name", "account_number", "coffee_quality", "delivery_experience", "coffee_weight",
    }


@pytest.mark.parametrize("rating", ["4.5", True, None, "", "abc"])
def test_validate_feedback_rejects_non_integer_ratings(rating):
    with pytest.raises(ValidationError) as ei:
        validate_feedback(_valid_form(coffee_quality=rating))
    assert "coffee_quality" in ei.value.errors


def test_search_is_case_insensitive_substring(app):
    with app.app_context():
        _fb()
        _fb(customer_name="Ben Ray", phone_number="+15550000002", account_number="ACC-200", coffee_type="Robusta")
        names = [f.customer_name for f in feedback_store.list_feedback(FeedbackFilter(search="ANA"))]
        assert names == ["Ana Lopez"]


@pytest.mark.parametrize("term,expected", [
    ("0000002", ["Ben Ray"]),
    ("acc-2", ["Ben Ray"]),
    ("robu", ["Ben Ray"]),
    ("arabica", ["Ana Lopez"]),
    ("Main St", []),
])
def test_search_covers_phone_account_and_coffee_type(app, term, expected):
    with app.app_context():
        _fb()
        _fb(customer_name="Ben Ray", phone_number="+15550000002", account_number="ACC-200", coffee_type="Robusta")
        assert [f.customer_name for f in feedback_store.list_feedback(FeedbackFilter(search=term))] == expected


def test_search_treats_wildcards_literally(app):
    with app.app_context():
        _fb()
        assert feedback_store.list_feedback(FeedbackFilter(search="%")) == []


@pytest.mark.parametrize("term", ["555-010", "(555) 010", "555.010.1234", "5550101234"])
def test_search_matches_phone_typed_with_separators(app, term):
    with app.app_context():
        cleaned = validate_feedback(_valid_form(phone_number="555-010-1234"))
        _fb(customer_name="Cleo Dunn", phone_number=cleaned["phone_number"])
        _fb(customer_name="Ben Ray", phone_number="+15550000002")
        assert [f.customer_name for f in feedback_store.list_feedback(FeedbackFilter(search=term))] == ["Cleo Dunn"]


def test_quality_filter_is_exact(app):
    with app.app_context():
        _fb(coffee_quality=5)
        _fb(customer_name="Ben Ray", coffee_quality=4)
        assert [f.coffee_quality for f in feedback_store.list_feedback(FeedbackFilter(quality=5))] == [5]


def test_filters_compose_with_and(app):
    with app.app_context():
        _fb(customer_name="Ana Lopez", coffee_quality=5)
        _fb(customer_name="Ana Ruiz", coffee_quality=3)
        _fb(customer_name="Ben Ray", coffee_quality=5)
        got = feedback_store.list_feedback(FeedbackFilter(search="ana", quality=5))
        assert [f.customer_name for f in got] == ["Ana Lopez"]


def test_list_is_newest_first_and_idempotent(app):
    with app.app_context():
        _fb(customer_name="Old", created_at=NOW - timedelta(days=3))
        _fb(customer_name="New", created_at=NOW)
        _fb(customer_name="Mid", created_at=NOW - timedelta(days=1))
        flt = FeedbackFilter()
        first = [f.id for f in feedback_store.list_feedback(flt)]
        second = [f.id for f in feedback_store.list_feedback(flt)]
        assert first == second
        assert [f.customer_name for f in feedback_store.list_feedback(flt)] == ["New", "Mid", "Old"]


def test_stats_average_and_recent_window(app):
    with app.app_context():
        _fb(coffee_quality=5, delivery_experience=4, created_at=NOW - timedelta(days=2))
        _fb(coffee_quality=2, delivery_experience=3, created_at=NOW - timedelta(days=10))
        stats = compute_stats(feedback_store.list_feedback(), now=NOW)
        assert stats.total == 2
        assert stats.average_quality == 3.5
        assert stats.average_delivery == 3.5
        assert stats.recent == 1


def test_stats_empty():
    assert compute_stats([]).to_dict() == {"total": 0, "average_quality": 0.0, "average_delivery": 0.0, "recent": 0}


def test_stats_round_to_one_decimal(app):
    with app.app_context():
        for q in (5, 4, 4):
            _fb(coffee_quality=q)
        assert compute_stats(feedback_store.list_feedback(), now=NOW).average_quality == 4.3


def test_export_csv(app):
    with app.app_context():
        _fb(comments='Said "great"')
        text = feedback_store.export_csv(feedback_store.list_feedback())
        lines = text.splitlines()
        assert lines[0].startswith('"Customer Name","Phone Number","Account Number"')
        assert '"5 - Excellent"' in lines[1]
        assert '"4 - Good"' in lines[1]
        assert '"Said ""great"""' in lines[1]
        assert '"2026-10-19"' in lines[1]
    assert feedback_store.export_filename(NOW) == "feedback-records-2026-10-19.csv"


def test_customers_are_unique_by_phone_newest_wins(app):
    with app.app_context():
        _fb(customer_name="Ana L.", created_at=NOW - timedelta(days=5))
        _fb(customer_name="Ana Lopez", created_at=NOW)
        _fb(customer_name="Ben Ray", phone_number="+15550000002", created_at=NOW - timedelta(days=1))
        customers = feedback_store.list_customers()
        assert [c["customer_name"] for c in customers] == ["Ana Lopez", "Ben Ray"]
