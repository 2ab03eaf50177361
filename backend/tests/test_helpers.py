"""
ComplyWatch Helper Tests
"""

import pytest


class FakeDriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class WrappedError(Exception):
    """Mimics a SQLAlchemy error carrying the driver error in .orig."""

    def __init__(self, orig):
        super().__init__("statement failed")
        self.orig = orig


class TestScores:
    def test_clamp_score(self):
        from complywatch.utils.helpers import clamp_score

        assert clamp_score(-5) == 0
        assert clamp_score(150) == 100
        assert clamp_score(42.6) == 43
        assert clamp_score(float("nan")) == 0
        assert clamp_score("abc") == 0
        assert clamp_score(None) == 0

    def test_to_number(self):
        from complywatch.utils.helpers import to_number

        assert to_number("70") == 70.0
        assert to_number(" 3.5 ") == 3.5
        assert to_number("high") is None
        assert to_number(True) is None
        assert to_number(float("nan")) is None

    @pytest.mark.parametrize("score,level", [(0, "Low"), (39, "Low"), (40, "Medium"), (79, "High"), (80, "Critical"), (250, "Critical")])
    def test_risk_level(self, score, level):
        from complywatch.utils.helpers import get_risk_level

        assert get_risk_level(score) == level


class TestText:
    def test_split_csv(self):
        from complywatch.utils.helpers import split_csv

        assert split_csv(" Finance, LEGAL ,,") == ["finance", "legal"]
        assert split_csv(["A", " b "]) == ["a", "b"]
        assert split_csv(None) == []

    def test_external_address(self):
        from complywatch.utils.helpers import is_external_address

        assert is_external_address("me@gmail.com", ["company.com"])
        assert not is_external_address("ops@eu.company.com", ["company.com"])
        assert not is_external_address("not-an-address", ["company.com"])


class TestMissingSchema:
    """Tests for is_missing_schema_error."""

    def test_sqlite_message(self):
        from complywatch.database import is_missing_schema_error

        assert is_missing_schema_error(WrappedError(FakeDriverError("no such table: policy_executions")))

    def test_postgres_code(self):
        from complywatch.database import is_missing_schema_error

        assert is_missing_schema_error(FakeDriverError("boom", pgcode="42P01"))

    def test_postgres_message(self):
        from complywatch.database import is_missing_schema_error

        assert is_missing_schema_error(FakeDriverError('relation "incidents" does not exist'))

    def test_other_errors(self):
        from complywatch.database import is_missing_schema_error

        assert not is_missing_schema_error(FakeDriverError("database is locked"))
        assert not is_missing_schema_error(ValueError("bad value"))
