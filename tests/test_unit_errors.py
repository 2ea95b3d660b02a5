"""
Unit tests for domain errors and their conversion to issues.
"""

from rulelang.core.errors import (
    CompilationError,
    ConflictError,
    PathReferenceError,
    RuleLangError,
    TypeMismatchError,
    UnitMismatchError,
    ValidationError,
    get_issue_kind,
    issue_from_error,
)
from rulelang.domain.enums import IssueKind, IssueSeverity


class TestErrorHierarchy:
    """Tests for the exception hierarchy."""

    def test_validation_errors_share_base(self):
        for error_class in (PathReferenceError, TypeMismatchError, UnitMismatchError, ConflictError):
            assert issubclass(error_class, ValidationError)
            assert issubclass(error_class, RuleLangError)
        assert not issubclass(CompilationError, ValidationError)

    def test_details_default_to_empty(self):
        error = RuleLangError("boom")
        assert error.message == "boom"
        assert error.details == {}
        assert str(error) == "boom"


class TestIssueConversion:
    """Tests for issue_from_error."""

    def test_issue_kinds(self):
        assert get_issue_kind(PathReferenceError("x")) == IssueKind.REFERENCE
        assert get_issue_kind(TypeMismatchError("x")) == IssueKind.TYPE_MISMATCH
        assert get_issue_kind(UnitMismatchError("x")) == IssueKind.UNIT_MISMATCH
        assert get_issue_kind(ConflictError("x")) == IssueKind.STATIC_CONFLICT
        assert get_issue_kind(ValidationError("x")) == IssueKind.DUPLICATE_DEFINITION

    def test_issue_carries_path_and_rules(self):
        error = PathReferenceError(
            'Unknown field "totl"', details={"path": "order.totl", "segment": "totl"}
        )
        issue = issue_from_error(error, ["r1"])
        assert issue.kind == IssueKind.REFERENCE
        assert issue.severity == IssueSeverity.HARD
        assert issue.is_hard
        assert issue.path == "order.totl"
        assert issue.rule_ids == ["r1"]
        assert issue.details["segment"] == "totl"
