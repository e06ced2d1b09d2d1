"""
Unit tests for the triage exception hierarchy.
"""

from maternal_triage.exceptions import (
    AgentExecutionError,
    CollaboratorError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ExtractionError,
    InvariantViolationError,
    StoreError,
    TriageError,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_default_values(self) -> None:
        """Test default context values are set."""
        ctx = ErrorContext()

        assert len(ctx.correlation_id) == 36  # UUID length
        assert ctx.component == "maternal-triage"
        assert ctx.operation is None
        assert ctx.session_id is None

    def test_with_operation_and_session(self) -> None:
        ctx = ErrorContext()
        new_ctx = ctx.with_operation("analyze").with_session("s1")

        assert new_ctx.operation == "analyze"
        assert new_ctx.session_id == "s1"
        assert new_ctx.correlation_id == ctx.correlation_id


class TestTriageError:
    """Tests for the base exception."""

    def test_public_dict_hides_internal_message(self) -> None:
        error = TriageError("rule table corrupt", details={"table": "rules"})
        public = error.to_dict()

        assert public["error"]["code"] == "TRIAGE_ERROR"
        assert public["error"]["message"] == "Something went wrong while reviewing your message."
        assert "rule table corrupt" not in str(public)

    def test_internal_dict_carries_cause(self) -> None:
        cause = ValueError("bad value")
        error = TriageError("wrapped", cause=cause)
        internal = error.to_internal_dict()["internal"]

        assert internal["message"] == "wrapped"
        assert internal["cause"] == {"type": "ValueError", "message": "bad value"}


class TestSubclasses:
    """Tests for specialised errors."""

    def test_invariant_violation(self) -> None:
        error = InvariantViolationError("unknown risk level", field="risk_level", value="level_9")

        assert error.severity is ErrorSeverity.CRITICAL
        assert error.details == {"field": "risk_level", "value": "'level_9'"}
        assert isinstance(error, TriageError)

    def test_agent_execution_error(self) -> None:
        error = AgentExecutionError("Obstetric Agent")

        assert error.category is ErrorCategory.AGENT
        assert error.message == "Agent 'Obstetric Agent' failed and abstained"
        assert error.details["agent"] == "Obstetric Agent"

    def test_store_and_collaborator_errors(self) -> None:
        store = StoreError("corrupt", key="context:s1")
        collaborator = CollaboratorError("notification", "pager offline")

        assert store.key == "context:s1"
        assert store.details["key"] == "context:s1"
        assert collaborator.collaborator == "notification"
        assert collaborator.category is ErrorCategory.COLLABORATOR

    def test_extraction_error_is_low_severity(self) -> None:
        assert ExtractionError("bad input").severity is ErrorSeverity.LOW
