"""Tests for the decision workflow."""

import threading
from unittest.mock import MagicMock, call

import pytest

from splitgate.decision import (
    Concluded,
    DecisionOpen,
    DecisionRegistry,
    DecisionWorkflow,
    Idle,
    SoftGateConfirm,
    Submitting,
    WinnerChoice,
    default_reason,
    settings_diff,
)
from splitgate.errors import (
    ApiError,
    InvalidTransitionError,
    ValidationError,
    WorkflowAlreadyOpenError,
)
from splitgate.models import ConclusionPayload


@pytest.fixture
def collaborators(make_experiment):
    """Concluder and settings mocks sharing one parent to record call order."""
    parent = MagicMock()
    parent.concluder.conclude_experiment.return_value = make_experiment(
        status="concluded",
        conclusion={"winner": "variant", "promoted": True},
    )
    return parent


def open_workflow(snapshot, collaborators, experiment=None):
    workflow = DecisionWorkflow(
        snapshot,
        collaborators.concluder,
        collaborators.settings,
        experiment=experiment,
    )
    _ = workflow.declare()
    return workflow


class TestDeclare:
    """Tests for entering the decision view."""

    def test_hard_gate_opens_directly(self, make_snapshot, collaborators):
        """Both gates met: the decision view opens with no confirmation."""
        workflow = DecisionWorkflow(
            make_snapshot(), collaborators.concluder, collaborators.settings
        )

        state = workflow.declare()

        assert isinstance(state, DecisionOpen)
        assert state.form.winner is WinnerChoice.VARIANT
        assert state.form.reason == (
            "Statistically significant: variant wins on CTR with 99.8% confidence."
        )

    def test_soft_gate_requires_confirmation(self, make_snapshot, gate_data, collaborators):
        """Early declare stops at the novelty confirmation."""
        workflow = DecisionWorkflow(
            make_snapshot(gate=gate_data(n=True, days=False)),
            collaborators.concluder,
            collaborators.settings,
        )

        assert isinstance(workflow.declare(), SoftGateConfirm)
        with pytest.raises(InvalidTransitionError):
            workflow.select_winner("control")

        assert isinstance(workflow.proceed_anyway(), DecisionOpen)

    def test_soft_gate_cancel_returns_to_idle(self, make_snapshot, gate_data, collaborators):
        workflow = DecisionWorkflow(
            make_snapshot(gate=gate_data(n=True, days=False)),
            collaborators.concluder,
            collaborators.settings,
        )
        _ = workflow.declare()

        assert isinstance(workflow.cancel(), Idle)

    def test_blocked_without_sample_size(self, make_snapshot, gate_data, collaborators):
        """Declaring before minimum N is rejected."""
        workflow = DecisionWorkflow(
            make_snapshot(gate=gate_data(n=False, days=True)),
            collaborators.concluder,
            collaborators.settings,
        )

        with pytest.raises(InvalidTransitionError, match="Cannot declare"):
            workflow.declare()
        assert isinstance(workflow.state, Idle)

    def test_blocked_for_draft_experiment(self, make_snapshot, collaborators):
        workflow = DecisionWorkflow(
            make_snapshot(status="draft"),
            collaborators.concluder,
            collaborators.settings,
        )

        with pytest.raises(InvalidTransitionError):
            workflow.declare()

    def test_stopped_experiment_can_be_declared(self, make_snapshot, collaborators):
        workflow = DecisionWorkflow(
            make_snapshot(status="stopped"),
            collaborators.concluder,
            collaborators.settings,
        )

        assert isinstance(workflow.declare(), DecisionOpen)

    def test_control_significance_preselects_control(self, make_snapshot, collaborators):
        """A significant control win pre-selects control."""
        snapshot = make_snapshot(
            significance={
                "zScore": -3.1,
                "pValue": 0.002,
                "confidence": 0.998,
                "significant": True,
                "winner": "control",
            }
        )
        workflow = open_workflow(snapshot, collaborators)

        assert workflow.form.winner is WinnerChoice.CONTROL
        assert workflow.form.reason == (
            "Statistically significant: control wins on CTR with 99.8% confidence."
        )

    def test_no_significance_preselects_none(self, make_snapshot, collaborators):
        """Without a significant winner the form starts on 'none'."""
        snapshot = make_snapshot(
            significance={"confidence": 0.6, "significant": False, "winner": None}
        )
        workflow = open_workflow(snapshot, collaborators)

        assert workflow.form.winner is WinnerChoice.NONE
        assert workflow.form.reason == (
            "No statistically significant difference detected on CTR."
        )

    def test_missing_significance_gives_empty_reason(self, make_snapshot):
        assert default_reason(make_snapshot(significance=None)) == ""


class TestForm:
    """Tests for editing the decision form."""

    def test_edit_fields(self, make_snapshot, collaborators):
        workflow = open_workflow(make_snapshot(), collaborators)

        workflow.select_winner("control")
        workflow.set_reason("Control is simpler to maintain.")

        assert workflow.form.winner is WinnerChoice.CONTROL
        assert workflow.form.reason == "Control is simpler to maintain."

    def test_bad_winner_rejected(self, make_snapshot, collaborators):
        workflow = open_workflow(make_snapshot(), collaborators)

        with pytest.raises(ValidationError, match="control, variant or none"):
            workflow.select_winner("both")

    def test_promote_not_offered_without_experiment(self, make_snapshot, collaborators):
        """Without the experiment record there is nothing to promote."""
        workflow = open_workflow(make_snapshot(), collaborators)

        assert not workflow.form.can_promote
        with pytest.raises(ValidationError, match="Promotion is only available"):
            workflow.set_promote(True)

    def test_promote_not_offered_for_mode_b(self, make_snapshot, make_experiment, collaborators):
        experiment = make_experiment(
            variant={"name": "variant", "indexName": "products_v2"}
        )
        workflow = open_workflow(make_snapshot(), collaborators, experiment)

        assert not workflow.can_promote

    def test_promote_not_offered_for_empty_overrides(
        self, make_snapshot, make_experiment, collaborators
    ):
        experiment = make_experiment(variant={"name": "variant", "queryOverrides": {}})
        workflow = open_workflow(make_snapshot(), collaborators, experiment)

        assert not workflow.can_promote

    def test_cancel_discards_edits(self, make_snapshot, collaborators):
        """Reopening after cancel starts from the defaults again."""
        workflow = open_workflow(make_snapshot(), collaborators)
        workflow.set_reason("edited")
        _ = workflow.cancel()

        _ = workflow.declare()

        assert workflow.form.reason.startswith("Statistically significant")


class TestSubmit:
    """Tests for the promote-then-conclude sequence."""

    def test_conclude_without_promotion(self, make_snapshot, collaborators):
        """Only the conclude call is made; the payload mirrors the snapshot."""
        workflow = open_workflow(make_snapshot(), collaborators)

        experiment = workflow.submit()

        assert isinstance(workflow.state, Concluded)
        assert workflow.state.experiment is experiment
        collaborators.settings.update_settings.assert_not_called()
        payload = collaborators.concluder.conclude_experiment.call_args.args[1]
        assert isinstance(payload, ConclusionPayload)
        assert payload.winner == "variant"
        assert payload.control_metric == 0.12
        assert payload.variant_metric == 0.135
        assert payload.confidence == 0.998
        assert payload.significant
        assert not payload.promoted

    def test_none_winner_sent_as_null(self, make_snapshot, collaborators):
        workflow = open_workflow(make_snapshot(), collaborators)
        workflow.select_winner(WinnerChoice.NONE)

        _ = workflow.submit()

        payload = collaborators.concluder.conclude_experiment.call_args.args[1]
        assert payload.winner is None
        assert payload.to_wire()["winner"] is None

    def test_promote_then_conclude(self, make_snapshot, make_experiment, collaborators):
        """Promotion writes exactly the overrides, then the conclusion records it."""
        experiment = make_experiment()
        workflow = open_workflow(make_snapshot(), collaborators, experiment)
        workflow.set_promote(True)

        _ = workflow.submit()

        assert [c[0] for c in collaborators.mock_calls] == [
            "settings.update_settings",
            "concluder.conclude_experiment",
        ]
        assert collaborators.settings.update_settings.call_args == call(
            "products", {"enableSynonyms": False}
        )
        payload = collaborators.concluder.conclude_experiment.call_args.args[1]
        assert payload.promoted is True
        assert payload.to_wire()["promoted"] is True

    def test_failed_promotion_aborts_conclude(
        self, make_snapshot, make_experiment, collaborators
    ):
        """If promotion fails nothing is concluded and the form stays editable."""
        collaborators.settings.update_settings.side_effect = ApiError(
            "Server error: boom", status_code=500
        )
        workflow = open_workflow(make_snapshot(), collaborators, make_experiment())
        workflow.set_promote(True)
        workflow.set_reason("keep me")

        with pytest.raises(ApiError):
            workflow.submit()

        collaborators.concluder.conclude_experiment.assert_not_called()
        assert isinstance(workflow.state, DecisionOpen)
        assert workflow.form.reason == "keep me"
        assert workflow.form.promote

    def test_failed_conclude_can_be_retried(self, make_snapshot, make_experiment, collaborators):
        """A failed conclude leaves the view open; a retry succeeds."""
        concluded = make_experiment(status="concluded")
        collaborators.concluder.conclude_experiment.side_effect = [
            ApiError("Connection error: refused"),
            concluded,
        ]
        workflow = open_workflow(make_snapshot(), collaborators)

        with pytest.raises(ApiError):
            workflow.submit()
        assert isinstance(workflow.state, DecisionOpen)

        assert workflow.submit() is concluded
        assert collaborators.concluder.conclude_experiment.call_count == 2

    def test_interrupted_submit_reopens_view(self, make_snapshot, collaborators):
        """Ctrl+C during the conclude call leaves the decision open for retry."""
        collaborators.concluder.conclude_experiment.side_effect = KeyboardInterrupt
        workflow = open_workflow(make_snapshot(), collaborators)
        workflow.set_reason("keep me")

        with pytest.raises(KeyboardInterrupt):
            workflow.submit()

        assert isinstance(workflow.state, DecisionOpen)
        assert workflow.form.reason == "keep me"

    def test_submit_requires_open_view(self, make_snapshot, collaborators):
        workflow = DecisionWorkflow(
            make_snapshot(), collaborators.concluder, collaborators.settings
        )

        with pytest.raises(InvalidTransitionError):
            workflow.submit()


class TestSnapshotRefresh:
    """Tests for fresh snapshots arriving while deciding."""

    def test_refresh_keeps_form(self, make_snapshot, collaborators):
        """A new snapshot never overwrites the operator's edits."""
        workflow = open_workflow(make_snapshot(), collaborators)
        workflow.set_reason("mine")

        fresh = make_snapshot(control={"name": "control", "searches": 20000, "ctr": 0.2})
        assert workflow.apply_snapshot(fresh)

        assert workflow.snapshot is fresh
        assert workflow.form.reason == "mine"

    def test_refresh_held_while_submitting(self, make_snapshot, collaborators):
        """Snapshots arriving mid-submit wait until the submit settles."""
        started = threading.Event()
        release = threading.Event()
        original = make_snapshot()
        fresh = make_snapshot(name="fresher")

        def slow_conclude(experiment_id, payload):
            started.set()
            release.wait(timeout=5)
            raise ApiError("Server error: timeout", status_code=504)

        collaborators.concluder.conclude_experiment.side_effect = slow_conclude
        workflow = open_workflow(original, collaborators)
        errors = []

        def run():
            try:
                workflow.submit()
            except ApiError as e:
                errors.append(e)

        thread = threading.Thread(target=run)
        thread.start()
        assert started.wait(timeout=5)

        assert isinstance(workflow.state, Submitting)
        assert not workflow.apply_snapshot(fresh)
        assert workflow.snapshot is original

        release.set()
        thread.join(timeout=5)

        assert len(errors) == 1
        assert isinstance(workflow.state, DecisionOpen)
        assert workflow.snapshot is fresh


class TestSettingsDiff:
    """Tests for the variant description shown with the decision."""

    def test_mode_a_lines(self, make_experiment):
        experiment = make_experiment(
            variant={
                "name": "variant",
                "queryOverrides": {"enableSynonyms": True, "filters": "brand:Nike"},
            }
        )
        assert settings_diff(experiment) == [
            "enableSynonyms: true",
            'filters: "brand:Nike"',
        ]

    def test_mode_b_line(self, make_experiment):
        experiment = make_experiment(variant={"name": "variant", "indexName": "products_v2"})
        assert settings_diff(experiment) == ["Mode B: routes to index products_v2"]

    def test_no_experiment(self):
        assert settings_diff(None) == []


class TestRegistry:
    """Tests for the one-workflow-per-experiment registry."""

    def test_second_open_rejected(self, make_snapshot, collaborators):
        registry = DecisionRegistry()
        _ = registry.open(make_snapshot(), collaborators.concluder, collaborators.settings)

        with pytest.raises(WorkflowAlreadyOpenError):
            registry.open(make_snapshot(), collaborators.concluder, collaborators.settings)

    def test_separate_experiments_are_independent(self, make_snapshot, collaborators):
        registry = DecisionRegistry()
        first = registry.open(
            make_snapshot(), collaborators.concluder, collaborators.settings
        )
        second = registry.open(
            make_snapshot(experimentID="exp-2"),
            collaborators.concluder,
            collaborators.settings,
        )

        assert first is not second
        assert len(registry) == 2
        assert registry.get("exp-2") is second

    def test_session_releases_on_exit(self, make_snapshot, collaborators):
        registry = DecisionRegistry()

        with registry.session(
            make_snapshot(), collaborators.concluder, collaborators.settings
        ) as workflow:
            assert registry.get("exp-1") is workflow

        assert registry.get("exp-1") is None
        assert len(registry) == 0

    def test_session_interrupted_mid_submit(self, make_snapshot, collaborators):
        """An interrupt escapes the session unchanged and the entry is released."""
        collaborators.concluder.conclude_experiment.side_effect = KeyboardInterrupt
        registry = DecisionRegistry()

        with pytest.raises(KeyboardInterrupt):
            with registry.session(
                make_snapshot(), collaborators.concluder, collaborators.settings
            ) as workflow:
                _ = workflow.declare()
                workflow.submit()

        assert registry.get("exp-1") is None

    def test_session_releases_on_error(self, make_snapshot, collaborators):
        registry = DecisionRegistry()

        with pytest.raises(RuntimeError, match="boom"):
            with registry.session(
                make_snapshot(), collaborators.concluder, collaborators.settings
            ):
                raise RuntimeError("boom")

        assert len(registry) == 0
