"""Tests for TransitionAuthorizer role guards and the override capability."""

import pytest

from missionledger.domain.enums import Capability, TransitionDenialReason
from missionledger.domain.errors import AuthorizationError, TransitionNotAllowedError
from missionledger.domain.models import StateDefinition, TransitionDefinition, WorkflowDefinition
from missionledger.engine.transition_authorizer import (
    TransitionAuthorizer,
    build_role_capabilities,
    has_capability,
)


def make_definition(transitions) -> WorkflowDefinition:
    return WorkflowDefinition(
        definition_id="WFD-test",
        name="Review",
        organization_id="org_test",
        states=[
            StateDefinition(name="open", initial=True),
            StateDefinition(name="review"),
            StateDefinition(name="closed", final=True),
        ],
        transitions=[TransitionDefinition.model_validate(t) for t in transitions],
        published_by="usr_admin",
    )


@pytest.fixture
def definition() -> WorkflowDefinition:
    return make_definition([
        {"from": "open", "to": "review", "roles": ["operator", "admin"]},
        {"from": "review", "to": "closed", "roles": ["supervisor", "admin"]},
    ])


class TestRoleCapabilities:
    """Capability table: the override is a capability, not a role name check."""

    def test_admin_holds_every_capability(self) -> None:
        table = build_role_capabilities("admin")
        assert table["admin"] == frozenset(Capability)

    def test_operator_cannot_bypass_guards(self) -> None:
        assert not has_capability("operator", Capability.BYPASS_TRANSITION_GUARDS)
        assert has_capability("operator", Capability.EXECUTE_RECOMMENDATIONS)

    def test_supervisor_reviews_but_does_not_execute(self) -> None:
        assert has_capability("supervisor", Capability.REVIEW_RECOMMENDATIONS)
        assert not has_capability("supervisor", Capability.EXECUTE_RECOMMENDATIONS)

    def test_unknown_role_has_nothing(self) -> None:
        assert not has_capability("intern", Capability.SUBMIT_RECOMMENDATIONS)

    def test_override_role_is_configurable(self) -> None:
        table = build_role_capabilities("root")
        assert has_capability("root", Capability.BYPASS_TRANSITION_GUARDS, table)
        assert not has_capability("admin", Capability.BYPASS_TRANSITION_GUARDS, table)


class TestAuthorize:
    """authorize() admits an edge only for listed roles or the override."""

    def test_listed_role_is_admitted(self, definition) -> None:
        decision = TransitionAuthorizer().authorize(definition, "open", "review", "operator")
        assert decision.transition.to_state == "review"
        assert decision.via_override is False

    def test_missing_edge_is_refused_for_every_role(self, definition) -> None:
        for role in ("operator", "admin"):
            with pytest.raises(TransitionNotAllowedError) as exc_info:
                TransitionAuthorizer().authorize(definition, "open", "closed", role)
            assert exc_info.value.reason == TransitionDenialReason.NO_SUCH_TRANSITION.value

    def test_unlisted_role_is_refused(self, definition) -> None:
        with pytest.raises(TransitionNotAllowedError) as exc_info:
            TransitionAuthorizer().authorize(definition, "review", "closed", "operator")
        assert exc_info.value.reason == TransitionDenialReason.ROLE_NOT_AUTHORIZED.value
        assert exc_info.value.http_status == 403

    def test_denial_is_an_authorization_error(self, definition) -> None:
        with pytest.raises(AuthorizationError):
            TransitionAuthorizer().authorize(definition, "review", "closed", "analyst")

    def test_override_is_flagged(self) -> None:
        definition = make_definition([
            {"from": "open", "to": "review", "roles": ["operator"]},
        ])
        decision = TransitionAuthorizer().authorize(definition, "open", "review", "admin")
        assert decision.via_override is True

    def test_listed_admin_is_not_an_override(self, definition) -> None:
        decision = TransitionAuthorizer().authorize(definition, "open", "review", "admin")
        assert decision.via_override is False

    def test_missing_roles_admit_anyone(self) -> None:
        definition = make_definition([{"from": "open", "to": "review"}])
        decision = TransitionAuthorizer().authorize(definition, "open", "review", "auditor")
        assert decision.via_override is False

    def test_wildcard_admits_anyone(self) -> None:
        definition = make_definition([{"from": "open", "to": "review", "roles": ["*"]}])
        decision = TransitionAuthorizer().authorize(definition, "open", "review", "executive_viewer")
        assert decision.via_override is False

    def test_empty_role_list_admits_only_the_override(self) -> None:
        definition = make_definition([{"from": "open", "to": "review", "roles": []}])
        with pytest.raises(TransitionNotAllowedError):
            TransitionAuthorizer().authorize(definition, "open", "review", "operator")
        assert TransitionAuthorizer().authorize(definition, "open", "review", "admin").via_override

    def test_custom_capability_table(self, definition) -> None:
        authorizer = TransitionAuthorizer(build_role_capabilities("supervisor"))
        decision = authorizer.authorize(definition, "open", "review", "supervisor")
        assert decision.via_override is True
        with pytest.raises(TransitionNotAllowedError):
            authorizer.authorize(definition, "review", "closed", "analyst")


class TestAvailable:
    """available() lists what the role could take right now."""

    def test_filters_by_role(self) -> None:
        definition = make_definition([
            {"from": "review", "to": "closed", "roles": ["supervisor"]},
            {"from": "review", "to": "open", "roles": ["operator", "supervisor"]},
        ])
        targets = [t.to_state for t in TransitionAuthorizer().available(definition, "review", "operator")]
        assert targets == ["open"]

    def test_override_sees_every_edge(self, definition) -> None:
        targets = [t.to_state for t in TransitionAuthorizer().available(definition, "review", "admin")]
        assert targets == ["closed"]

    def test_one_entry_per_target_state(self) -> None:
        definition = make_definition([
            {"from": "open", "to": "review", "label": "Ops", "roles": ["operator"]},
            {"from": "open", "to": "review", "label": "Sup", "roles": ["supervisor"]},
        ])
        available = TransitionAuthorizer().available(definition, "open", "admin")
        assert [t.label for t in available] == ["Ops"]

    def test_final_state_has_nothing(self, definition) -> None:
        assert TransitionAuthorizer().available(definition, "closed", "admin") == []
