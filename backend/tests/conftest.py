"""
Pytest Configuration and Fixtures

Every test runs against a fresh in-memory MongoDB (mongomock) patched in as
the application database, so repositories and services are exercised
exactly as they run in production.
"""

import mongomock
import pytest
from typing import Callable, Dict

from missionledger.config.settings import settings
from missionledger.domain.models import ActorContext, WorkflowDefinition
from missionledger.repositories import mongo_client
from missionledger.services.mission_service import MissionService
from missionledger.services.workflow_service import WorkflowService
from missionledger.templates import get_reference_workflow
from missionledger.utils.jwt import JWTValidator

ORG_ID = "org_test"


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    """In-memory database behind get_collection()"""
    client = mongomock.MongoClient(tz_aware=True)
    database = client["mission_ledger_test"]
    monkeypatch.setattr(mongo_client, "_client", client)
    monkeypatch.setattr(mongo_client, "_database", database)
    monkeypatch.setattr(settings, "environment", "test")
    mongo_client.create_indexes()
    yield database


# =============================================================================
# Actors
# =============================================================================

def make_actor(role: str, actor_id: str = None) -> ActorContext:
    actor_id = actor_id or f"usr_{role}"
    return ActorContext(actor_id=actor_id, display_name=f"Test {role.title()}", role=role)


@pytest.fixture
def admin() -> ActorContext:
    return make_actor("admin")


@pytest.fixture
def operator() -> ActorContext:
    return make_actor("operator")


@pytest.fixture
def analyst() -> ActorContext:
    return make_actor("analyst")


@pytest.fixture
def supervisor() -> ActorContext:
    return make_actor("supervisor")


@pytest.fixture
def auditor() -> ActorContext:
    return make_actor("auditor")


# =============================================================================
# Workflows & missions
# =============================================================================

@pytest.fixture
def simple_submission() -> Dict:
    """draft -> review -> done, with role guards on each edge"""
    return {
        "name": "Simple Review",
        "description": "Two-step review",
        "states": [
            {"name": "draft", "label": "Draft", "initial": True},
            {"name": "review", "label": "Review"},
            {"name": "done", "label": "Done", "final": True},
        ],
        "transitions": [
            {"from": "draft", "to": "review", "label": "Submit", "roles": ["analyst"]},
            {"from": "review", "to": "done", "label": "Approve", "roles": ["supervisor"]},
            {"from": "review", "to": "draft", "label": "Send Back", "roles": ["supervisor"]},
        ],
    }


@pytest.fixture
def simple_definition(simple_submission, admin) -> WorkflowDefinition:
    return WorkflowService().publish(simple_submission, ORG_ID, admin)


@pytest.fixture
def itsm_definition(admin) -> WorkflowDefinition:
    return WorkflowService().publish(get_reference_workflow("itsm_incident"), ORG_ID, admin)


@pytest.fixture
def mission_factory(admin) -> Callable:
    """Create a mission bound to a definition; returns (mission, instance)"""
    def _create(definition: WorkflowDefinition, name: str = "Test Mission"):
        return MissionService().create_mission(
            name=name,
            description="Created by tests",
            organization_id=ORG_ID,
            definition_id=definition.definition_id,
            actor=admin,
        )
    return _create


@pytest.fixture
def simple_mission(simple_definition, mission_factory):
    mission, _ = mission_factory(simple_definition)
    return mission


@pytest.fixture
def itsm_mission(itsm_definition, mission_factory):
    mission, _ = mission_factory(itsm_definition, name="Q1 Incident Response")
    return mission


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Bearer header for a role, signed with the configured secret"""
    validator = JWTValidator()

    def _headers(role: str, actor_id: str = None) -> Dict[str, str]:
        token = validator.encode_token(actor_id or f"usr_{role}", role, f"Test {role.title()}")
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def client():
    """TestClient without lifespan: no index build, no relay scheduler"""
    from fastapi.testclient import TestClient
    from missionledger.main import app
    return TestClient(app)
