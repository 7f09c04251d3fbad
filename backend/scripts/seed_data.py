"""
Seed Data Script - Reference workflows and demo missions
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta

from missionledger.domain.models import ActorContext, Task
from missionledger.repositories.mongo_client import create_indexes
from missionledger.repositories.mission_repo import MissionRepository, TaskRepository
from missionledger.services.evidence_service import EvidenceLedger
from missionledger.services.mission_service import MissionService
from missionledger.services.workflow_service import WorkflowService
from missionledger.templates import get_reference_workflow
from missionledger.utils.idgen import generate_task_id
from missionledger.utils.jwt import get_jwt_validator
from missionledger.utils.time import utc_now

ORGANIZATION_ID = "org_demo"

SEED_ADMIN = ActorContext(actor_id="usr_admin", display_name="Seed Admin", role="admin")

DEMO_MISSIONS = [
    {
        "workflow": "itsm_incident",
        "name": "Q1 Incident Response",
        "description": "Active incident management for Q1 2026 production issues",
        "advance_to": ["triaged", "assigned"],
        "tasks": [
            ("Investigate root cause of outage", "Production DB connection pool exhaustion", "in_progress", "high"),
            ("Update runbook with new procedure", "Document connection pool monitoring steps", "pending", "medium"),
            ("Notify affected stakeholders", "Send comms to business units", "completed", "high"),
        ],
        "evidence": [
            ("incident_log", "Connection pool metrics", {"pool_size": 50, "active": 50, "waiting": 312}),
        ],
    },
    {
        "workflow": "cyber_compliance",
        "name": "SOC 2 Type II Audit",
        "description": "Annual SOC 2 compliance assessment and evidence collection",
        "advance_to": ["evidence_collection"],
        "tasks": [
            ("Collect access control evidence", "Gather screenshots and logs for AC-1 through AC-6", "in_progress", "high"),
            ("Review encryption policies", "Verify TLS certificates and key rotation", "pending", "medium"),
        ],
        "evidence": [
            ("control_test", "AC-2 account review export", {"control": "AC-2", "accounts_reviewed": 214, "exceptions": 0}),
        ],
    },
    {
        "workflow": "fiu_investigation",
        "name": "FATF Compliance Review",
        "description": "Quarterly review of STR quality and BO discrepancy resolution",
        "advance_to": ["scoring"],
        "tasks": [
            ("Score batch of 12 new STRs", "Apply quality scoring criteria to incoming STRs", "in_progress", "high"),
            ("Resolve BO discrepancy for Alpha Holdings", "Cross-reference registry data with filed ownership", "pending", "critical"),
        ],
        "evidence": [],
    },
]


def publish_reference_workflows(service: WorkflowService) -> dict:
    """Publish each reference graph unless a version already exists"""
    published = {}
    for demo in DEMO_MISSIONS:
        key = demo["workflow"]
        submission = get_reference_workflow(key)
        existing = service.list_definitions(ORGANIZATION_ID, name=submission["name"], limit=1)
        if existing:
            print(f"  = {submission['name']} (v{existing[0].version_number} already published)")
            published[key] = existing[0]
            continue
        definition = service.publish(submission, ORGANIZATION_ID, SEED_ADMIN)
        print(f"  + {definition.name} v{definition.version_number} -> {definition.definition_id}")
        published[key] = definition
    return published


def create_demo_missions(definitions: dict) -> None:
    missions = MissionService()
    tasks = TaskRepository()
    ledger = EvidenceLedger()

    for demo in DEMO_MISSIONS:
        mission, instance = missions.create_mission(
            name=demo["name"],
            description=demo["description"],
            organization_id=ORGANIZATION_ID,
            definition_id=definitions[demo["workflow"]].definition_id,
            actor=SEED_ADMIN,
            template_id=demo["workflow"],
        )
        for to_state in demo["advance_to"]:
            missions.machine.transition(mission.mission_id, to_state, SEED_ADMIN, notes="Seeded")

        now = utc_now()
        for title, description, status, priority in demo["tasks"]:
            tasks.create_task(Task(
                task_id=generate_task_id(),
                mission_id=mission.mission_id,
                instance_id=instance.instance_id,
                title=title,
                description=description,
                status=status,
                priority=priority,
                due_date=now + timedelta(days=7),
                completed_at=now if status == "completed" else None,
            ))

        for evidence_type, title, content in demo["evidence"]:
            ledger.append(mission.mission_id, evidence_type, title, content, SEED_ADMIN.actor_id)

        print(f"  + {mission.name} -> {mission.mission_id}")


def main():
    print("Creating indexes...")
    create_indexes()

    print("Publishing reference workflows...")
    definitions = publish_reference_workflows(WorkflowService())

    if MissionRepository().list_by_organization(ORGANIZATION_ID, limit=1):
        print("Demo missions already exist. Skipping.")
    else:
        print("Creating demo missions...")
        create_demo_missions(definitions)

    token = get_jwt_validator().encode_token(
        SEED_ADMIN.actor_id, SEED_ADMIN.role, SEED_ADMIN.display_name
    )
    print()
    print("Development token (admin, 8h):")
    print(f"  Authorization: Bearer {token}")


if __name__ == "__main__":
    main()
