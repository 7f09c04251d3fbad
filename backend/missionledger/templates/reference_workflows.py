"""
Reference Workflows

Ready-made workflow graphs for the mission templates shipped with the
platform. They are plain submissions: publish them through
WorkflowService like any designer-built graph.
"""
from typing import Any, Dict, List


ITSM_INCIDENT = {
    "name": "ITSM Incident Workflow",
    "description": "Incident lifecycle from intake to postmortem",
    "states": [
        {"name": "open", "label": "Open", "initial": True},
        {"name": "triaged", "label": "Triaged"},
        {"name": "assigned", "label": "Assigned"},
        {"name": "in_progress", "label": "In Progress"},
        {"name": "resolved", "label": "Resolved"},
        {"name": "postmortem", "label": "Postmortem"},
        {"name": "closed", "label": "Closed", "final": True},
    ],
    "transitions": [
        {"from": "open", "to": "triaged", "label": "Triage", "roles": ["operator", "admin"]},
        {"from": "triaged", "to": "assigned", "label": "Assign", "roles": ["operator", "admin"]},
        {"from": "assigned", "to": "in_progress", "label": "Start Work", "roles": ["operator", "analyst", "admin"]},
        {"from": "in_progress", "to": "resolved", "label": "Resolve", "roles": ["operator", "analyst", "admin"]},
        {"from": "resolved", "to": "postmortem", "label": "Begin Postmortem", "roles": ["supervisor", "admin"]},
        {"from": "postmortem", "to": "closed", "label": "Close", "roles": ["supervisor", "admin"]},
    ],
}

CYBER_COMPLIANCE = {
    "name": "Cyber Compliance Workflow",
    "description": "Control mapping, evidence collection and audit sign-off",
    "states": [
        {"name": "mapping", "label": "Control Mapping", "initial": True},
        {"name": "evidence_collection", "label": "Evidence Collection"},
        {"name": "review", "label": "Review"},
        {"name": "audit_ready", "label": "Audit Ready"},
        {"name": "completed", "label": "Completed", "final": True},
    ],
    "transitions": [
        {"from": "mapping", "to": "evidence_collection", "label": "Begin Evidence Collection", "roles": ["analyst", "admin"]},
        {"from": "evidence_collection", "to": "review", "label": "Submit for Review", "roles": ["analyst", "admin"]},
        {"from": "review", "to": "audit_ready", "label": "Approve", "roles": ["supervisor", "auditor", "admin"]},
        {"from": "review", "to": "evidence_collection", "label": "Return for More Evidence", "roles": ["supervisor", "admin"]},
        {"from": "audit_ready", "to": "completed", "label": "Complete Audit", "roles": ["auditor", "admin"]},
    ],
}

FIU_INVESTIGATION = {
    "name": "FIU/FATF Investigation Workflow",
    "description": "Suspicious transaction report scoring and investigation",
    "states": [
        {"name": "intake", "label": "Intake", "initial": True},
        {"name": "scoring", "label": "STR Scoring"},
        {"name": "investigation", "label": "Investigation"},
        {"name": "escalated", "label": "Escalated"},
        {"name": "case_closed", "label": "Case Closed", "final": True},
    ],
    "transitions": [
        {"from": "intake", "to": "scoring", "label": "Begin Scoring", "roles": ["analyst", "admin"]},
        {"from": "scoring", "to": "investigation", "label": "Investigate", "roles": ["analyst", "admin"]},
        {"from": "investigation", "to": "escalated", "label": "Escalate", "roles": ["analyst", "supervisor", "admin"]},
        {"from": "investigation", "to": "case_closed", "label": "Close Case", "roles": ["supervisor", "admin"]},
        {"from": "escalated", "to": "case_closed", "label": "Resolve & Close", "roles": ["supervisor", "admin"]},
    ],
}

DEFENSE_OPERATIONS = {
    "name": "Defense Operations Workflow",
    "description": "Planning through after-action review",
    "states": [
        {"name": "planning", "label": "Planning", "initial": True},
        {"name": "intel_collection", "label": "Intel Collection"},
        {"name": "threat_assessment", "label": "Threat Assessment"},
        {"name": "force_posture", "label": "Force Posturing"},
        {"name": "execution", "label": "Execution"},
        {"name": "after_action", "label": "After Action Review"},
        {"name": "completed", "label": "Completed", "final": True},
    ],
    "transitions": [
        {"from": "planning", "to": "intel_collection", "label": "Begin Collection", "roles": ["analyst", "operator", "admin"]},
        {"from": "intel_collection", "to": "threat_assessment", "label": "Assess Threats", "roles": ["analyst", "admin"]},
        {"from": "threat_assessment", "to": "force_posture", "label": "Posture Forces", "roles": ["operator", "supervisor", "admin"]},
        {"from": "force_posture", "to": "execution", "label": "Execute", "roles": ["supervisor", "admin"]},
        {"from": "execution", "to": "after_action", "label": "Begin AAR", "roles": ["supervisor", "admin"]},
        {"from": "after_action", "to": "completed", "label": "Complete", "roles": ["supervisor", "admin"]},
        {"from": "threat_assessment", "to": "intel_collection", "label": "Request More Intel", "roles": ["analyst", "supervisor", "admin"]},
    ],
}

REFERENCE_WORKFLOWS: Dict[str, Dict[str, Any]] = {
    "itsm_incident": ITSM_INCIDENT,
    "cyber_compliance": CYBER_COMPLIANCE,
    "fiu_investigation": FIU_INVESTIGATION,
    "defense_operations": DEFENSE_OPERATIONS,
}


def get_reference_workflow(key: str) -> Dict[str, Any]:
    """Deep-enough copy of a reference graph, safe for the caller to mutate"""
    if key not in REFERENCE_WORKFLOWS:
        raise KeyError(f"Unknown reference workflow: {key}")
    source = REFERENCE_WORKFLOWS[key]
    return {
        "name": source["name"],
        "description": source["description"],
        "states": [dict(s) for s in source["states"]],
        "transitions": [dict(t, roles=list(t["roles"])) for t in source["transitions"]],
    }


def list_reference_keys() -> List[str]:
    return list(REFERENCE_WORKFLOWS)
