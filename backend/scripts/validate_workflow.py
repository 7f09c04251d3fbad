"""
Validate a workflow definition file without publishing it

Usage:
    python -m scripts.validate_workflow path/to/workflow.json
    python -m scripts.validate_workflow --reference itsm_incident

Exit code is 0 when the graph would publish, 1 otherwise.
"""
import argparse
import json
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from missionledger.domain.errors import WorkflowValidationError
from missionledger.services.workflow_service import WorkflowService
from missionledger.templates import get_reference_workflow, list_reference_keys


def print_issues(title: str, issues: list) -> None:
    if not issues:
        return
    print(f"\n{title} ({len(issues)}):")
    for issue in issues:
        where = f" at {issue['path']}" if issue.get("path") else ""
        print(f"   - [{issue['type']}]{where}: {issue['message']}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a workflow definition")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("path", nargs="?", help="JSON file with name, states and transitions")
    group.add_argument("--reference", choices=list_reference_keys(), help="Validate a shipped reference graph")
    args = parser.parse_args()

    if args.reference:
        submission = get_reference_workflow(args.reference)
    else:
        with open(args.path, encoding="utf-8") as f:
            submission = json.load(f)

    # No storage access happens during validation
    try:
        result = WorkflowService().validate(submission)
    except WorkflowValidationError as e:
        result = {"is_valid": False, **e.details}

    graph = submission if isinstance(submission, dict) else {}
    name = graph.get("name")
    print("=" * 60)
    print(f"WORKFLOW: {name or '<unnamed>'}")
    print("=" * 60)
    print(f"States: {len(graph.get('states') or [])}   "
          f"Transitions: {len(graph.get('transitions') or [])}")

    print_issues("Errors", result.get("errors", []))
    print_issues("Warnings", result.get("warnings", []))

    print()
    print("VALID - ready to publish" if result["is_valid"] else "INVALID - fix the errors above")
    return 0 if result["is_valid"] else 1


if __name__ == "__main__":
    sys.exit(main())
