"""
Backend Scripts Module

Utility scripts for local development.

Available scripts:
    - seed_data.py: Publishes the reference workflows and creates demo missions
    - validate_workflow.py: Validates a workflow definition JSON file offline

Usage:
    python -m scripts.seed_data
    python -m scripts.validate_workflow path/to/workflow.json
"""
