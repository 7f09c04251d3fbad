"""ID Generation Utilities"""
import uuid
from datetime import datetime
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'MSN', 'EVD', 'AUD')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('MSN')
        'MSN-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_definition_id() -> str:
    """Generate workflow definition ID"""
    return generate_id("WFD")


def generate_instance_id() -> str:
    """Generate workflow instance ID"""
    return generate_id("WFI")


def generate_transition_id() -> str:
    """Generate workflow transition record ID"""
    return generate_id("TRN")


def generate_mission_id() -> str:
    """Generate mission ID"""
    return generate_id("MSN")


def generate_task_id() -> str:
    """Generate task ID"""
    return generate_id("TSK")


def generate_evidence_id() -> str:
    """Generate evidence item ID"""
    return generate_id("EVD")


def generate_audit_event_id() -> str:
    """Generate audit event ID"""
    return generate_id("AUD")


def generate_telemetry_event_id() -> str:
    """Generate telemetry event ID"""
    return generate_id("TEL")


def generate_recommendation_id() -> str:
    """Generate recommendation ID"""
    return generate_id("REC")


def generate_outbox_entry_id() -> str:
    """Generate outbox entry ID"""
    return generate_id("OBX")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
