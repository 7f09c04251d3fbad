"""
Test Suite

Structure:
    tests/
    ├── conftest.py         # mongomock database, actors, published workflows
    ├── unit/
    │   ├── test_engine/    # Authorizer, instance machine, outbox relay
    │   ├── test_services/  # Registry, ledger, export, probes, recommendations
    │   └── test_utils/     # Hashing, time, tokens
    └── integration/
        └── test_api/       # HTTP endpoints through FastAPI's TestClient

To run tests:
    pytest backend/tests
"""
