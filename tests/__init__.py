"""Test package for Helix Stream.

Provides coverage for all components with unit tests for isolated logic and
integration tests for workflows.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end workflow tests against the fake services
    - fake_backend.py: FastAPI stand-in for the phenotype, literature and chat services
    - factories.py: Feed record and SSE body builders

No network access is needed: integration tests route HTTPX through
ASGITransport. Leverages pytest with pytest-check for soft assertions.
"""
