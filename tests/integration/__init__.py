"""Integration tests for components working together as a system.

No mocks for core functionality - tests real interactions.

Coverage:
    - HelixClient feeds, compute triggers and chat stream over real HTTP
    - Result stores across session changes, failures and concurrent requests
    - Chat turns streamed into per-session transcripts
    - The analysis workspace from phenotype matching to ranked literature

Requests go to an in-process FastAPI fake backend through ASGITransport.
"""
