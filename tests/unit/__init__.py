"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - streaming/: Line framing, record decoding and the bulk feed loader
    - sessions/: Session result cache eviction and recency
    - ranking/: Combined scoring, gene ranking and the AI summary
    - chat/: SSE event decoding and the turn state machine
    - config: Environment loading and validation

Follows single responsibility per test function. Leverages pytest-check for
multiple assertions per test.
"""
