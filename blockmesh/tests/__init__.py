"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Sharding strategies and codecs
    - Block store operations, error mapping and cancellation
    - Paginated enumeration over in-memory, filesystem and S3 backends
    - Configuration, errors and structured logging
"""
