"""
Job Scheduler Test Suite.

- Dependency validation and cycle detection
- Trigger registry install/remove semantics
- Execution pipeline: readiness gate, retry loop, records, webhooks
- Orchestrator lifecycle operations and org scoping
- Startup reconciliation
"""
