"""
Job Scheduler Test Suite.

Following TEST_STRATEGY.md exactly:
- Invariant tests (INV-001 through INV-006)
- Persistence invariant tests (PERS-001 through PERS-005)
- State transition tests (ST-*)
- Execution path tests (EP-*)
- Recovery scenario tests (REC-*)
- Webhook compatibility tests (WH-*)
"""
