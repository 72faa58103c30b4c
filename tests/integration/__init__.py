"""Integration tests for the report validation workflow.

These tests verify end-to-end functionality including:
- Complete workflow execution with a scripted judge
- Selective re-scoring across revision rounds
- Human revision (interrupt and resume)
- Persistence and resume
- Termination, cancellation and judge outages
"""
