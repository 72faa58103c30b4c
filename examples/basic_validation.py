#!/usr/bin/env python3
"""
Basic Report Validation Example

Validates a sample assessment report against Claude as the judge. Without a
content generator the workflow pauses with a feedback plan; the example
prints the plan, applies a canned revision and resumes.

Usage:
    ANTHROPIC_API_KEY=... python examples/basic_validation.py
"""

import asyncio
import copy
import logging

from report_validation.config import settings
from report_validation.graphs import ValidationWorkflow
from report_validation.state import Report, ReportKind, WorkflowStatus


SAMPLE_CONTENT = {
    "scores": {
        "ocean": {
            "raw": {"openness": 72, "conscientiousness": 81, "extraversion": 64},
            "percentile": {"openness": 78, "conscientiousness": 88, "extraversion": 55},
        },
    },
    "insights": [
        "The candidate is basically a natural leader who will thrive anywhere.",
    ],
    "recommendations": [
        "The candidate should lead one planning session with neighbouring teams "
        "each quarter and collect structured feedback afterwards.",
    ],
    "executiveSummary": (
        "The candidate shows a curious, organised working style with steady "
        "collaboration habits."
    ),
    "contextualFactors": {"industry": "logistics", "role": "operations manager"},
}

REVISED_INSIGHT = (
    "The candidate's conscientiousness (88th percentile) suggests reliable follow-through "
    "on planned work; leadership potential should be confirmed in a structured interview."
)


def print_result(result) -> None:
    print(f"\n{'=' * 60}")
    print(f"Status: {result.status.value}")
    print(f"Overall confidence: {result.overall_confidence:.1f}")
    print(f"Iterations: {result.iterations}")
    print("=" * 60)

    for node_id, node_result in sorted(result.node_results.items()):
        flag = " (degraded)" if node_result.degraded else ""
        print(f"  {node_id:<22} {node_result.confidence:5.0f}{flag}")

    if result.feedback_plan and not result.feedback_plan.is_empty():
        print("\nFeedback plan:")
        for item in result.feedback_plan.recommended_sequence:
            print(f"  [{item.priority}] {item.node_id}: {item.specific_action}")

    for action in result.recommended_actions:
        print(f"  - {action}")


async def main():
    """Run the example validation."""
    logging.basicConfig(level=logging.INFO)

    problems = settings.validate(require_api_key=True)
    if problems:
        print(f"Configuration problems: {problems}")
        return

    workflow = ValidationWorkflow()
    report = Report(kind=ReportKind.INDIVIDUAL, content=SAMPLE_CONTENT)

    result = await workflow.run(report)
    print_result(result)

    if result.status == WorkflowStatus.AWAITING_REVISION:
        revised = copy.deepcopy(SAMPLE_CONTENT)
        revised["insights"][0] = REVISED_INSIGHT
        print("\nApplying revision and resuming...")
        result = await workflow.resume(result.workflow_id, revised)
        print_result(result)


if __name__ == "__main__":
    asyncio.run(main())
