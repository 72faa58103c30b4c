"""Validation workflow graph assembly.

This module provides the factory function for the report validation graph
and ValidationWorkflow, the entry point callers use to run, resume and
cancel a workflow.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import END, START, StateGraph
from langgraph.types import Command

from report_validation.cache import ValidationCache, create_cache_backend
from report_validation.config import ValidationConfig
from report_validation.errors import RetryPolicy, create_pipeline_error, log_error_with_context
from report_validation.feedback import FeedbackSynthesizer
from report_validation.graphs.routers import (
    route_after_decide,
    route_after_extract,
    route_after_feedback,
    route_after_reevaluate,
    route_after_revise,
    route_after_score,
)
from report_validation.memory import get_memory_saver
from report_validation.nodes import (
    ReportGenerator,
    ValidationServices,
    make_decide_node,
    make_extract_node,
    make_feedback_node,
    make_manual_review_node,
    make_reevaluate_node,
    make_revise_node,
    make_score_node,
)
from report_validation.reevaluation import build_node_insights
from report_validation.scoring import AnthropicJudge, ConfidenceScorer, JudgeOracle
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.models import Report, WorkflowResult
from report_validation.state.schema import ValidationState, create_initial_state

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# All nodes in workflow order
WORKFLOW_NODES = [
    "extract",
    "score",
    "decide",
    "feedback",
    "revise",
    "reevaluate",
    "manual_review",
]

# Graph steps outside the feedback loop, and steps per loop iteration
BASE_STEPS = 10
STEPS_PER_ITERATION = 4


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class WorkflowConfig:
    """Configuration for validation workflow compilation.

    Attributes:
        checkpointer: Checkpoint saver for persistence (required for
            resuming a workflow paused for human revision)
        interrupt_before: Nodes to pause before execution
        interrupt_after: Nodes to pause after execution
        debug: Enable debug mode on the compiled graph
    """
    checkpointer: BaseCheckpointSaver | None = None
    interrupt_before: list[str] = field(default_factory=list)
    interrupt_after: list[str] = field(default_factory=list)
    debug: bool = False


def recursion_limit(max_iterations: int) -> int:
    """Graph step bound for a workflow allowed max_iterations feedback rounds."""
    return BASE_STEPS + STEPS_PER_ITERATION * (max_iterations + 1)


# =============================================================================
# Graph Factory
# =============================================================================


def create_validation_workflow(
    services: ValidationServices,
    config: WorkflowConfig | None = None,
    checkpointer: BaseCheckpointSaver | None = None,
):
    """
    Create the report validation graph.

    EXTRACT → SCORE → DECIDE → [approved] → END
                         ↓
                    FEEDBACK → REVISE → REEVALUATE → DECIDE (loop)
                         ↓
                    MANUAL_REVIEW → END   (budget exhausted, stagnation,
                                           nothing extracted)

    Args:
        services: Scorer, synthesizer, controller and generator for the nodes
        config: Workflow configuration (optional, uses defaults if not provided)
        checkpointer: Override checkpointer from config

    Returns:
        Compiled StateGraph ready for execution

    Example:
        services = ValidationServices(config=ValidationConfig(), scorer=scorer)
        graph = create_validation_workflow(
            services,
            WorkflowConfig(checkpointer=get_memory_saver()),
        )
    """
    if config is None:
        config = WorkflowConfig()

    if checkpointer is not None:
        config.checkpointer = checkpointer

    workflow = StateGraph(ValidationState)

    # ==========================================================================
    # Nodes
    # ==========================================================================

    workflow.add_node("extract", make_extract_node(services))
    workflow.add_node("score", make_score_node(services))
    workflow.add_node("decide", make_decide_node(services))
    workflow.add_node("feedback", make_feedback_node(services))
    workflow.add_node("revise", make_revise_node(services))
    workflow.add_node("reevaluate", make_reevaluate_node(services))
    workflow.add_node("manual_review", make_manual_review_node(services))

    # ==========================================================================
    # Edges
    # ==========================================================================

    workflow.add_edge(START, "extract")

    workflow.add_conditional_edges(
        "extract",
        route_after_extract,
        ["score", "manual_review", END]
    )

    workflow.add_conditional_edges(
        "score",
        route_after_score,
        ["decide", END]
    )

    # Decide -> END (approved) or Feedback (revise) or Manual Review (stop)
    workflow.add_conditional_edges(
        "decide",
        route_after_decide,
        ["feedback", "manual_review", END]
    )

    workflow.add_conditional_edges(
        "feedback",
        route_after_feedback,
        ["revise", "manual_review", END]
    )

    workflow.add_conditional_edges(
        "revise",
        route_after_revise,
        ["reevaluate", "manual_review", END]
    )

    # Reevaluate -> Decide (revision loop)
    workflow.add_conditional_edges(
        "reevaluate",
        route_after_reevaluate,
        ["decide", "manual_review", END]
    )

    workflow.add_edge("manual_review", END)

    # ==========================================================================
    # Compile with configuration
    # ==========================================================================

    compile_kwargs: dict[str, Any] = {}

    if config.checkpointer is not None:
        compile_kwargs["checkpointer"] = config.checkpointer

    compile_kwargs["interrupt_before"] = config.interrupt_before or []
    compile_kwargs["interrupt_after"] = config.interrupt_after or []

    if config.debug:
        compile_kwargs["debug"] = True

    logger.info(f"Compiling validation workflow with config: {list(compile_kwargs.keys())}")

    return workflow.compile(**compile_kwargs)


# =============================================================================
# Results
# =============================================================================


def build_workflow_result(
    state: ValidationState,
    confidence_threshold: float,
    status: WorkflowStatus | None = None,
) -> WorkflowResult:
    """
    Build the caller-facing result from a final (or paused) state.

    Args:
        state: Graph state values
        confidence_threshold: Threshold used for per-node insights
        status: Overrides the state status (used for paused workflows)

    Returns:
        WorkflowResult
    """
    review = state.get("manual_review")
    revalidations = state.get("revalidation_history", [])

    if review is not None:
        actions = list(review.recommended_actions)
    elif revalidations:
        actions = list(revalidations[-1].next_steps)
    else:
        actions = []

    return WorkflowResult(
        workflow_id=state["workflow_id"],
        status=status or state.get("status", WorkflowStatus.INITIALIZED),
        decision=state.get("decision"),
        overall_confidence=state.get("overall_confidence", 0.0),
        iterations=state.get("iteration", 0),
        node_results=state.get("node_results", {}),
        feedback_plan=state.get("feedback_plan"),
        revalidation_history=revalidations,
        iteration_history=state.get("iteration_history", []),
        extraction_warnings=state.get("extraction_warnings", []),
        errors=state.get("errors", []),
        blockers=state.get("blockers", []),
        node_insights=build_node_insights(state.get("node_history", {}), confidence_threshold),
        manual_review=review,
        recommended_actions=actions,
    )


# =============================================================================
# Workflow Entry Point
# =============================================================================


class ValidationWorkflow:
    """Runs report validation workflows.

    Args:
        judge: Judge oracle (defaults to the Anthropic judge)
        generator: Content generator that applies feedback plans; without one
            the workflow pauses for a human revision and is continued with
            resume()
        config: Validation configuration (defaults to environment settings)
        cache: Validation cache, shareable across workflows (a fresh one is
            created when omitted)
        workflow_config: Graph compilation options
        retry_policy: Retry policy for judge calls
    """

    def __init__(
        self,
        judge: JudgeOracle | None = None,
        generator: ReportGenerator | None = None,
        config: ValidationConfig | None = None,
        cache: ValidationCache | None = None,
        workflow_config: WorkflowConfig | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.config = config or ValidationConfig.from_settings()
        problems = self.config.validate()
        if problems:
            raise ValueError(f"Invalid validation configuration: {'; '.join(problems)}")

        if judge is None:
            judge = AnthropicJudge()

        self.cache = cache if cache is not None else ValidationCache(create_cache_backend())
        self.scorer = ConfidenceScorer(
            judge,
            cache=self.cache,
            config=self.config,
            retry_policy=retry_policy,
        )
        self.services = ValidationServices(
            config=self.config,
            scorer=self.scorer,
            synthesizer=FeedbackSynthesizer(),
            generator=generator,
        )

        self.workflow_config = workflow_config or WorkflowConfig()
        if generator is None and self.workflow_config.checkpointer is None:
            self.workflow_config.checkpointer = get_memory_saver()

        self.graph = create_validation_workflow(self.services, self.workflow_config)

    def cancel(self, workflow_id: str) -> None:
        """
        Cancel one workflow at its next phase boundary.

        A dispatched scoring batch completes first. Other workflows run by
        this instance are unaffected, and a workflow id cancelled before
        run() starts is cancelled before extraction.
        """
        logger.warning(f"Cancellation requested for workflow {workflow_id}")
        self.services.cancel(workflow_id)

    def is_cancelled(self, workflow_id: str) -> bool:
        return self.services.is_cancelled(workflow_id)

    def _run_config(self, workflow_id: str) -> dict[str, Any]:
        return {
            "configurable": {"thread_id": workflow_id},
            "recursion_limit": recursion_limit(self.config.max_iterations),
        }

    async def run(self, report: Report) -> WorkflowResult:
        """
        Validate a report.

        Args:
            report: Report supplied by the generator

        Returns:
            WorkflowResult; status is AWAITING_REVISION when the workflow
            paused for a human revision.
        """
        state = create_initial_state(report, max_iterations=self.config.max_iterations)
        logger.info(f"Starting validation workflow {report.workflow_id}")
        return await self._invoke(state, report.workflow_id)

    async def resume(self, workflow_id: str, revised_report: Report | dict[str, Any]) -> WorkflowResult:
        """
        Continue a workflow paused for revision.

        Args:
            workflow_id: Id of the paused workflow
            revised_report: Revised Report, or its content as a dict

        Returns:
            WorkflowResult
        """
        if self.workflow_config.checkpointer is None:
            raise ValueError("Resuming a workflow requires a checkpointer")
        logger.info(f"Resuming validation workflow {workflow_id}")
        return await self._invoke(Command(resume=revised_report), workflow_id)

    async def _invoke(self, graph_input: Any, workflow_id: str) -> WorkflowResult:
        run_config = self._run_config(workflow_id)

        try:
            final_state = await self.graph.ainvoke(graph_input, run_config)
        except Exception as e:
            log_error_with_context(e, phase="workflow", context={"workflow_id": workflow_id})
            return await self._failed_result(workflow_id, e)

        if self.workflow_config.checkpointer is not None:
            snapshot = await self.graph.aget_state(run_config)
            if snapshot.next:
                logger.info(f"Workflow {workflow_id} paused before {list(snapshot.next)}")
                return build_workflow_result(
                    snapshot.values,
                    self.config.confidence_threshold,
                    status=WorkflowStatus.AWAITING_REVISION,
                )
            final_state = snapshot.values

        result = build_workflow_result(final_state, self.config.confidence_threshold)
        logger.info(
            f"Workflow {workflow_id} finished: status={result.status.value}, "
            f"confidence={result.overall_confidence:.1f}, iterations={result.iterations}"
        )
        return result

    async def _failed_result(self, workflow_id: str, error: Exception) -> WorkflowResult:
        pipeline_error = create_pipeline_error(error, phase="workflow", kind=FailureKind.INTERNAL_ERROR)
        state: ValidationState = {"workflow_id": workflow_id, "errors": [pipeline_error]}

        if self.workflow_config.checkpointer is not None:
            snapshot = await self.graph.aget_state(self._run_config(workflow_id))
            if snapshot.values:
                state = {**snapshot.values, "errors": [*snapshot.values.get("errors", []), pipeline_error]}

        return build_workflow_result(state, self.config.confidence_threshold, status=WorkflowStatus.FAILED)
