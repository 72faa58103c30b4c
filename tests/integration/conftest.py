"""Fixtures for integration tests.

Provides a workflow factory wired to the scripted judge and generator.
"""

import pytest

from report_validation.cache import ValidationCache
from report_validation.graphs import ValidationWorkflow


@pytest.fixture
def make_workflow(judge, config, retry_policy):
    """Factory fixture for workflows sharing the scripted judge.

    Each workflow gets its own in-memory validation cache unless one is
    passed in.
    """
    def _create(generator=None, config_override=None, cache=None, **kwargs) -> ValidationWorkflow:
        return ValidationWorkflow(
            judge=judge,
            generator=generator,
            config=config_override or config,
            cache=cache if cache is not None else ValidationCache(),
            retry_policy=retry_policy,
            **kwargs,
        )
    return _create
