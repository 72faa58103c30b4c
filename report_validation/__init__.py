"""Report validation pipeline.

Validates machine-generated structured reports by decomposing them into
nodes, scoring each node through a pluggable judge, synthesizing
prioritized feedback and re-validating only what changed until the report
is approved or routed to manual review.
"""

__version__ = "0.1.0"
