"""
Dwell-time estimates per goal.
"""

from turnright.core.category_rules import get_goal_rule

DEFAULT_DWELL_MINUTES = 30


def estimate_dwell_minutes(goal: str) -> int:
    """
    Estimate how long a visitor spends at a stop of the given goal.

    Args:
        goal: Goal name or alias (e.g. "Museums", "coffee")

    Returns:
        Dwell time in minutes; 30 for goals outside the rule table
    """
    rule = get_goal_rule(goal)
    if rule is None:
        return DEFAULT_DWELL_MINUTES
    return rule.dwell_minutes
