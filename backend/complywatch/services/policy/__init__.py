"""
ComplyWatch Policy Module

Condition evaluation, remediation actions and the background executor.
"""

from .actions import ACTION_HANDLERS, ActionContext, parse_action_type, run_action
from .conditions import compare_values, evaluate_conditions, group_conditions
from .evaluator import PolicyEvaluationEngine
from .executor import PolicyActionExecutor
from .remediation import DatabaseRemediationBackend, RemediationBackend, WebhookAlertNotifier

__all__ = [
    'ACTION_HANDLERS',
    'ActionContext',
    'parse_action_type',
    'run_action',
    'compare_values',
    'evaluate_conditions',
    'group_conditions',
    'PolicyEvaluationEngine',
    'PolicyActionExecutor',
    'RemediationBackend',
    'DatabaseRemediationBackend',
    'WebhookAlertNotifier',
]
