"""
Mockzilla Transition Router

Selects the transition matching an inbound method + path.

Two routing modes exist and are kept apart:
- find_transition: condition-blind. Exact path first, then ":param"
  patterns in creation order. Conditions are checked later by the
  processor, which answers 400 when they fail.
- find_transition_with_conditions: used by simulation. Candidates whose
  conditions fail are skipped and the next one (by creation order) is
  tried, first among exact paths and then among patterns.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, List

from .conditions import matches
from .models import MatchContext, RequestInput, ScenarioStateDocument, Transition
from .repository import WorkflowRepository


@dataclass
class RouteMatch:
    """A selected transition and the path parameters bound by its pattern."""

    transition: Transition
    params: Dict[str, str] = field(default_factory=dict)


def match_route(pattern: str, actual: str) -> Optional[Dict[str, str]]:
    """
    Match a request path against a transition path pattern.

    Args:
        pattern: Transition path (e.g. "/orders/:id")
        actual: Request path (e.g. "/orders/42")

    Returns:
        Bound parameters (e.g. {"id": "42"}), or None if no match
    """
    pattern_parts = pattern.split('/')
    actual_parts = actual.split('/')
    if len(pattern_parts) != len(actual_parts):
        return None

    params = {}
    for pattern_part, actual_part in zip(pattern_parts, actual_parts):
        if pattern_part.startswith(':'):
            params[pattern_part[1:]] = actual_part
        elif pattern_part != actual_part:
            return None

    return params


class TransitionRouter:
    """
    Route requests to transitions stored in a WorkflowRepository.

    Example:
        router = TransitionRouter(repository)
        match = router.find_transition('/orders/42', 'GET', scenario_id='shop')
        if match:
            print(match.transition.name, match.params)
    """

    def __init__(self, repository: WorkflowRepository):
        self.repository = repository

    def _exact_candidates(self, path: str, method: str, scenario_id: Optional[str]) -> List[Transition]:
        if scenario_id is None:
            return self.repository.find_all_by_exact_path_method(path, method)
        return self.repository.find_by_exact_path_method(scenario_id, path, method)

    def _method_candidates(self, method: str, scenario_id: Optional[str]) -> List[Transition]:
        if scenario_id is None:
            return self.repository.find_all_by_method(method)
        return self.repository.find_by_scenario_and_method(scenario_id, method)

    def find_transition(
        self,
        path: str,
        method: str,
        scenario_id: Optional[str] = None
    ) -> Optional[RouteMatch]:
        """
        Find the transition for a request, ignoring conditions.

        Args:
            path: Request path
            method: HTTP method
            scenario_id: Restrict to one scenario (None searches all)

        Returns:
            RouteMatch, or None when nothing matches
        """
        method = method.upper()

        exact = self._exact_candidates(path, method, scenario_id)
        if exact:
            return RouteMatch(transition=exact[0])

        for transition in self._method_candidates(method, scenario_id):
            params = match_route(transition.path, path)
            if params is not None:
                return RouteMatch(transition=transition, params=params)

        return None

    def find_transition_with_conditions(
        self,
        scenario_id: str,
        path: str,
        method: str,
        document: ScenarioStateDocument,
        request_input: RequestInput
    ) -> Optional[RouteMatch]:
        """
        Find the first transition whose route AND conditions match.

        Args:
            scenario_id: Scenario to search
            path: Request path
            method: HTTP method
            document: Current scenario state used to evaluate conditions
            request_input: Request body/query/headers (params are bound
                per candidate)

        Returns:
            RouteMatch, or None when no candidate passes
        """
        method = method.upper()

        def context_for(params: Dict[str, str]) -> MatchContext:
            return MatchContext(
                input=RequestInput(
                    body=request_input.body,
                    query=request_input.query,
                    params=params,
                    headers=request_input.headers
                ),
                state=document.state,
                tables=document.tables
            )

        for transition in self.repository.find_by_exact_path_method(scenario_id, path, method):
            if matches(transition.condition_set, context_for({})):
                return RouteMatch(transition=transition)

        for transition in self.repository.find_by_scenario_and_method(scenario_id, method):
            params = match_route(transition.path, path)
            if params is None:
                continue
            if matches(transition.condition_set, context_for(params)):
                return RouteMatch(transition=transition, params=params)

        return None
