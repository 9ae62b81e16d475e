"""
Mockzilla Workflow Processor

Runs one request through a matched transition:

    LOAD -> CHECK -> APPLY -> PERSIST -> RENDER

- LOAD: read the scenario's {state, tables} document (created empty on
  first use)
- CHECK: evaluate the transition's conditions; on failure answer 400 and
  stop without touching stored state
- APPLY: run effects against the in-memory context
- PERSIST: overwrite the stored document with the mutated context
- RENDER: build the response from the transition's response template

Requests for the same scenario are serialized with a per-scenario lock
held from LOAD through PERSIST, so concurrent read-modify-write cycles
cannot lose updates. Different scenarios run independently.
"""

import asyncio
import logging
import weakref
from typing import Dict, Any, Optional

from ..common.utils import normalize_headers
from .conditions import matches
from .effects import apply_effects
from .errors import ConditionFailure, RoutingMiss, WorkflowProcessingError
from .models import (
    MatchContext,
    RequestInput,
    ScenarioStateDocument,
    Transition,
    WorkflowRequest,
    WorkflowResponse
)
from .repository import WorkflowRepository
from .router import TransitionRouter
from .state_store import InMemoryStateStore, ScenarioStateStore
from .templater import render_response


class ScenarioLocks:
    """
    Lazily-created asyncio locks keyed by scenario id.

    Entries are weak: a lock disappears once no coroutine holds or waits
    on it, so arbitrary scenario ids do not accumulate.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, scenario_id: str) -> asyncio.Lock:
        lock = self._locks.get(scenario_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scenario_id] = lock
        return lock


class WorkflowProcessor:
    """
    Workflow engine entry point.

    Example:
        processor = WorkflowProcessor(repository, InMemoryStateStore())
        response = await processor.handle(
            WorkflowRequest(method='POST', path='/cart/add', body={'sku': 'A'}),
            scenario_id='shop'
        )
        print(response.status, response.body)
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        store: Optional[ScenarioStateStore] = None,
        router: Optional[TransitionRouter] = None
    ):
        """
        Initialize processor.

        Args:
            repository: Transition storage
            store: Scenario state store (in-memory if None)
            router: Optional router (built from repository if None)
        """
        self.repository = repository
        self.store = store or InMemoryStateStore()
        self.router = router or TransitionRouter(repository)
        self.locks = ScenarioLocks()
        self.logger = logging.getLogger("mockzilla.workflow")

    async def _load(self, scenario_id: str) -> ScenarioStateDocument:
        document = await self.store.get(scenario_id)
        if document is None:
            document = ScenarioStateDocument()
            await self.store.upsert(scenario_id, document)
            self.logger.debug(f"Initialized state for scenario '{scenario_id}'")
        return document

    async def process(
        self,
        transition: Transition,
        params: Dict[str, str],
        body: Any = None,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> WorkflowResponse:
        """
        Process a request against an already-routed transition.

        Args:
            transition: Matched transition
            params: Path parameters bound by the router
            body: Parsed request body (or raw text)
            query: Query parameters
            headers: Request headers (lower-cased keys)

        Returns:
            WorkflowResponse (400 when conditions fail)

        Raises:
            WorkflowProcessingError: If applying effects or rendering fails
        """
        scenario_id = transition.scenario_id

        async with self.locks.lock_for(scenario_id):
            document = await self._load(scenario_id)
            context = MatchContext(
                input=RequestInput(
                    body={} if body is None else body,
                    query=query or {},
                    params=params or {},
                    headers=headers or {}
                ),
                state=document.state,
                tables=document.tables
            )

            if not matches(transition.condition_set, context):
                self.logger.info(
                    f"Conditions not met for transition {transition.id} "
                    f"({transition.method} {transition.path}) in '{scenario_id}'"
                )
                failure = ConditionFailure(transition.conditions)
                return WorkflowResponse(
                    status=400,
                    headers={},
                    body=failure.to_dict(),
                    condition_failure=True
                )

            try:
                apply_effects(transition.effect_list, context)
            except Exception as e:
                raise WorkflowProcessingError(
                    f"Failed to apply effects of transition {transition.id}: {e}"
                ) from e

            try:
                await self.store.upsert(
                    scenario_id,
                    ScenarioStateDocument(state=context.state, tables=context.tables)
                )
            except (TypeError, ValueError) as e:
                raise WorkflowProcessingError(
                    f"Failed to persist state of scenario '{scenario_id}': {e}"
                ) from e

        try:
            return render_response(transition.response, context)
        except Exception as e:
            raise WorkflowProcessingError(
                f"Failed to render response of transition {transition.id}: {e}"
            ) from e

    async def handle(self, request: WorkflowRequest, scenario_id: Optional[str] = None) -> WorkflowResponse:
        """
        Route and process a request.

        Args:
            request: Inbound request descriptor
            scenario_id: Restrict routing to one scenario (None searches all)

        Raises:
            RoutingMiss: If no transition matches path and method
            WorkflowProcessingError: If applying effects or rendering fails
        """
        match = self.router.find_transition(request.path, request.method, scenario_id=scenario_id)
        if match is None:
            raise RoutingMiss(request.path, request.method)

        self.logger.debug(
            f"Routed {request.method} {request.path} to transition {match.transition.id} "
            f"(params: {match.params})"
        )
        return await self.process(
            match.transition,
            match.params,
            body=request.body,
            query=request.query,
            headers=request.headers
        )

    async def simulate(
        self,
        scenario_id: str,
        path: str,
        method: str,
        body: Any = None,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Test a request against a scenario using condition-aware routing.

        The first candidate whose route and conditions match is processed
        for real, so its effects are persisted.

        Returns:
            {"success": True, "transitionId", "transitionName", "response"}
            or {"success": False, "message"}
        """
        full_path = path if path.startswith('/') else f"/{path}"
        body = body if body is not None else {}
        query = query or {}
        normalized_headers = normalize_headers(headers or {})

        document = await self.store.get(scenario_id) or ScenarioStateDocument()
        match = self.router.find_transition_with_conditions(
            scenario_id,
            full_path,
            method,
            document,
            RequestInput(body=body, query=query, headers=normalized_headers)
        )

        if match is None:
            return {'success': False, 'message': 'No matching transition found'}

        response = await self.process(match.transition, match.params, body, query, normalized_headers)
        return {
            'success': True,
            'transitionId': match.transition.id,
            'transitionName': match.transition.name,
            'response': response.to_dict()
        }

    async def inspect_state(self, scenario_id: str) -> Dict[str, Any]:
        """Return the scenario's state document (empty if none exists)."""
        document = await self.store.get(scenario_id) or ScenarioStateDocument()
        return document.to_dict()

    async def initialize_state(
        self,
        scenario_id: str,
        state: Optional[Dict[str, Any]] = None,
        tables: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Seed a scenario's state document if it has none yet.

        Returns:
            True if a document was created, False if one already existed
        """
        async with self.locks.lock_for(scenario_id):
            return await self.store.insert_if_absent(
                scenario_id,
                ScenarioStateDocument(state=state or {}, tables=tables or {})
            )

    async def reset_state(self, scenario_id: str):
        """Delete a scenario's state document. Safe to call when none exists."""
        async with self.locks.lock_for(scenario_id):
            await self.store.delete(scenario_id)
        self.logger.info(f"State for scenario '{scenario_id}' has been reset")
