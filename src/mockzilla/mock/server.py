"""
Mockzilla Workflow Server

FastAPI-based HTTP server that exposes workflow scenarios as a stateful
mock backend.

Features:
- Scenario-scoped execution: /api/workflow/exec/{scenario}/{path}
- Global execution: /api/workflow/{path}
- Admin API for scenarios, transitions, state, simulation, export/import
- Metrics and logging
"""

from __future__ import annotations  # Enable forward references for type hints

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

import uvicorn
import yaml
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..common.utils import parse_request_body
from ..workflow import (
    WorkflowRepository,
    WorkflowProcessor,
    WorkflowRequest,
    InMemoryStateStore,
    JsonFileStateStore,
    ScenarioStateStore,
    RoutingMiss,
    WorkflowProcessingError,
    ValidationError,
    NotFoundError,
    ConflictError
)

WORKFLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@dataclass
class ServerConfig:
    """Configuration for the workflow server."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"
    verbose_mode: bool = False  # Print one line per workflow request

    # Routing
    api_prefix: str = "/api/workflow"

    # Storage
    workflow_file: Optional[str] = None  # JSON/YAML scenarios + transitions
    autosave: bool = False  # Write management changes back to workflow_file
    state_dir: Optional[str] = None  # Persist scenario state as JSON files (None = in-memory)

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ServerConfig':
        """Load configuration from a YAML file (unknown keys are rejected)."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown config keys in {yaml_path}: {sorted(unknown)}")

        return cls(**data)


@dataclass
class ServerMetrics:
    """Track workflow server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    condition_failures: int = 0
    errors: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'condition_failures': self.condition_failures,
            'errors': self.errors,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse(content={'error': message, **extra}, status_code=status_code)


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    parsed = parse_request_body(raw)
    if not isinstance(parsed, dict):
        raise ValidationError("Request body must be a JSON object")
    return parsed


class WorkflowServer:
    """
    FastAPI-based server for workflow scenarios.

    Example:
        # Load workflows and start server
        server = WorkflowServer(ServerConfig(workflow_file='workflows.yaml'))
        server.start(host='0.0.0.0', port=8080)

        # Embed in tests
        client = TestClient(WorkflowServer().app)
        client.post('/api/workflow/exec/auth-flow/login')
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        repository: Optional[WorkflowRepository] = None,
        store: Optional[ScenarioStateStore] = None
    ):
        """
        Initialize workflow server.

        Args:
            config: Optional ServerConfig for server behavior
            repository: Optional WorkflowRepository (built from config if None)
            store: Optional state store (built from config if None)
        """
        self.config = config or ServerConfig()
        self.metrics = ServerMetrics()

        # Setup logging first (before loading workflows)
        self.logger = logging.getLogger("mockzilla.mock")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.repository = repository or WorkflowRepository(
            workflow_file=self.config.workflow_file,
            autosave=self.config.autosave
        )
        if store is None:
            store = JsonFileStateStore(self.config.state_dir) if self.config.state_dir else InMemoryStateStore()
        self.processor = WorkflowProcessor(self.repository, store)

        # Setup FastAPI app
        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="Mockzilla Workflow Server",
            description="Stateful mock HTTP server driven by workflow scenarios",
            version="1.0.0"
        )

        @app.exception_handler(ValidationError)
        async def validation_error_handler(request: Request, exc: ValidationError):
            return _error(str(exc), 400)

        @app.exception_handler(NotFoundError)
        async def not_found_handler(request: Request, exc: NotFoundError):
            return _error(str(exc), 404)

        @app.exception_handler(ConflictError)
        async def conflict_handler(request: Request, exc: ConflictError):
            return _error(str(exc), 409)

        if self.config.admin_enabled:
            self._register_admin_routes(app)

        prefix = self.config.api_prefix

        # Scenario-scoped execution must be registered before the global route
        @app.api_route(f"{prefix}/exec/{{scenario}}/{{path:path}}", methods=WORKFLOW_METHODS)
        async def exec_scenario_request(request: Request, scenario: str, path: str):
            """Route within one scenario and process the request."""
            return await self._handle_request(request, f"/{path}", scenario_id=scenario)

        @app.api_route(f"{prefix}/{{path:path}}", methods=WORKFLOW_METHODS)
        async def workflow_request(request: Request, path: str):
            """Route across all scenarios and process the request."""
            return await self._handle_request(request, f"/{path}")

        return app

    def _register_admin_routes(self, app: FastAPI):
        """Register management endpoints under the admin prefix."""
        admin = self.config.admin_prefix
        repo = self.repository
        processor = self.processor

        @app.get(f"{admin}/metrics")
        async def get_metrics():
            """Get server metrics."""
            return JSONResponse(content=self.metrics.to_dict())

        @app.delete(f"{admin}/metrics")
        async def reset_metrics():
            """Reset metrics."""
            self.metrics = ServerMetrics()
            return JSONResponse(content={'status': 'reset'})

        # --- Scenarios ---

        @app.get(f"{admin}/scenarios")
        async def list_scenarios(page: Optional[int] = None, limit: Optional[int] = None):
            """List scenarios with transition counts (paged when page/limit given)."""
            if page is None and limit is None:
                return JSONResponse(content=repo.list_scenarios())
            return JSONResponse(content=repo.list_scenarios_page(page or 1, limit or 10))

        @app.post(f"{admin}/scenarios")
        async def create_scenario(request: Request):
            """Create a scenario; its id is the slug of its name."""
            body = await _json_body(request)
            scenario = repo.create_scenario(body.get('name'), body.get('description'))
            return JSONResponse(content=scenario.to_dict(), status_code=201)

        @app.get(f"{admin}/scenarios/{{slug}}")
        async def get_scenario(slug: str):
            return JSONResponse(content=repo.get_scenario(slug).to_dict())

        @app.put(f"{admin}/scenarios/{{slug}}")
        async def update_scenario(slug: str, request: Request):
            body = await _json_body(request)
            scenario = repo.update_scenario(slug, body.get('name'), body.get('description'))
            return JSONResponse(content=scenario.to_dict())

        @app.delete(f"{admin}/scenarios/{{slug}}")
        async def delete_scenario(slug: str):
            """Delete a scenario and its transitions."""
            repo.delete_scenario(slug)
            return JSONResponse(content={'message': 'Scenario deleted successfully'})

        # --- Transitions ---

        @app.get(f"{admin}/transitions")
        async def list_transitions(scenarioId: Optional[str] = None):
            if not scenarioId:
                return _error('scenarioId is required', 400)
            return JSONResponse(content=[t.to_dict() for t in repo.list_transitions(scenarioId)])

        @app.post(f"{admin}/transitions")
        async def create_transition(request: Request):
            body = await _json_body(request)
            transition = repo.create_transition(body)
            self.logger.info(f"Created transition: {transition.method} {transition.path} in '{transition.scenario_id}'")
            return JSONResponse(content=transition.to_dict(), status_code=201)

        @app.get(f"{admin}/transitions/{{transition_id}}")
        async def get_transition(transition_id: int):
            return JSONResponse(content=repo.get_transition(transition_id).to_dict())

        @app.put(f"{admin}/transitions/{{transition_id}}")
        async def replace_transition(transition_id: int, request: Request):
            """Replace a transition; path, method and response are required."""
            body = await _json_body(request)
            if not body.get('path') or not body.get('method') or not body.get('response'):
                return _error('Missing required fields: path, method, response', 400)
            transition = repo.update_transition(transition_id, {
                'name': body.get('name') or '',
                'path': body['path'],
                'method': body['method'],
                'conditions': body.get('conditions') or {},
                'effects': body.get('effects') or [],
                'response': body['response'],
                'meta': body.get('meta') or {}
            })
            return JSONResponse(content=transition.to_dict())

        @app.patch(f"{admin}/transitions/{{transition_id}}")
        async def patch_transition(transition_id: int, request: Request):
            """Update only the fields present in the body."""
            body = await _json_body(request)
            return JSONResponse(content=repo.update_transition(transition_id, body).to_dict())

        @app.delete(f"{admin}/transitions/{{transition_id}}")
        async def delete_transition(transition_id: int):
            repo.delete_transition(transition_id)
            return JSONResponse(content={'success': True, 'id': transition_id})

        # --- State ---

        @app.get(f"{admin}/state/{{scenario}}")
        async def get_state(scenario: str):
            data = await processor.inspect_state(scenario)
            return JSONResponse(content={'scenarioId': scenario, 'data': data})

        @app.post(f"{admin}/state/{{scenario}}")
        async def initialize_state(scenario: str, request: Request):
            """Seed state for a scenario; existing state is left untouched."""
            body = await _json_body(request)
            created = await processor.initialize_state(scenario, body.get('state'), body.get('tables'))
            return JSONResponse(content={
                'success': True,
                'scenarioId': scenario,
                'created': created,
                'message': 'Scenario state initialized'
            })

        @app.delete(f"{admin}/state/{{scenario}}")
        async def reset_state(scenario: str):
            await processor.reset_state(scenario)
            return JSONResponse(content={
                'success': True,
                'message': f"State for scenario '{scenario}' has been reset."
            })

        # --- Simulation ---

        @app.post(f"{admin}/test")
        async def test_workflow(request: Request):
            """
            Simulate a request within a scenario using condition-aware routing.

            POST body: {"scenarioId", "path", "method", "body"?, "query"?, "headers"?}
            """
            body = await _json_body(request)
            if not body.get('scenarioId') or not body.get('path') or not body.get('method'):
                return _error('Missing required fields: scenarioId, path, method', 400)
            try:
                result = await processor.simulate(
                    body['scenarioId'],
                    body['path'],
                    body['method'],
                    body=body.get('body'),
                    query=body.get('query'),
                    headers=body.get('headers')
                )
            except WorkflowProcessingError:
                self.logger.exception(f"Simulation failed for scenario '{body['scenarioId']}'")
                return _error('Internal workflow processing error', 500)
            return JSONResponse(content=result)

        # --- Export / import ---

        @app.get(f"{admin}/export")
        async def export_workflows(scenarioId: Optional[str] = None):
            data = repo.export_workflows(scenarioId)
            filename = f"workflows_export_{datetime.now().strftime('%Y-%m-%d')}.json"
            return JSONResponse(
                content=data,
                headers={'Content-Disposition': f'attachment; filename="{filename}"'}
            )

        @app.post(f"{admin}/import")
        async def import_workflows(request: Request):
            body = await _json_body(request)
            return JSONResponse(content=repo.import_workflows(body))

    async def _handle_request(self, request: Request, path: str, scenario_id: Optional[str] = None):
        """
        Handle an incoming workflow request.

        Args:
            request: FastAPI Request object
            path: Request path relative to the workflow prefix
            scenario_id: Scenario to route within (None routes globally)

        Returns:
            JSONResponse rendered from the matched transition
        """
        start_time = time.time()
        self.metrics.total_requests += 1

        workflow_request = WorkflowRequest(
            method=request.method,
            path=path,
            body=parse_request_body(await request.body()),
            query=dict(request.query_params),
            headers={k.lower(): v for k, v in request.headers.items()}
        )

        self.logger.debug(f"Incoming: {workflow_request.method} {path} (scenario: {scenario_id or '*'})")

        try:
            result = await self.processor.handle(workflow_request, scenario_id=scenario_id)
        except RoutingMiss as e:
            self.metrics.unmatched_requests += 1
            self.logger.warning(f"No transition matched {e.method} {e.path}")
            self._log_verbose(workflow_request, 404, start_time)
            return JSONResponse(content=e.to_dict(), status_code=404)
        except WorkflowProcessingError:
            self.metrics.errors += 1
            self.logger.exception(f"Workflow processing error for {workflow_request.method} {path}")
            self._log_verbose(workflow_request, 500, start_time)
            return _error('Internal workflow processing error', 500)

        self.metrics.matched_requests += 1
        if result.condition_failure:
            self.metrics.condition_failures += 1

        self._log_verbose(workflow_request, result.status, start_time)
        return JSONResponse(
            content=result.body,
            status_code=result.status,
            headers={str(k): str(v) for k, v in result.headers.items()}
        )

    def _log_verbose(self, workflow_request: WorkflowRequest, status: int, start_time: float):
        if not self.config.verbose_mode:
            return
        elapsed_ms = (time.time() - start_time) * 1000
        timestamp = datetime.now().strftime("%H:%M:%S")
        marker = "✓" if 200 <= status < 300 else "✗"
        print(f"[{timestamp}] {workflow_request.method} {workflow_request.path} {marker} {status} ({elapsed_ms:.1f}ms)")

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the workflow server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🦖 Mockzilla Workflow Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Scenarios loaded: {len(self.repository.scenarios)}")
        print(f"   Transitions loaded: {len(self.repository.transitions)}")
        print(f"   Workflow API: http://{actual_host}:{actual_port}{self.config.api_prefix}/exec/<scenario>/<path>")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/scenarios")

        if self.config.state_dir:
            print(f"   State directory: {Path(self.config.state_dir).resolve()}")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_workflow_server(
    workflow_file: Optional[str] = None,
    host: str = "127.0.0.1",
    port: int = 8080,
    state_dir: Optional[str] = None,
    autosave: bool = False,
    admin_enabled: bool = True,
    verbose_mode: bool = False,
    log_level: str = "info"
) -> WorkflowServer:
    """
    Convenience function to create and configure a workflow server.

    Args:
        workflow_file: JSON/YAML file with scenarios and transitions
        host: Host to bind to
        port: Port to bind to
        state_dir: Directory for persisted scenario state (None = in-memory)
        autosave: Write management changes back to workflow_file
        admin_enabled: Expose the admin API
        verbose_mode: Print one line per workflow request
        log_level: Logging level name

    Returns:
        Configured WorkflowServer instance

    Example:
        server = create_workflow_server('workflows.yaml', port=8080, state_dir='.state')
        server.start()
    """
    config = ServerConfig(
        host=host,
        port=port,
        workflow_file=workflow_file,
        state_dir=state_dir,
        autosave=autosave,
        admin_enabled=admin_enabled,
        verbose_mode=verbose_mode,
        log_level=log_level
    )

    return WorkflowServer(config=config)
