import logging
import uuid
from typing import Any, Dict, Optional
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from agents import AgentRegistry, Dispatcher, DispatchPolicy
from config import Config
from core.errors import AgentNotFoundError, BackendUnavailable, ConfigurationError
from core.gateway import Gateway, error_body
from storage import DiscussionSession, DiscussionStore

logger = logging.getLogger(__name__)

FORWARD_ERROR_MESSAGE = "Error forwarding request to backend API"


# Request/Response Models
class DiscussionRequest(BaseModel):
    query: str = Field(..., description="The question to put to the panel")
    session_id: Optional[str] = Field(default=None, description="Discussion to append to")


class AgentUpdate(BaseModel):
    active: bool = Field(..., description="Whether the agent takes part in new rounds")


class GatewayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credential_ref: str = Field(..., alias="credentialRef")
    query: str
    user: Optional[str] = None
    response_mode: str = Field(default="blocking", alias="responseMode")
    inputs: Dict[str, Any] = Field(default_factory=dict)


def create_app(config: Optional[Config] = None, gateway: Optional[Gateway] = None) -> FastAPI:
    """
    Build the API application.

    `config` defaults to Config.from_env(); `gateway` defaults to a Gateway with its own
    HTTP client, closed on shutdown.
    """
    config = config or Config.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        print("🚀 Expert Panel API starting...")
        missing = config.missing_credentials()
        if missing:
            print(f"⚠️  No credential configured for: {', '.join(missing)}")
        app.state.gateway = gateway or Gateway(config)
        yield
        # Shutdown
        await app.state.gateway.aclose()
        print("👋 Expert Panel API shutting down...")

    app = FastAPI(
        title="Expert Panel Orchestrator",
        description="""
        Put one question to a panel of conversational agents and collect their answers:
        - **Sequential dispatch**: agents answer one after another, in roster order
        - **Rate-limit recovery**: rate-limited agents are retried with backoff
        - **Failure isolation**: one failing agent never hides the others' answers
        - **Gateway**: backend credentials never leave the server
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.registry = AgentRegistry.from_config(config)
    app.state.store = DiscussionStore()
    app.state.dispatchers = {}
    app.state.round_status = {}

    def dispatcher_for(session: DiscussionSession) -> Dispatcher:
        dispatcher = app.state.dispatchers.get(session.session_id)
        if dispatcher is None:
            dispatcher = Dispatcher(
                registry=app.state.registry,
                gateway=app.state.gateway,
                transcript=session.transcript,
                policy=DispatchPolicy.from_config(config),
                user_name=config.user_name,
            )
            app.state.dispatchers[session.session_id] = dispatcher
        return dispatcher

    def get_session(session_id: str) -> DiscussionSession:
        session = app.state.store.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Discussion not found")
        return session

    def validated_query(request: DiscussionRequest) -> str:
        query = request.query.strip()
        if not query:
            raise HTTPException(status_code=400, detail="Query must not be empty")
        return query

    # API Endpoints
    @app.get("/")
    @app.get("/api")
    async def api_info():
        """API info endpoint."""
        return {
            "name": "Expert Panel Orchestrator",
            "version": "1.0.0",
            "status": "running",
            "agents": [agent.name for agent in app.state.registry.list_agents()],
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "agents_configured": {
                agent.id: config.get_credential(agent.credential_ref) is not None
                for agent in app.state.registry.list_agents()
            },
        }

    @app.get("/agents")
    async def list_agents():
        """List the panel roster in order."""
        return {"agents": [agent.to_dict() for agent in app.state.registry.list_agents()]}

    @app.patch("/agents/{agent_id}")
    async def update_agent(agent_id: str, update: AgentUpdate):
        """Toggle an agent. Rounds already running keep their agent list."""
        try:
            agent = app.state.registry.set_active(agent_id, update.active)
        except AgentNotFoundError:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent.to_dict()

    @app.post("/discussions")
    async def run_discussion(request: DiscussionRequest):
        """
        Put a question to the panel and wait for every answer.

        Warning: with pacing and rate-limit backoff this can take minutes.
        """
        query = validated_query(request)
        session = app.state.store.get_or_create(request.session_id or str(uuid.uuid4()))

        result = await dispatcher_for(session).dispatch(query)
        session.rounds += 1

        if not result.success:
            raise HTTPException(status_code=500, detail=result.error)
        return {"session_id": session.session_id, **result.to_dict()}

    @app.post("/discussions/async")
    async def start_discussion(request: DiscussionRequest, background_tasks: BackgroundTasks):
        """
        Start a round in the background.

        Poll /discussions/{session_id}/transcript?after=<after> to follow the answers.
        """
        query = validated_query(request)
        session = app.state.store.get_or_create(request.session_id or str(uuid.uuid4()))
        app.state.round_status[session.session_id] = "pending"

        background_tasks.add_task(run_discussion_round, session, query)

        return {
            "session_id": session.session_id,
            "status": "pending",
            "after": session.transcript.last_id,
        }

    async def run_discussion_round(session: DiscussionSession, query: str):
        """Background task to run one dispatch round."""
        app.state.round_status[session.session_id] = "running"
        result = await dispatcher_for(session).dispatch(query)
        session.rounds += 1
        app.state.round_status[session.session_id] = "completed" if result.success else "failed"

    @app.get("/discussions")
    async def list_discussions():
        return {"discussions": [s.to_dict() for s in app.state.store.list_sessions()]}

    @app.get("/discussions/{session_id}/transcript")
    async def get_transcript(session_id: str, after: int = 0):
        """Entries appended after entry id `after`."""
        session = get_session(session_id)
        return {
            "session_id": session_id,
            "status": app.state.round_status.get(session_id, "idle"),
            "entries": [e.to_dict() for e in session.transcript.since(after)],
            "last_id": session.transcript.last_id,
        }

    @app.delete("/discussions/{session_id}")
    async def delete_discussion(session_id: str):
        """Drop a discussion; the next round on this id starts a fresh transcript."""
        get_session(session_id)
        app.state.store.delete(session_id)
        app.state.dispatchers.pop(session_id, None)
        app.state.round_status.pop(session_id, None)
        return {"status": "deleted", "session_id": session_id}

    @app.post("/api/gateway")
    async def gateway_forward(request: GatewayRequest):
        """
        Forward a query to the backend with the referenced credential attached.

        The upstream body is passed through; upstream error statuses are mirrored.
        """
        if request.response_mode != "blocking":
            return JSONResponse(status_code=400, content={"message": "Only blocking response mode is supported"})

        try:
            response = await app.state.gateway.forward(
                request.credential_ref,
                request.query,
                user=request.user,
                inputs=request.inputs,
            )
        except ConfigurationError:
            return JSONResponse(status_code=400, content={"message": "No credential configured for this reference"})
        except BackendUnavailable as e:
            logger.error("Proxy error: %s", e)
            return JSONResponse(status_code=500, content={"message": FORWARD_ERROR_MESSAGE})

        if response.is_success:
            return Response(
                content=response.content,
                status_code=200,
                media_type=response.headers.get("content-type", "application/json"),
            )

        body = error_body(response)
        if body is None:
            body = {"message": response.text}
        return JSONResponse(status_code=response.status_code, content=body)

    @app.api_route("/api/gateway", methods=["GET", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def gateway_method_not_allowed():
        return JSONResponse(status_code=405, content={"message": "Method not allowed"})

    return app


app = create_app()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
