"""FastAPI application factory for the task planner."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..config import load_policy_config
from ..constants import STATE_DIR_NAME
from ..task_engine.engine import TaskEngine
from ..task_engine.policy import PolicyConfig
from .task_api import create_task_router


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
    policy_config: Optional[PolicyConfig] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Default project directory.
        enable_cors: Whether to enable CORS.
        policy_config: Linking policy for the default project. Loaded from
            the project's config file when omitted.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Task Planner",
        description="Task planning API with validated task dependencies",
        version="1.0.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    default_dir = (project_dir or Path.cwd()).resolve()
    app.state.default_project_dir = default_dir
    app.state.policy_config = policy_config or load_policy_config(default_dir)
    logger.info("Dependency policy: {}", app.state.policy_config.policy.value)

    def _get_engine(project_dir_param: Optional[str] = None) -> TaskEngine:
        """Resolve the engine for a request; other projects use their own config."""
        if project_dir_param:
            other = Path(project_dir_param).resolve()
            if other != default_dir:
                return TaskEngine(other / STATE_DIR_NAME, load_policy_config(other))
        return TaskEngine(default_dir / STATE_DIR_NAME, app.state.policy_config)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "name": "Task Planner",
            "version": "1.0.0",
            "status": "running",
        }

    app.include_router(create_task_router(_get_engine))
    return app
