"""
Application-wide canvas state shared by the HTTP handlers.

The session owns the live schema graph, the repositories and the execution
machinery. It is created once in the app lifespan and stored on
``app.state``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set

from canvas_core.graph import SchemaGraph
from canvas_core.library import LibraryCatalog
from canvas_core.models import AgentConfig, CustomItem, Project
from canvas_engine.behaviors import CodeSandbox, NodeBehaviorResolver, build_default_resolver
from canvas_engine.engine import ExecutionEngine
from canvas_engine.execution_log import ExecutionLog, ExecutionRun
from canvas_engine.status import StatusBoard
from shared.config import config
from shared.llm import LLMFactory, get_llm
from shared.logger import get_logger
from shared.repositories import InMemoryRepository, JsonFileRepository, Repository
from shared.tools import ToolRegistry, register_default_tools

logger = get_logger("api.canvas.session")


@dataclass
class CanvasSession:
    graph: SchemaGraph
    catalog: LibraryCatalog
    agents: Repository[AgentConfig]
    custom_items: Repository[CustomItem]
    projects: Repository[Project]
    execution_log: ExecutionLog
    tools: ToolRegistry
    resolver: NodeBehaviorResolver
    engine: ExecutionEngine
    llm_factory: LLMFactory = get_llm
    sandbox: Optional[CodeSandbox] = None
    background_tasks: Set = field(default_factory=set)

    @property
    def status_board(self) -> StatusBoard:
        return self.engine.status_board


def build_session(
    persist: Optional[bool] = None,
    storage_dir: Optional[str] = None,
    llm_factory: LLMFactory = get_llm,
    engine: Optional[ExecutionEngine] = None,
    sandbox: Optional[CodeSandbox] = None,
) -> CanvasSession:
    """Wire repositories, tools, behaviors and the engine together."""
    persist = config.persist_to_disk if persist is None else persist
    if persist:
        directory = Path(storage_dir or config.storage_dir)
        agents = JsonFileRepository(directory, "agents", AgentConfig)
        custom_items = JsonFileRepository(directory, "custom_items", CustomItem)
        projects = JsonFileRepository(directory, "projects", Project)
        runs = JsonFileRepository(directory, "execution_logs", ExecutionRun)
        logger.info(f"Using JSON repositories in {directory}")
    else:
        agents = InMemoryRepository()
        custom_items = InMemoryRepository()
        projects = InMemoryRepository()
        runs = InMemoryRepository()
        logger.info("Using in-memory repositories")

    catalog = LibraryCatalog(custom_items.list())
    tools = register_default_tools(llm_factory=llm_factory)
    resolver = build_default_resolver(tools, agents, catalog=catalog, llm_factory=llm_factory, sandbox=sandbox)

    return CanvasSession(
        graph=SchemaGraph(),
        catalog=catalog,
        agents=agents,
        custom_items=custom_items,
        projects=projects,
        execution_log=ExecutionLog(runs),
        tools=tools,
        resolver=resolver,
        engine=engine or ExecutionEngine(),
        llm_factory=llm_factory,
        sandbox=sandbox,
    )
