"""
EditorSession — the layer between the HTTP routes and the editor core.

Holds the plugin registry, the open graph, the flow name and the two output
panes the UI shows: the activity log and the terminal. Store events are
turned into log lines here, and remote-service failures end up in the
terminal as plain text, never in the graph.
"""
from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Optional

from ..compiler.ir import FlowIR
from ..compiler.lowering import compile_graph
from ..config import Settings
from ..core.Errors import MalformedDocumentError, ProtectedNodeError, RemoteServiceError
from ..core.EventBus import StoreEvent
from ..core.GraphStore import GraphStore
from ..registry.PluginRegistry import PluginRegistry
from ..serializers.flow_serializer import deserialize, serialize
from ..serializers.schema import FLOW_FILE_SUFFIX
from ..services.codegen_client import CodegenClient, ExecuteResult

logger = getLogger(__name__)

NO_WARNINGS = "Compilation successful (no warnings)"


class EditorSession:
    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        settings: Optional[Settings] = None,
        client: Optional[CodegenClient] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or _default_registry(self.settings)
        self.store = GraphStore(self.registry)
        self.client = client or CodegenClient(self.settings.service_url, self.settings.service_timeout)

        self.flow_name = "my_flow"
        self.logs: List[str] = []
        self.terminal: List[str] = []

        self.store.events.subscribe(self._on_store_event)

    # ── Output panes ───────────────────────────────────────────────────────

    def add_log(self, message: str) -> None:
        self.logs.append(message)

    def add_terminal_output(self, text: str) -> None:
        self.terminal.extend(text.split("\n"))

    def clear_logs(self) -> None:
        self.logs.clear()

    def clear_terminal(self) -> None:
        self.terminal.clear()

    def _on_store_event(self, event: StoreEvent) -> None:
        kind = event["type"]
        if kind == "NODE_CREATED":
            node = self.store.get_node(event["nodeId"])
            self.add_log(f"Block added: {node.label if node else event['nodeId']}")
        elif kind == "NODE_DELETED":
            self.add_log("Block deleted")
        elif kind == "EDGE_CREATED":
            self.add_log("Connection created")
        elif kind == "NODE_REPARENTED":
            if event["parentId"] is not None:
                self.add_log(f"Block {event['nodeId']} moved into {event['parentId']}")
            else:
                self.add_log(f"Block {event['nodeId']} moved out of {event['previousParentId']}")

    # ── Editing ────────────────────────────────────────────────────────────

    def delete_node(self, node_id: str) -> bool:
        """Delete *node_id*; a protected node is reported and left in place."""
        try:
            self.store.delete_node(node_id)
        except ProtectedNodeError as exc:
            self.add_log(f"Cannot delete: {exc}")
            return False
        return True

    # ── Save / load ────────────────────────────────────────────────────────

    @property
    def file_name(self) -> str:
        return f"{self.flow_name}{FLOW_FILE_SUFFIX}"

    def save(self) -> Dict[str, Any]:
        document = serialize(self.store.snapshot(self.flow_name), self.flow_name)
        self.store.created = document.metadata.created
        self.add_log(f"Flow saved: {self.file_name}")
        return document.to_dict()

    def load_document(self, document: Any) -> None:
        try:
            snapshot = deserialize(document, self.registry)
        except MalformedDocumentError as exc:
            logger.warning("load rejected: %s", exc)
            self.add_log("Failed to load flow")
            raise
        self.store.load(snapshot)
        self.flow_name = snapshot.name or self.flow_name
        self.add_log(f"Flow loaded: {self.flow_name}")

    # ── Compile / run ──────────────────────────────────────────────────────

    def compile_ir(self) -> FlowIR:
        return compile_graph(self.store.snapshot(self.flow_name), self.registry)

    async def generate_code(self) -> str:
        self.add_log("Generating Rust code...")
        try:
            code = await self.client.compile_flow(self.compile_ir())
        except RemoteServiceError as exc:
            self.add_log("Code generation failed")
            self.add_terminal_output(str(exc))
            raise
        self.add_log(f"Code generated: {len(code.splitlines())} line(s)")
        return code

    async def run(self) -> Optional[ExecuteResult]:
        """
        Generate, compile and execute the open flow.

        Returns the execution result, or None when the service could not be
        reached; in that case the error text is already in the terminal.
        """
        self.add_log("Generating and running code...")
        self.clear_terminal()
        try:
            code = await self.client.compile_flow(self.compile_ir())
            self.add_log("Code generated")
            self.add_terminal_output(f"$ rustc {self.flow_name}.rs && ./{self.flow_name}")
            result = await self.client.execute_code(code, self.flow_name)
        except RemoteServiceError as exc:
            self.add_log("Execution failed")
            self.add_terminal_output(str(exc))
            self.add_terminal_output("$ ")
            return None

        if result.success:
            self.add_log("Compilation succeeded")
            if result.compile_output and result.compile_output != NO_WARNINGS:
                self.add_terminal_output(result.compile_output)
            if result.execution_output:
                self.add_terminal_output(result.execution_output)
            self.add_log("Execution finished")
        else:
            self.add_log("Compilation failed")
            if result.compile_output:
                self.add_terminal_output(result.compile_output)
        self.add_terminal_output("$ ")
        return result


def _default_registry(settings: Settings) -> PluginRegistry:
    registry = PluginRegistry.builtin()
    if settings.plugin_dir:
        registry.load_directory(settings.plugin_dir)
    return registry


# ---------------------------------------------------------------------------
# Module-level singleton used by the routes
# ---------------------------------------------------------------------------

_session: Optional[EditorSession] = None


def get_session() -> EditorSession:
    global _session
    if _session is None:
        _session = EditorSession(settings=Settings.from_env())
    return _session


def set_session(session: Optional[EditorSession]) -> None:
    global _session
    _session = session
