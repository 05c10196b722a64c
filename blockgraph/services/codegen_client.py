"""HTTP client for the external code-generation and execution service."""
from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import Any, Dict, Optional, Union

import httpx

from ..compiler.ir import FlowIR
from ..core.Errors import RemoteServiceError

logger = getLogger(__name__)


@dataclass
class ExecuteResult:
    success: bool
    compile_output: str = ""
    execution_output: str = ""
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecuteResult":
        return cls(
            success=bool(data.get("success", False)),
            compile_output=str(data.get("compile_output") or ""),
            execution_output=str(data.get("execution_output") or ""),
            error=data.get("error"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "compile_output": self.compile_output,
            "execution_output": self.execution_output,
            "error": self.error,
        }


class CodegenClient:
    """
    Thin async wrapper over ``POST /compile`` and ``POST /execute``.

    Requests are independent: two calls in flight at once are allowed to race
    and nothing is retried. Every failure (transport, non-2xx status,
    unexpected body) surfaces as RemoteServiceError with the server's text.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("request to %s failed: %s", url, exc)
            raise RemoteServiceError(f"{path}: {exc}") from exc

        if response.is_error:
            detail = _error_text(response)
            logger.error("%s returned %s: %s", url, response.status_code, detail)
            raise RemoteServiceError(detail, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteServiceError(f"{path}: response is not JSON: {response.text}") from exc
        if not isinstance(body, dict):
            raise RemoteServiceError(f"{path}: expected a JSON object, got {response.text}")
        return body

    async def compile_flow(self, ir: Union[FlowIR, Dict[str, Any]]) -> str:
        payload = ir.to_dict() if isinstance(ir, FlowIR) else ir
        logger.info("compile request: %d node(s), %d connection(s)",
                    len(payload.get("nodes", [])), len(payload.get("connections", [])))
        body = await self._post("/compile", payload)
        code = body.get("code")
        if not isinstance(code, str):
            raise RemoteServiceError(f"/compile: response has no code: {body}")
        return code

    async def execute_code(self, code: str, filename: str) -> ExecuteResult:
        logger.info("execute request for %s", filename)
        body = await self._post("/execute", {"code": code, "filename": filename})
        return ExecuteResult.from_dict(body)


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return response.text
