from .codegen_client import CodegenClient, ExecuteResult

__all__ = ["CodegenClient", "ExecuteResult"]
