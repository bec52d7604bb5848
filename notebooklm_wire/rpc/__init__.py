"""batchexecute RPC transport."""

from notebooklm_wire.rpc.transport import BatchExecuteTransport, RPCClientConfig

__all__ = ["BatchExecuteTransport", "RPCClientConfig"]
