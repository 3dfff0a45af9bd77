"""HTTP transport for the JSON-RPC gateway."""
