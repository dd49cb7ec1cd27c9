# RPC Module
"""
JSON-RPC envelopes, HTTP transport, the client and the reference server.

Import the submodules directly (rpcvault.rpc.client, rpcvault.rpc.server);
the client is also re-exported from the top-level rpcvault package.
"""
