"""Authentication for the realtime channel and the publish API.

Learn: Tokens are issued by the clinic API; this service only verifies
them. Two places check a token:
1. The WebSocket handshake (query param or Bearer header)
2. The HTTP publish/inspection routes (Bearer header)

Both resolve to a CurrentIdentity carrying the user's role.
"""
