"""Real-time infrastructure — Redis pub/sub + WebSocket.

Learn: Events flow through two hops:
1. Publisher → Redis PUBLISH on the shared broadcast channel
2. Redis SUBSCRIBE → Gateway → WebSocket → browser

This decouples change capture from the browser-facing connections.
"""
