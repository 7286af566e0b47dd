"""HTTP and WebSocket routers mounted by main.py."""
