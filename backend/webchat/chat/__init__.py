"""Real-time chat session layer: broadcast, coordination, WebSocket transport."""
