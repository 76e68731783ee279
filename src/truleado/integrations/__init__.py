"""
truleado.integrations

HTTP boundaries to third-party services.

Responsibilities:
- Social data provider (creator profile analytics).
- Notification delivery (workflow trigger API).
- Payment gateway (order creation, signature verification).

Each client takes `Settings` and a shared `httpx.AsyncClient` so tests can
swap the transport.
"""
