"""Webhook server: FastAPI ingress and bounded event dispatch."""

from impactgraph.server.app import create_app
from impactgraph.server.dispatcher import EventDispatcher

__all__ = ["EventDispatcher", "create_app"]
