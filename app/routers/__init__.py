"""
FastAPI routers for the API.
"""

from app.routers import generation, health, render, webhooks

__all__ = ["health", "render", "generation", "webhooks"]
