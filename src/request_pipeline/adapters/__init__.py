"""Transport adapters for the request pipeline.

This package contains adapters exposing a pipeline to web frameworks:
- ASGI: Starlette and FastAPI applications
"""

from request_pipeline.adapters.asgi import PipelineASGIApp

__all__ = ["PipelineASGIApp"]
