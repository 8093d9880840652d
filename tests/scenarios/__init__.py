"""End-to-end scenario tests for the request pipeline.

Each module exercises one behaviour through built pipelines and the
dispatcher (and, for the ASGI scenario, through an HTTP client).
"""
