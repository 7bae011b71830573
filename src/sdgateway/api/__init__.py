"""SD Gateway FastAPI REST API layer.

This package contains the FastAPI application, the Pydantic request models,
the exception handlers and the success envelope builders.

Modules
-------
main
    Application factory, route handlers, middleware and the ``main()`` CLI
    entry point.
models
    Pydantic models for validated requests and the model catalog.
errors
    Exception handlers rendering every failure in one JSON shape.
responses
    Success envelopes for the generation endpoints.
"""
