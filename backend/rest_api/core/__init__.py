"""
Application wiring: lifespan, CORS, exception handlers.
"""
