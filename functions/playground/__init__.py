"""
Edge functions playground served as a FastAPI application.

Each hosted function of the playground (database operations, signed
uploads, JWT claims, CORS demos) is exposed as a route, backed by
pluggable data, storage and auth clients with in-memory fallbacks.
"""
