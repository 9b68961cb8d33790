"""auth/ -- Token, password and client-secret primitives for the account service.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, db/, cache/, repository/, or services/, except
auth/dependencies.py, which is part of the FastAPI dependency wiring.
"""
