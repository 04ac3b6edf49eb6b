"""Credential primitives and request wiring.

Learn: password.py (bcrypt) and jwt.py (PyJWT) are the cryptographic
building blocks the credential store and token service use.
dependencies.py builds those collaborators per request for FastAPI.
"""
