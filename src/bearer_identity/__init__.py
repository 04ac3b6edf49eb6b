"""bearer-identity — account registration and bearer token service.

Register, password login, federated login, refresh-token rotation and
email confirmation over a pluggable credential store and token service.
"""

__version__ = "0.1.0"
