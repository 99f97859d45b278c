"""Core domain & services for Modular Health.

Contains routine planning, batch log application, persistence models, and
configuration.
"""

from .config import Settings  # noqa: F401
