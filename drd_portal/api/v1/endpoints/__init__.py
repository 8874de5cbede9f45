# API endpoints
from . import submissions, suggestions, policies, assignments

__all__ = ["submissions", "suggestions", "policies", "assignments"]
