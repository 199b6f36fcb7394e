from .errors import ProblemDetails

__all__ = ["ProblemDetails"]
