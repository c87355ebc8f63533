from .connectivity import run_connectivity_check

__all__ = ["run_connectivity_check"]
