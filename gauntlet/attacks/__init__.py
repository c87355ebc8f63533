from ..models import Category
from .auth_routes import run_authenticated_replay
from .brute import run_brute_force
from .crlf import classify_header_injection
from .jwt_weakness import classify_jwt_bypass
from .lfi import classify_path_traversal
from .sqli import classify_sqli
from .xss import classify_xss

# Per-response classifiers for the independently dispatched campaigns
CLASSIFIERS = {
    Category.SQLI: classify_sqli,
    Category.XSS: classify_xss,
    Category.PATH_TRAVERSAL: classify_path_traversal,
    Category.HEADER_INJECTION: classify_header_injection,
    Category.JWT_BYPASS: classify_jwt_bypass,
}

__all__ = [
    "CLASSIFIERS",
    "run_authenticated_replay",
    "run_brute_force",
]
