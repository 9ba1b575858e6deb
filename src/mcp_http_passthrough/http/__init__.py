"""HTTP value types: header multimap and the raisable HttpResponse"""

from .headers import Headers, fold_name, normalize_headers
from .response import HttpResponse

__all__ = ["Headers", "HttpResponse", "fold_name", "normalize_headers"]
