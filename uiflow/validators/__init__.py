"""Read-only validators over a generated prototype project.

Each validator returns a structured result; none of them writes to disk.
"""

from .consistency import ConsistencyValidator
from .iframe_src import IframeSrcValidator
from .index_data import IndexDataValidator, extract_displayed_counters
from .navigation import NavigationValidator
from .template_variables import TemplateVariableValidator

__all__ = [
    "ConsistencyValidator",
    "IframeSrcValidator",
    "IndexDataValidator",
    "NavigationValidator",
    "TemplateVariableValidator",
    "extract_displayed_counters",
]
