"""
Selection dialogs.
"""

from roam_select.select.base import SelectionBackend, SelectState
from roam_select.select.builtin import SelectBuiltin
from roam_select.select.finder import FinderError, FinderResult, FuzzyFinder, FzfFinder
from roam_select.select.fzf import SelectFzf
from roam_select.select.registry import BackendRegistry, register_with_fzf

__all__ = [
    "SelectionBackend",
    "SelectState",
    "SelectBuiltin",
    "SelectFzf",
    "FuzzyFinder",
    "FzfFinder",
    "FinderError",
    "FinderResult",
    "BackendRegistry",
    "register_with_fzf",
]
