# ==============================================
# TOPIC 1: DICTIONARIES
# ==============================================
#
# Read-only token sets (address type words, geometry shape names)
# loaded from dic.json and shared by all evaluations.
#
# Modules:
# --------
# - catalog.py  → DictionaryCatalog, tokenize(), get_catalog()
# - dic.json    → Editable dictionary configuration
#
# ==============================================

from .catalog import DictionaryCatalog, get_catalog, load_catalog, tokenize

__all__ = [
    "DictionaryCatalog",
    "get_catalog",
    "load_catalog",
    "tokenize",
]
