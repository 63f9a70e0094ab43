"""
Selectors package
-----------------
Translates find criteria (id, name, xpath, ...) into Selenium locators.
"""

from .locator import FindCriteria, InvalidFindCriteria, resolve_by

__all__ = [
    "FindCriteria",
    "InvalidFindCriteria",
    "resolve_by",
]
