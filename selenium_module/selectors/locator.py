from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from selenium.webdriver.common.by import By

from selenium_module.utils.logger import get_logger

log = get_logger(__name__)


class InvalidFindCriteria(ValueError):
    pass


class FindCriteria(BaseModel):
    """Ways of locating an element. Exactly one may be set per lookup."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    link_text: Optional[str] = None
    partial_link_text: Optional[str] = None
    name: Optional[str] = None
    tag_name: Optional[str] = None
    xpath_expression: Optional[str] = None
    class_name: Optional[str] = None
    css_selector: Optional[str] = None


# field order is the lookup precedence
_BY: dict[str, str] = {
    "id": By.ID,
    "link_text": By.LINK_TEXT,
    "partial_link_text": By.PARTIAL_LINK_TEXT,
    "name": By.NAME,
    "tag_name": By.TAG_NAME,
    "xpath_expression": By.XPATH,
    "class_name": By.CLASS_NAME,
    "css_selector": By.CSS_SELECTOR,
}


def resolve_by(criteria: FindCriteria | Mapping[str, Any]) -> Tuple[str, str]:
    """
    Convert find criteria into a Selenium `(By, value)` pair.

    Raises:
        InvalidFindCriteria when no criterion or more than one is given.
    """
    if not isinstance(criteria, FindCriteria):
        criteria = FindCriteria(**criteria)

    given = [(field, getattr(criteria, field)) for field in _BY if getattr(criteria, field) is not None]
    if not given:
        raise InvalidFindCriteria("At least one find criteria must be specified.")
    if len(given) > 1:
        raise InvalidFindCriteria("Only one attribute can be used")

    field, value = given[0]
    log.debug(f"Locating by {field}={value!r}")
    return _BY[field], value
