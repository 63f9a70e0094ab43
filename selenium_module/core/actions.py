from __future__ import annotations

"""Flow actions dispatcher
--------------------------
Maps validated flow steps to SeleniumModule operations. Each step receives
the current payload and returns the next one; steps with nothing to return
pass the payload through unchanged.
"""

import re
from typing import Any, Callable

from selenium.common.exceptions import NoSuchElementException, WebDriverException
from selenium.webdriver.remote.webelement import WebElement

from selenium_module.core.flow_loader import (
    ActionName,
    StepExpect,
    StepUntil,
)
from selenium_module.core.module import SeleniumModule
from selenium_module.utils.config import Settings
from selenium_module.utils.logger import get_logger
from selenium_module.utils.timing import retry, sleep_ms

__all__ = ["execute_step", "execute_steps", "as_condition_result", "action_of"]

log = get_logger(__name__)

# Element steps act on the payload and return the operation's result (None = pass through)
_ELEMENT_OPS: dict[ActionName, Callable[[SeleniumModule, WebElement], Any]] = {
    ActionName.click: SeleniumModule.click,
    ActionName.submit: SeleniumModule.submit,
    ActionName.clear: SeleniumModule.clear,
    ActionName.get_tag_name: SeleniumModule.get_tag_name,
    ActionName.is_selected: SeleniumModule.is_selected,
    ActionName.is_enabled: SeleniumModule.is_enabled,
    ActionName.get_text: SeleniumModule.get_text,
    ActionName.is_displayed: SeleniumModule.is_displayed,
    ActionName.get_location: SeleniumModule.get_location,
    ActionName.get_size: SeleniumModule.get_size,
}


def action_of(step: Any) -> ActionName:
    return ActionName(step.action)


def as_condition_result(payload: Any) -> bool:
    """Booleans as-is, the string "true" (any case) is true, anything else by truthiness."""
    if isinstance(payload, bool):
        return payload
    if isinstance(payload, str):
        return payload.strip().lower() == "true"
    return bool(payload)


def _require_element(payload: Any, action: ActionName) -> WebElement:
    if not isinstance(payload, WebElement):
        raise TypeError(f"{action.value} needs a web element payload, got {type(payload).__name__}")
    return payload


def _as_text(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, bool):
        return "true" if payload else "false"
    return str(payload)


def _expect(step: StepExpect, payload: Any) -> bool:
    text = _as_text(payload)
    expected = step.equals if step.equals is not None else step.contains
    if step.matches is not None:
        flags = re.IGNORECASE if step.ignore_case else 0
        return re.search(step.matches, text, flags=flags) is not None
    if step.ignore_case:
        text, expected = text.lower(), expected.lower()
    if step.equals is not None:
        return text == expected
    return expected in text


def _until(module: SeleniumModule, step: StepUntil, payload: Any, settings: Settings) -> Any:
    # condition steps run once per poll
    def condition(_driver) -> bool:
        return as_condition_result(execute_steps(module, step.condition, payload, settings, retries=False))

    module.until(condition, timeout_ms=step.timeout_ms)
    return payload


def execute_step(module: SeleniumModule, step: Any, payload: Any, settings: Settings, retries: bool = True) -> Any:
    """
    Execute one validated step against the module and return the new payload.
    Navigation and lookups are retried on WebDriverException per MAX_RETRIES
    when `retries` is set. A missing element is never retried.
    """
    action = action_of(step)

    def run(op: Callable[[], Any]) -> Any:
        return retry(
            op,
            tries=settings.MAX_RETRIES + 1 if retries else 1,
            initial_delay_ms=settings.RETRY_DELAY,
            max_delay_ms=max(settings.RETRY_DELAY, 2000),
            exceptions=(WebDriverException,),
            give_up_on=(NoSuchElementException,),
        )

    if action == ActionName.get:
        run(lambda: module.get(step.url))
        return payload
    if action == ActionName.get_current_url:
        return module.get_current_url()
    if action == ActionName.get_title:
        return module.get_title()
    if action == ActionName.find_element:
        return run(lambda: module.find_element(**step.by.model_dump(exclude_none=True)))
    if action == ActionName.find_elements:
        return run(lambda: module.find_elements(**step.by.model_dump(exclude_none=True)))
    if action == ActionName.send_keys:
        module.send_keys(_require_element(payload, action), step.keys)
        return payload
    if action == ActionName.get_attribute:
        return module.get_attribute(_require_element(payload, action), step.attribute)
    if action in _ELEMENT_OPS:
        result = _ELEMENT_OPS[action](module, _require_element(payload, action))
        return payload if result is None else result
    if action == ActionName.until:
        return _until(module, step, payload, settings)
    if action == ActionName.expect:
        return _expect(step, payload)
    if action == ActionName.wait:
        sleep_ms(step.ms)
        return payload
    raise NotImplementedError(f"Unsupported action: {action}")


def execute_steps(module: SeleniumModule, steps: list, payload: Any, settings: Settings, retries: bool = True) -> Any:
    for step in steps:
        payload = execute_step(module, step, payload, settings, retries=retries)
    return payload
