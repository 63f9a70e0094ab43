from __future__ import annotations

"""Selenium module
------------------
Connector surface over a single WebDriver session: browser navigation,
element lookup, element interaction and `until` waits. Use it as a context
manager so the browser is always quit:

    with SeleniumModule(driver="firefox") as sm:
        sm.get("https://www.example.com")
        sm.until(lambda d: "Example" in d.title, timeout_ms=5000)
"""

from typing import Any, Callable, Optional

from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement

from selenium_module.core.drivers import create_driver
from selenium_module.core.poller import ConditionPoller, PollConfig, PollOutcome, PollStatus
from selenium_module.selectors.locator import resolve_by
from selenium_module.utils.config import SeleniumWebDriver, Settings, get_settings
from selenium_module.utils.logger import get_logger
from selenium_module.utils.timing import measure

__all__ = ["SeleniumModule", "WaitTimeoutError"]


class WaitTimeoutError(TimeoutError):
    def __init__(self, message: str, outcome: PollOutcome) -> None:
        super().__init__(message)
        self.outcome = outcome


class SeleniumModule:
    def __init__(self, driver: SeleniumWebDriver | str | None = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.driver = driver or self.settings.DRIVER
        self.log = get_logger(__name__)
        self._web_driver: Optional[WebDriver] = None

    # ---------- Lifecycle ----------

    def init_driver(self) -> WebDriver:
        if self._web_driver is None:
            self._web_driver = create_driver(self.driver, self.settings)
        return self._web_driver

    def destroy_driver(self) -> None:
        web_driver, self._web_driver = self._web_driver, None
        if web_driver is not None:
            web_driver.quit()

    def __enter__(self) -> "SeleniumModule":
        self.init_driver()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy_driver()

    @property
    def web_driver(self) -> WebDriver:
        if self._web_driver is None:
            raise RuntimeError("Web driver is not initialized; call init_driver() or use the module as a context manager")
        return self._web_driver

    # ---------- Browser ----------

    @measure("get")
    def get(self, url: str) -> None:
        """Load a page in the current window; blocks until the load completes."""
        self.web_driver.get(url)

    def get_current_url(self) -> str:
        return self.web_driver.current_url

    def get_title(self) -> str:
        return self.web_driver.title

    # ---------- Find ----------

    @measure("find_elements")
    def find_elements(self, **criteria: Optional[str]) -> list[WebElement]:
        """
        Find all elements matching exactly one criterion (id, link_text,
        partial_link_text, name, tag_name, xpath_expression, class_name,
        css_selector). Returns an empty list if nothing matches.
        """
        by, value = resolve_by(criteria)
        return self.web_driver.find_elements(by, value)

    @measure("find_element")
    def find_element(self, **criteria: Optional[str]) -> WebElement:
        """
        Find the first element matching exactly one criterion.

        Raises:
            selenium.common.exceptions.NoSuchElementException if nothing matches.
        """
        by, value = resolve_by(criteria)
        return self.web_driver.find_element(by, value)

    # ---------- Element ----------

    def click(self, element: WebElement) -> None:
        element.click()

    def submit(self, element: WebElement) -> None:
        element.submit()

    def send_keys(self, element: WebElement, keys: str) -> None:
        element.send_keys(keys)

    def clear(self, element: WebElement) -> None:
        element.clear()

    def get_tag_name(self, element: WebElement) -> str:
        return element.tag_name

    def get_attribute(self, element: WebElement, name: str) -> Optional[str]:
        return element.get_attribute(name)

    def is_selected(self, element: WebElement) -> bool:
        return element.is_selected()

    def is_enabled(self, element: WebElement) -> bool:
        return element.is_enabled()

    def get_text(self, element: WebElement) -> str:
        return element.text

    def is_displayed(self, element: WebElement) -> bool:
        return element.is_displayed()

    def get_location(self, element: WebElement) -> dict:
        return element.location

    def get_size(self, element: WebElement) -> dict:
        return element.size

    # ---------- Waiting ----------

    def until(self, condition: Callable[[WebDriver], Any], timeout_ms: Optional[int] = None) -> PollOutcome:
        """
        Poll `condition(web_driver)` until it is truthy.

        Errors raised by the condition are logged and polling continues,
        unless PROPAGATE_CONDITION_ERRORS is set, in which case the first
        error is re-raised.

        Raises:
            WaitTimeoutError if the condition was not satisfied in time.
        """
        s = self.settings
        timeout = s.UNTIL_TIMEOUT_MS if timeout_ms is None else timeout_ms
        config = PollConfig(
            timeout_ms=timeout,
            interval_ms=s.POLL_INTERVAL_MS,
            propagate_faults=s.PROPAGATE_CONDITION_ERRORS,
        )
        outcome = ConditionPoller(config, context=self.web_driver).wait_until(condition)

        if outcome.status is PollStatus.faulted:
            raise outcome.cause
        if outcome.status is PollStatus.timed_out:
            raise WaitTimeoutError(
                f"Condition not satisfied within {timeout} ms ({outcome.attempts} attempt(s))", outcome
            )
        self.log.debug(f"Condition satisfied after {outcome.attempts} attempt(s) in {outcome.elapsed_ms} ms")
        return outcome
