from __future__ import annotations

"""Driver registry
------------------
Maps a SeleniumWebDriver identifier to a factory that builds the WebDriver
from settings. Extra factories can be registered at runtime (tests register
fakes this way).
"""

from typing import Callable, Dict, Optional

from selenium import webdriver
from selenium.webdriver.common.proxy import Proxy, ProxyType
from selenium.webdriver.remote.webdriver import WebDriver

from selenium_module.utils.config import SeleniumWebDriver, Settings, get_settings
from selenium_module.utils.logger import get_logger

__all__ = [
    "DriverFactory",
    "register_driver",
    "available_drivers",
    "create_driver",
]

DriverFactory = Callable[[Settings], WebDriver]

log = get_logger(__name__)


# ---------- Factories ----------

def _service(service_cls, s: Settings):
    if s.DRIVER_EXECUTABLE:
        return service_cls(executable_path=str(s.DRIVER_EXECUTABLE))
    return service_cls()


def _chrome(s: Settings) -> WebDriver:
    from selenium.webdriver.chrome.service import Service

    options = webdriver.ChromeOptions()
    if s.HEADLESS:
        options.add_argument("--headless=new")
    options.add_argument(s.window_size_arg())
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    if s.PROXY_SERVER:
        options.add_argument(f"--proxy-server={s.PROXY_SERVER}")
    return webdriver.Chrome(service=_service(Service, s), options=options)


def _firefox(s: Settings) -> WebDriver:
    from selenium.webdriver.firefox.service import Service

    options = webdriver.FirefoxOptions()
    if s.HEADLESS:
        options.add_argument("--headless")
    options.add_argument(f"--width={s.WINDOW_WIDTH}")
    options.add_argument(f"--height={s.WINDOW_HEIGHT}")
    if s.PROXY_SERVER:
        options.proxy = Proxy({"proxyType": ProxyType.MANUAL, "httpProxy": s.PROXY_SERVER, "sslProxy": s.PROXY_SERVER})
    return webdriver.Firefox(service=_service(Service, s), options=options)


def _edge(s: Settings) -> WebDriver:
    from selenium.webdriver.edge.service import Service

    options = webdriver.EdgeOptions()
    if s.HEADLESS:
        options.add_argument("--headless=new")
    options.add_argument(s.window_size_arg())
    if s.PROXY_SERVER:
        options.add_argument(f"--proxy-server={s.PROXY_SERVER}")
    return webdriver.Edge(service=_service(Service, s), options=options)


def _safari(s: Settings) -> WebDriver:
    from selenium.webdriver.safari.service import Service

    # safaridriver has no headless mode
    return webdriver.Safari(service=_service(Service, s))


def _internet_explorer(s: Settings) -> WebDriver:
    from selenium.webdriver.ie.service import Service

    return webdriver.Ie(service=_service(Service, s), options=webdriver.IeOptions())


def _remote(s: Settings) -> WebDriver:
    if not s.REMOTE_URL:
        raise ValueError("SELENIUM_REMOTE_URL must be set to use the remote driver")
    options = webdriver.ChromeOptions()
    if s.HEADLESS:
        options.add_argument("--headless=new")
    options.add_argument(s.window_size_arg())
    return webdriver.Remote(command_executor=s.REMOTE_URL, options=options)


_FACTORIES: Dict[str, DriverFactory] = {
    SeleniumWebDriver.chrome.value: _chrome,
    SeleniumWebDriver.firefox.value: _firefox,
    SeleniumWebDriver.edge.value: _edge,
    SeleniumWebDriver.safari.value: _safari,
    SeleniumWebDriver.internet_explorer.value: _internet_explorer,
    SeleniumWebDriver.remote.value: _remote,
}


# ---------- Public API ----------

def _key(kind: SeleniumWebDriver | str) -> str:
    return kind.value if isinstance(kind, SeleniumWebDriver) else str(kind).strip().lower()


def register_driver(kind: SeleniumWebDriver | str, factory: DriverFactory) -> None:
    """Add or replace the factory used for `kind`."""
    _FACTORIES[_key(kind)] = factory


def available_drivers() -> list[str]:
    return sorted(_FACTORIES)


def create_driver(kind: SeleniumWebDriver | str, settings: Optional[Settings] = None) -> WebDriver:
    """
    Build a WebDriver for `kind` and apply the configured timeouts.

    Raises:
        KeyError if no factory is registered for `kind`.
    """
    s = settings or get_settings()
    key = _key(kind)
    factory = _FACTORIES.get(key)
    if factory is None:
        raise KeyError(f"Unknown web driver {key!r}; available: {', '.join(available_drivers())}")

    log.info(f"Starting {key} web driver")
    driver = factory(s)
    driver.set_page_load_timeout(s.PAGE_LOAD_TIMEOUT_MS / 1000.0)
    if s.IMPLICIT_WAIT_MS:
        driver.implicitly_wait(s.IMPLICIT_WAIT_MS / 1000.0)
    return driver
