"""
Core package for the Selenium module.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from selenium_module.core.poller import wait_until, ConditionPoller
  from selenium_module.core.module import SeleniumModule
  from selenium_module.core.engine import run_flow, Engine
"""

__all__: list[str] = []
