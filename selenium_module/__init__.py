"""Selenium WebDriver operations, condition polling and YAML flows."""

__version__ = "1.0.0"
