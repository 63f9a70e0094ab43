import json
import time
from pathlib import Path

import pytest
from selenium.webdriver.common.by import By

from selenium_module.core import drivers, engine as engine_mod
from selenium_module.core.actions import as_condition_result
from selenium_module.core.engine import Engine
from selenium_module.core.flow_loader import Flow

from fakes import FakeDriver, FakeElement


def search_flow(**extra) -> Flow:
    data = {
        "name": "search",
        "steps": [
            {"action": "get", "url": "https://www.example.com"},
            {"action": "find_element", "by": {"name": "q"}},
            {"action": "send_keys", "keys": "cheese"},
            {"action": "submit"},
            {
                "action": "until",
                "timeout_ms": 500,
                "condition": [
                    {"action": "get_title"},
                    {"action": "expect", "contains": "CHEESE", "ignore_case": True},
                ],
            },
            {"action": "find_elements", "by": {"class_name": "result"}},
        ],
    }
    data.update(extra)
    return Flow.model_validate(data)


@pytest.fixture
def page(fake_drivers, monkeypatch):
    """Make every fake driver serve a search box whose submit changes the title."""
    from fakes import FakeDriver

    original_init = FakeDriver.__init__

    def init(self, settings=None):
        original_init(self, settings)

        def on_submit(el):
            self.title = f"{el.get_attribute('value')} - Search"

        self.add(By.NAME, "q", FakeElement(on_submit=on_submit))
        self.add(By.CLASS_NAME, "result", FakeElement(tag="li", text="one"), FakeElement(tag="li", text="two"))

    monkeypatch.setattr(FakeDriver, "__init__", init)
    return fake_drivers


def test_run_flow_carries_payload_between_steps(page, settings):
    result = Engine(settings=settings).run_flow(search_flow())
    assert result["ok"], result
    assert result["steps"] == 6
    assert len(result["payload"]) == 2
    driver = page[0]
    assert driver.visited == ["https://www.example.com"]
    assert driver.title == "cheese - Search"
    assert driver.quit_calls == 1

    run_dir = Path(result["run_dir"])
    manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["flow"] == "search"
    assert manifest["driver"] == "fake"
    assert (run_dir / "run.log").exists()


def test_failed_step_is_reported(page, settings):
    flow = Flow.model_validate({
        "name": "missing",
        "steps": [
            {"action": "get", "url": "https://www.example.com"},
            {"action": "find_element", "by": {"id": "nope"}, "name": "find the button"},
        ],
    })
    result = Engine(settings=settings).run_flow(flow)
    assert not result["ok"]
    assert result["error_type"] == "NoSuchElementException"
    assert result["failed_step"] == {"index": 2, "action": "find_element", "name": "find the button"}
    assert page[0].quit_calls == 1


def test_optional_step_failure_continues(page, settings):
    flow = Flow.model_validate({
        "name": "optional",
        "steps": [
            {"action": "find_element", "by": {"id": "cookie-banner"}, "optional": True},
            {"action": "find_element", "by": {"name": "q"}},
            {"action": "get_tag_name"},
        ],
    })
    result = Engine(settings=settings).run_flow(flow)
    assert result["ok"], result
    assert result["payload"] == "input"


def test_until_timeout_fails_flow(page, settings):
    flow = Flow.model_validate({
        "name": "never",
        "steps": [
            {"action": "get_title"},
            {"action": "until", "timeout_ms": 50, "condition": [{"action": "expect", "equals": "never"}]},
        ],
    })
    result = Engine(settings=settings).run_flow(flow)
    assert not result["ok"]
    assert result["error_type"] == "WaitTimeoutError"
    assert result["failed_step"]["action"] == "until"


def test_element_step_requires_element_payload(page, settings):
    flow = Flow.model_validate({"name": "no-element", "steps": [{"action": "click"}]})
    result = Engine(settings=settings).run_flow(flow)
    assert result["error_type"] == "TypeError"


def test_flow_driver_override(page, settings):
    result = Engine(settings=settings.model_copy(update={"DRIVER": "chrome"})).run_flow(
        Flow.model_validate({"name": "d", "driver": "fake", "steps": [{"action": "get_title"}]})
    )
    assert result["ok"], result


def test_unknown_driver_fails_cleanly(settings):
    result = Engine(settings=settings, driver="netscape").run_flow(
        Flow.model_validate({"name": "d", "steps": [{"action": "get_title"}]})
    )
    assert not result["ok"]
    assert result["error_type"] == "KeyError"
    assert "failed_step" not in result


def test_run_flow_from_path(page, settings, tmp_path, monkeypatch):
    monkeypatch.setattr(engine_mod, "get_settings", lambda: settings)
    f = tmp_path / "title.yaml"
    f.write_text("steps:\n  - action: get\n    url: https://www.example.com\n  - action: get_current_url\n", encoding="utf-8")
    result = engine_mod.run_flow(f)
    assert result["ok"], result
    assert result["payload"] == "https://www.example.com"


@pytest.mark.parametrize(
    "payload, expected",
    [(True, True), (False, False), ("TRUE", True), ("true ", True), ("false", False),
     ("yes", False), (1, True), (0, False), ([], False), (["x"], True), (None, False)],
)
def test_condition_result_coercion(payload, expected):
    assert as_condition_result(payload) is expected


def test_continue_on_error_runs_past_failed_step(page, settings):
    flow = Flow.model_validate({
        "name": "keep-going",
        "steps": [
            {"action": "find_element", "by": {"id": "missing"}},
            {"action": "find_element", "by": {"name": "q"}},
            {"action": "get_tag_name"},
        ],
    })
    result = Engine(settings=settings.model_copy(update={"CONTINUE_ON_ERROR": True})).run_flow(flow)
    assert result["ok"], result
    assert result["payload"] == "input"


def test_skipped_step_still_waits(page, settings, monkeypatch):
    waits = []
    monkeypatch.setattr(engine_mod, "sleep_ms", waits.append)
    flow = Flow.model_validate({
        "name": "waits",
        "default_after_wait_ms": 5,
        "steps": [
            {"action": "find_element", "by": {"id": "missing"}, "optional": True, "after_wait_ms": 30},
            {"action": "get_title"},
        ],
    })
    result = Engine(settings=settings).run_flow(flow)
    assert result["ok"], result
    assert waits == [30, 5]


def test_navigation_retried_on_webdriver_error(settings, monkeypatch):
    created = []

    def flaky(s):
        d = FakeDriver(s)
        d.get_failures = 1
        created.append(d)
        return d

    monkeypatch.setitem(drivers._FACTORIES, "flaky", flaky)
    flow = Flow.model_validate({
        "name": "flaky",
        "steps": [{"action": "get", "url": "https://www.example.com"}, {"action": "get_current_url"}],
    })
    retrying = settings.model_copy(update={"MAX_RETRIES": 1, "RETRY_DELAY": 0})
    result = Engine(settings=retrying, driver="flaky").run_flow(flow)
    assert result["ok"], result
    assert result["payload"] == "https://www.example.com"
    assert created[0].visited == ["https://www.example.com"]

    created.clear()
    result = Engine(settings=settings, driver="flaky").run_flow(flow)
    assert result["error_type"] == "WebDriverException"


def test_missing_element_is_not_retried(page, settings):
    flow = Flow.model_validate({"name": "missing", "steps": [{"action": "find_element", "by": {"id": "nope"}}]})
    result = Engine(settings=settings.model_copy(update={"MAX_RETRIES": 3, "RETRY_DELAY": 0})).run_flow(flow)
    assert result["error_type"] == "NoSuchElementException"
    assert page[0].find_calls == 1


def test_until_condition_steps_do_not_retry(page, settings):
    flow = Flow.model_validate({
        "name": "bounded",
        "steps": [
            {
                "action": "until",
                "timeout_ms": 100,
                "condition": [{"action": "find_element", "by": {"id": "x"}}, {"action": "is_displayed"}],
            },
        ],
    })
    slow_retries = settings.model_copy(update={"POLL_INTERVAL_MS": 50, "MAX_RETRIES": 1, "RETRY_DELAY": 500})
    start = time.monotonic()
    result = Engine(settings=slow_retries).run_flow(flow)
    elapsed_ms = (time.monotonic() - start) * 1000
    assert result["error_type"] == "WaitTimeoutError"
    assert elapsed_ms < 450
    assert page[0].find_calls >= 2


def test_expect_compares_booleans_in_lower_case(page, settings):
    flow = Flow.model_validate({
        "name": "visible",
        "steps": [
            {"action": "find_element", "by": {"name": "q"}},
            {"action": "is_displayed"},
            {"action": "expect", "equals": "true"},
        ],
    })
    result = Engine(settings=settings).run_flow(flow)
    assert result["ok"], result
    assert result["payload"] is True


def test_run_log_holds_only_its_own_flow(page, settings):
    result = Engine(settings=settings).run_flow(search_flow())
    other = Engine(settings=settings).run_flow(
        Flow.model_validate({"name": "other", "steps": [{"action": "get_title"}]})
    )
    lines = [json.loads(l) for l in (Path(result["run_dir"]) / "run.log").read_text(encoding="utf-8").splitlines()]
    assert lines
    assert {l["flow"] for l in lines} == {"search"}
    assert any(l.get("step") == 5 and l.get("action") == "until" for l in lines)
    other_lines = (Path(other["run_dir"]) / "run.log").read_text(encoding="utf-8").splitlines()
    assert all(json.loads(l)["flow"] == "other" for l in other_lines)
