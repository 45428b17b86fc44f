from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import SimpleNamespace


def _fake_locust_module():
    def task(weight=1):
        def decorator(fn):
            fn._task_weight = weight
            return fn

        return decorator

    return SimpleNamespace(HttpUser=object, task=task, between=lambda a, b: (a, b))


def test_root_locustfile_imports_without_real_locust(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "locust", _fake_locust_module())

    path = Path(__file__).resolve().parents[3] / "locustfile.py"
    spec = importlib.util.spec_from_file_location("root_locustfile_test", path)
    assert spec and spec.loader
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)

    assert hasattr(mod, "WastePolicyUser")
    assert mod.WastePolicyUser.wait_time == (1, 3)
    assert mod.WastePolicyUser.map_capture._task_weight == 5
    assert mod.WastePolicyUser.load_openapi._task_weight == 1

    calls = []
    fake_client = SimpleNamespace(
        get=lambda path: calls.append(("GET", path, None)),
        post=lambda path, json=None: calls.append(("POST", path, json)),
    )
    fake_self = SimpleNamespace(client=fake_client)
    mod.WastePolicyUser.map_capture(fake_self)
    mod.WastePolicyUser.load_openapi(fake_self)

    assert calls == [
        ("POST", "/python/api/v1/map", mod.SAMPLE_REQUEST),
        ("GET", "/python/openapi.json", None),
    ]
