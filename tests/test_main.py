import uvicorn

import main


def test_main_runs_app_under_uvicorn(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    main.main()

    assert calls == [(("main:app",), {"host": "0.0.0.0", "port": 8000, "reload": False})]


def test_every_report_has_a_route() -> None:
    paths = {route.path for route in main.app.routes}
    assert "/api/category-spending" in paths
    assert "/api/detail/{kind}" in paths
    assert "/api/cache/refresh" in paths
