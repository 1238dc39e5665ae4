from __future__ import annotations

import pytest

import dynomapper_py as dynomapper


def test_init_exposes_lazy_exports_via_getattr() -> None:
    assert dynomapper._normalize_repo_version("1.2.3") == "1.2.3"
    assert dynomapper._normalize_repo_version("1.2.3-rc.4") == "1.2.3rc4"

    assert callable(dynomapper.Table)
    assert callable(dynomapper.Item)
    assert callable(dynomapper.Query)
    assert callable(dynomapper.Scan)
    assert callable(dynomapper.ParallelScan)
    assert callable(dynomapper.Gateway)
    assert callable(dynomapper.create_client_config)


def test_init_all_names_resolve() -> None:
    for name in dynomapper.__all__:
        assert getattr(dynomapper, name) is not None


def test_init_unknown_attribute() -> None:
    with pytest.raises(AttributeError):
        dynomapper.DoesNotExist  # noqa: B018
