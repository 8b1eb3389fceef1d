"""Logistics back office: dashboard data, vendor proxies and payment reconciliation."""

from typing import Any

__all__ = ["create_app"]


def __getattr__(name: str) -> Any:
    if name == "create_app":
        from logistics_hub.api.app import create_app as _create_app

        return _create_app
    raise AttributeError(name)
