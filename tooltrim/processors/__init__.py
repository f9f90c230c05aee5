"""Processor discovery: every Processor subclass in this package, by priority."""

import importlib
import inspect
import pkgutil

from .base import Processor


def discover_processors() -> list[Processor]:
    """Import every module of the package and instantiate its processors."""
    processors = []
    for module_info in pkgutil.iter_modules(__path__):
        if module_info.name == "base":
            continue
        module = importlib.import_module(f"{__name__}.{module_info.name}")
        for _, cls in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(cls, Processor)
                and cls is not Processor
                and cls.__module__ == module.__name__
                and not inspect.isabstract(cls)
            ):
                processors.append(cls())
    processors.sort(key=lambda p: p.priority)
    return processors
