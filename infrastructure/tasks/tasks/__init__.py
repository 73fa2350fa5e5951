"""Task modules grouped by domain.

Import side effects register Celery tasks once this package is imported.
"""
from . import notifications  # noqa: F401 to register tasks
from . import webhooks  # noqa: F401

__all__ = ["notifications", "webhooks"]
