"""Rendering of host-level configuration files from Jinja2 templates.

Templates live in ``clusterup/templates`` and are rendered with strict
undefined handling so a missing variable is an error, not an empty string.
"""
import logging
import os
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from .errors import BootstrapError

logger = logging.getLogger("clusterup.render")


class TemplateError(BootstrapError):
    """Raised when a template cannot be rendered."""
    pass


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


_env = Environment(
    loader=FileSystemLoader(get_template_path()),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined
)


def render(name: str, **context: Any) -> str:
    """Render the named template with ``context``.

    Raises:
        TemplateError: If the template is missing, malformed or under-supplied
    """
    try:
        return _env.get_template(name).render(**context)
    except TemplateNotFound as e:
        raise TemplateError(f"Template not found: {e}") from e
    except TemplateSyntaxError as e:
        raise TemplateError(f"Template syntax error in {name}: {e}") from e
    except UndefinedError as e:
        raise TemplateError(f"Missing required template variable in {name}: {e}") from e
