"""
Jinja2 template rendering.

Templates produce shell fragments and configuration files, therefore
undefined variables are errors, block tags leave no blank lines behind,
and ``quote`` and ``basename`` filters are available.
"""

import shlex
from typing import Any, Optional

import jinja2

from provisor.utils import FileError, Path, TemplateRenderError


def _filter_basename(value: Any) -> str:
    return Path(str(value)).name


def _filter_quote(value: Any) -> str:
    return shlex.quote(str(value))


TEMPLATE_FILTERS: dict[str, Any] = {
    'basename': _filter_basename,
    'quote': _filter_quote,
}


def default_template_environment() -> jinja2.Environment:
    # S701: nothing rendered here is HTML.
    environment = jinja2.Environment(  # noqa: S701
        undefined=jinja2.StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )

    environment.filters.update(TEMPLATE_FILTERS)

    return environment


def render_template(
    template: str,
    template_filepath: Optional[Path] = None,
    environment: Optional[jinja2.Environment] = None,
    **variables: Any,
) -> str:
    """
    Render a template, stripping surrounding whitespace from the result.

    :param template_filepath: where the template came from, for error
        messages.
    :raises TemplateRenderError: when the template cannot be parsed or
        rendered.
    """

    origin = f"template '{template_filepath}'" if template_filepath else 'template'
    environment = environment or default_template_environment()

    try:
        return environment.from_string(template).render(**variables).strip()

    except jinja2.TemplateSyntaxError as exc:
        raise TemplateRenderError(f'Could not parse {origin} at line {exc.lineno}.') from exc

    except jinja2.TemplateError as exc:
        raise TemplateRenderError(f'Could not render {origin}.') from exc


def render_template_file(
    template_filepath: Path,
    environment: Optional[jinja2.Environment] = None,
    **variables: Any,
) -> str:
    try:
        template = template_filepath.read_text()

    except OSError as exc:
        raise FileError(f"Could not open template '{template_filepath}'.") from exc

    return render_template(template, template_filepath, environment, **variables)
