"""
Data containers.

Runtime state lives in plain data classes. Configuration read from files
is validated by pydantic models derived from :py:class:`MetadataContainer`.
"""

from dataclasses import dataclass as container
from dataclasses import field as simple_field
from typing import Self

from pydantic import BaseModel, ConfigDict, ValidationError

__all__ = [
    'MetadataContainer',
    'container',
    'key_to_option',
    'simple_field',
]


def key_to_option(key: str) -> str:
    """
    ``wait_tick`` is spelled ``wait-tick`` in configuration files
    """

    return key.replace('_', '-')


class MetadataContainer(BaseModel):
    """
    A model of a configuration file section, unknown keys are rejected
    """

    model_config = ConfigDict(
        alias_generator=key_to_option,
        populate_by_name=True,
        extra='forbid',
        validate_default=True,
        validate_assignment=True,
    )

    @classmethod
    def from_yaml(cls, yaml: str) -> Self:
        import provisor.utils

        try:
            return cls.model_validate(provisor.utils.yaml_to_dict(yaml))

        except ValidationError as error:
            raise provisor.utils.SpecificationError(
                'Invalid configuration in YAML data.'
            ) from error
