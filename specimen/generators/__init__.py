"""Value generator registry and generator specs."""

from .registry import GeneratorRegistry, default_registry, register_generator
from .specs import GeneratorContext, GeneratorSpec, as_spec

__all__ = [
    "GeneratorContext",
    "GeneratorRegistry",
    "GeneratorSpec",
    "as_spec",
    "default_registry",
    "register_generator",
]
