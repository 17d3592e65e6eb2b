"""specimen: randomized test-object generation.

    import specimen
    from specimen import gen, select

    person = specimen.create(Person)
    people = (
        specimen.of_list(Person)
        .size(5)
        .generate(select.field(Person, "age"), gen.ints().range(18, 65))
        .create()
    )
"""

__version__ = "0.3.0"

from . import assign, when
from .api import (
    Blueprint,
    CartesianBlueprint,
    CollectionBlueprint,
    Model,
    Result,
    create,
    instantiate,
    of,
    of_cartesian_product,
    of_list,
    of_map,
    of_set,
    record_seeds,
    seeded,
)
from .config import Keys, Settings, configure, get_settings, reset_settings, use_settings
from .errors import (
    AmbiguousSelectorPrecedence,
    CyclicAssignment,
    FeedError,
    FeedExhausted,
    FeedKeyNotFound,
    GenerationExhausted,
    SelectorError,
    SettingsError,
    SpecimenError,
    UnresolvableType,
    UnusedSelectorError,
)
from .feed import DataSource, Feed, column, function, template
from .generators import gen
from .generators.registry import register_generator
from .selectors import select

__all__ = [
    "AmbiguousSelectorPrecedence",
    "Blueprint",
    "CartesianBlueprint",
    "CollectionBlueprint",
    "CyclicAssignment",
    "DataSource",
    "Feed",
    "FeedError",
    "FeedExhausted",
    "FeedKeyNotFound",
    "GenerationExhausted",
    "Keys",
    "Model",
    "Result",
    "SelectorError",
    "Settings",
    "SettingsError",
    "SpecimenError",
    "UnresolvableType",
    "UnusedSelectorError",
    "__version__",
    "assign",
    "column",
    "configure",
    "create",
    "function",
    "gen",
    "get_settings",
    "instantiate",
    "of",
    "of_cartesian_product",
    "of_list",
    "of_map",
    "of_set",
    "record_seeds",
    "register_generator",
    "reset_settings",
    "seeded",
    "select",
    "template",
    "use_settings",
    "when",
]
