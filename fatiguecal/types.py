from collections.abc import Callable
from types import SimpleNamespace
from typing import Any, TypeVar

import jax.tree_util as jtu

__all__ = [
    "TreeNamespace",
    "dict_to_namespace",
]


TNS_REPR_INDENT_STR = "  "


NT = TypeVar("NT", bound=SimpleNamespace)


def _convert_value(value: Any, to_type: type, exclude: Callable) -> Any:
    if exclude(value):
        return value

    if isinstance(value, dict):
        return to_type(**{str(k): _convert_value(v, to_type, exclude) for k, v in value.items()})

    if isinstance(value, (list, tuple)):
        return type(value)(_convert_value(v, to_type, exclude) for v in value)

    return value


def dict_to_namespace(
    d: dict,
    to_type: type[NT] = SimpleNamespace,
    exclude: Callable = lambda x: False,
) -> NT:
    """Convert a nested dictionary to a nested SimpleNamespace."""
    return _convert_value(d, to_type=to_type, exclude=exclude)


@jtu.register_pytree_with_keys_class
class TreeNamespace(SimpleNamespace):
    """A simple namespace that's a PyTree.

    Gives attribute access to the contents of a nested config dict, e.g.
    `config['solver']['max_steps']` becomes `TreeNamespace(**config).solver.max_steps`,
    while still allowing `jax.tree.map` over the leaves.
    """

    def tree_flatten_with_keys(self):
        children_with_keys = [(jtu.GetAttrKey(k), v) for k, v in self.__dict__.items()]
        aux_data = self.__dict__.keys()
        return children_with_keys, aux_data

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(**dict(zip(aux_data, children)))

    def __repr__(self):
        return self._repr_with_indent(0)

    def _repr_with_indent(self, level):
        cls_name = self.__class__.__name__
        if not any(self.__dict__):
            return f"{cls_name}()"

        attr_strs = []
        for name, attr in self.__dict__.items():
            if isinstance(attr, TreeNamespace):
                attr_repr = attr._repr_with_indent(level + 1)
            else:
                attr_repr = repr(attr)
            attr_strs.append(f"{name}={attr_repr},")

        current_indent = TNS_REPR_INDENT_STR * level
        inner_str = "\n".join(current_indent + TNS_REPR_INDENT_STR + s for s in attr_strs)

        return f"{cls_name}(\n" + inner_str + f"\n{current_indent})"

    # Mapping protocol, so the namespace can be passed where a dict is expected
    def __iter__(self):
        return iter(self.__dict__)

    def __getitem__(self, key):
        return self.__dict__[key]

    def keys(self):
        return self.__dict__.keys()

    def items(self):
        return self.__dict__.items()

    def values(self):
        return self.__dict__.values()
