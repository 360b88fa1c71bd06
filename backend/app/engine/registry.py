"""Node factory registry.

Node modules register themselves with @register_node at import time;
get_registry() imports the built-in node package before returning.
"""

from collections.abc import Callable
from dataclasses import dataclass

from app.engine.errors import UnknownNodeTypeError
from app.engine.node_model import NodeModel


@dataclass(frozen=True)
class NodeFactory:
    id: str
    name: str
    category: str
    model_class: type[NodeModel]
    description: str = ""

    @property
    def input_ports(self) -> int:
        return self.model_class.input_ports

    @property
    def output_ports(self) -> int:
        return self.model_class.output_ports

    def create_node_model(self) -> NodeModel:
        return self.model_class()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "inputPorts": self.input_ports,
            "outputPorts": self.output_ports,
        }


class NodeRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, NodeFactory] = {}

    def __contains__(self, factory_id: str) -> bool:
        return factory_id in self._factories

    def register_factory(self, factory: NodeFactory) -> None:
        if factory.id in self._factories:
            raise ValueError(f"Node factory '{factory.id}' is already registered")
        self._factories[factory.id] = factory

    def get_factory(self, factory_id: str) -> NodeFactory | None:
        return self._factories.get(factory_id)

    def require_factory(self, factory_id: str) -> NodeFactory:
        factory = self._factories.get(factory_id)
        if factory is None:
            raise UnknownNodeTypeError(factory_id)
        return factory

    def get_all_factories(self) -> list[NodeFactory]:
        return list(self._factories.values())

    def get_factories_by_category(self) -> dict[str, list[NodeFactory]]:
        grouped: dict[str, list[NodeFactory]] = {}
        for factory in self._factories.values():
            grouped.setdefault(factory.category, []).append(factory)
        return grouped


registry = NodeRegistry()


def register_node(
    factory_id: str,
    name: str,
    category: str,
    description: str = "",
) -> Callable[[type[NodeModel]], type[NodeModel]]:
    def decorator(cls: type[NodeModel]) -> type[NodeModel]:
        cls.factory_id = factory_id
        registry.register_factory(
            NodeFactory(
                id=factory_id,
                name=name,
                category=category,
                model_class=cls,
                description=description,
            )
        )
        return cls

    return decorator


def get_registry() -> NodeRegistry:
    import app.engine.nodes  # noqa: F401

    return registry
