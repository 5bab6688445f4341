from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class GraphNode(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    icon_url: str


class GraphLink(BaseModel):
    source: str
    target: str


class GraphResponse(BaseModel):
    nodes: list[GraphNode]
    links: list[GraphLink]
