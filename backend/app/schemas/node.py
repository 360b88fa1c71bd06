"""Pydantic schemas for the node type catalogue."""

from pydantic import BaseModel


class NodeTypeResponse(BaseModel):
    id: str
    name: str
    category: str
    description: str
    inputPorts: int
    outputPorts: int


class NodeCategoryResponse(BaseModel):
    category: str
    nodes: list[NodeTypeResponse]


class NodeCatalogueResponse(BaseModel):
    categories: list[NodeCategoryResponse]
    total: int


class CronbachCsvAnalysisRequest(BaseModel):
    csv_text: str


class CronbachCsvAnalysisResponse(BaseModel):
    headers: list[str]
    optionMap: dict[str, int]
    questionCount: int
