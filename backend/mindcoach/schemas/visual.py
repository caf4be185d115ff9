"""Visual generation schemas — one response variant per visual type."""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from mindcoach.schemas.base import CamelModel

VisualHint = Literal["diagram", "comparison", "flowchart", "mindmap", "ai-image"]


class VisualRequest(CamelModel):
    query: str = Field(min_length=1)
    visual_type: Optional[VisualHint] = None


class FlowNodeData(CamelModel):
    label: str


class FlowPosition(CamelModel):
    x: float
    y: float


class FlowNode(CamelModel):
    id: str
    type: Optional[Literal["input", "output", "default"]] = None
    data: FlowNodeData
    position: FlowPosition
    style: Optional[dict] = None


class FlowEdge(CamelModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: Optional[str] = None
    animated: Optional[bool] = None


class FlowData(CamelModel):
    nodes: list[FlowNode] = []
    edges: list[FlowEdge] = []


class ComparisonItem(CamelModel):
    name: str
    value: float
    value2: Optional[float] = None
    explanation: Optional[str] = None


class VisualBase(CamelModel):
    title: str
    description: str = ""
    text_explanation: str = ""

    learning_objective: Optional[str] = None
    prerequisites: Optional[str] = None
    key_takeaways: Optional[list[str]] = None
    common_mistakes: Optional[list[str]] = None
    real_world_example: Optional[str] = None
    # keyed by compared item name
    real_world_examples: Optional[dict[str, str]] = None
    when_to_use: Optional[dict[str, str]] = None
    practice_prompt: Optional[str] = None


class AIImageVisual(VisualBase):
    type: Literal["ai-image"] = "ai-image"
    image_url: str


class ComparisonChartVisual(VisualBase):
    type: Literal["comparison-chart"] = "comparison-chart"
    data: list[ComparisonItem] = []
    chart_type: Literal["bar", "radar", "line"] = "bar"


class FlowDiagramVisual(VisualBase):
    type: Literal["flow-diagram"] = "flow-diagram"
    flow_data: FlowData


class MermaidVisual(VisualBase):
    """Legacy Mermaid payload; still accepted, never generated."""
    type: Literal["mermaid"] = "mermaid"
    content: str


Visual = Annotated[
    Union[AIImageVisual, ComparisonChartVisual, FlowDiagramVisual, MermaidVisual],
    Field(discriminator="type"),
]
