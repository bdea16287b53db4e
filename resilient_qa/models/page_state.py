"""Page snapshot models — the view of a page the healer works against."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class BoundingBox(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height


class ElementInfo(BaseModel):
    tag_name: str = ""
    selector: str = ""
    text: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)
    bounding_box: Optional[BoundingBox] = None
    is_visible: bool = True
    is_interactable: bool = True

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


class PageState(BaseModel):
    url: str = ""
    title: str = ""
    interactive_elements: list[ElementInfo] = Field(default_factory=list)
    html: str = ""
    # Raw PNG bytes, excluded from serialized snapshots
    screenshot: Optional[bytes] = Field(default=None, exclude=True)

    def elements_matching(self, selector: str) -> list[ElementInfo]:
        return [el for el in self.interactive_elements if el.selector == selector]
