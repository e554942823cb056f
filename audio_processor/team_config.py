"""
Team ammo configuration as stored by the dashboard
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ConvexModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RequiredInfo(_ConvexModel):
    id: str
    label: str
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class ScriptStage(_ConvexModel):
    id: str
    name: str
    description: Optional[str] = None
    order: int = 0


class CommonObjection(_ConvexModel):
    id: str
    label: str
    keywords: List[str] = Field(default_factory=list)


class AmmoCategory(_ConvexModel):
    id: str
    name: str
    color: str = ""
    keywords: List[str] = Field(default_factory=list)


class ManifestoStage(_ConvexModel):
    id: str
    name: str
    goal: Optional[str] = None
    good_behaviors: List[str] = Field(default_factory=list)
    bad_behaviors: List[str] = Field(default_factory=list)
    key_moments: List[str] = Field(default_factory=list)
    order: int = 0


class ManifestoObjection(_ConvexModel):
    id: str
    name: str
    rebuttals: List[str] = Field(default_factory=list)


class CallManifesto(_ConvexModel):
    stages: List[ManifestoStage] = Field(default_factory=list)
    objections: List[ManifestoObjection] = Field(default_factory=list)


class AmmoConfig(_ConvexModel):
    team_id: str = ""
    required_info: List[RequiredInfo] = Field(default_factory=list)
    script_framework: List[ScriptStage] = Field(default_factory=list)
    common_objections: List[CommonObjection] = Field(default_factory=list)
    ammo_categories: List[AmmoCategory] = Field(default_factory=list)
    offer_description: str = ""
    problem_solved: str = ""
    call_manifesto: Optional[CallManifesto] = None
