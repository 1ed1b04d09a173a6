import uuid
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import Field

from .common import CamelModel

FdaSection = Literal["contraindications", "warnings", "dosage", "interactions", "indications"]


class FdaDrugQuery(CamelModel):
    drug_name: str
    sections: Optional[List[FdaSection]] = None


class PubMedQuery(CamelModel):
    condition: str
    medication: Optional[str] = None
    max_articles: Optional[int] = Field(default=None, ge=1, le=100)


class GuidelineIn(CamelModel):
    title: str
    content: str
    source: str
    category: Optional[str] = None
    severity_relevance: Optional[List[str]] = None


class InteractionIn(CamelModel):
    drug1: str
    drug2: str
    severity: str
    description: str
    recommendation: str


class IngestFda(CamelModel):
    type: Literal["fda"]
    drugs: List[FdaDrugQuery]


class IngestPubMed(CamelModel):
    type: Literal["pubmed"]
    queries: List[PubMedQuery]


class IngestGuidelines(CamelModel):
    type: Literal["guidelines"]
    guidelines: List[GuidelineIn]


class IngestInteractions(CamelModel):
    type: Literal["interactions"]
    interactions: List[InteractionIn]


IngestRequest = Annotated[
    Union[IngestFda, IngestPubMed, IngestGuidelines, IngestInteractions],
    Field(discriminator="type"),
]


class SevereConditionOut(CamelModel):
    id: uuid.UUID
    condition_name: str
    keywords: List[str] = Field(default_factory=list)
    vital_thresholds: Optional[Dict[str, float]] = None
    risk_category: str
    required_validations: List[str] = Field(default_factory=list)
    auto_escalate: bool = False
