from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .payloads import PlainTextPayload, ResponsePayload

KnowledgeType = Literal["link", "document", "yandex_disk", "xml_feed"]


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    session_id: Optional[str] = Field(default=None)
    message: str


class Attachment(BaseModel):
    """File or image attached to an assistant message."""
    name: str
    url: str
    type: str = "image"


class StoredMessage(BaseModel):
    """Persisted chat message; the payload is the single source of structured content."""
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: float
    attachments: List[Attachment] = Field(default_factory=list)
    payload: Optional[ResponsePayload] = None

    def model_post_init(self, __context: Any) -> None:
        # User text and legacy records without a payload are plain text by construction.
        if self.payload is None:
            self.payload = PlainTextPayload(text=self.content)


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    session_id: str
    message: StoredMessage


class SessionSummary(BaseModel):
    """Lightweight session summary for sidebar listing."""
    session_id: str
    title: str
    updated_at: float


class ProductRecord(BaseModel):
    """One offer from the product feed."""
    vendorCode: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    picture: Optional[str] = None
    price: Optional[str] = None
    params: Dict[str, str] = Field(default_factory=dict)

    @field_validator("vendorCode", "price", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Optional[str]:
        # Feeds deliver numeric codes and prices; keep them as text.
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("params", mode="before")
    @classmethod
    def _coerce_params(cls, value: Any) -> Dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {str(key): "" if val is None else str(val) for key, val in value.items()}


class KnowledgeItem(BaseModel):
    """Administrator-curated knowledge record."""
    id: str
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None
    file_url: Optional[str] = None
    image_url: Optional[str] = None
    article_code: Optional[str] = None
    type: KnowledgeType = "link"
    is_ai_source: bool = False
    is_public: bool = False
    categories: List[str] = Field(default_factory=list)
    xml_data: Optional[Dict[str, Any]] = None
    created_date: Optional[str] = None
    updated_date: Optional[str] = None

    def feed_products(self) -> List[ProductRecord]:
        """Return the products stored on an xml_feed item, or an empty list."""
        if not self.xml_data:
            return []
        products = self.xml_data.get("products") or []
        return [ProductRecord.model_validate(product) for product in products if isinstance(product, dict)]


class KnowledgeCreate(BaseModel):
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None
    file_url: Optional[str] = None
    image_url: Optional[str] = None
    article_code: Optional[str] = None
    type: KnowledgeType = "link"
    is_ai_source: bool = False
    is_public: bool = False
    categories: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title is required")
        return value.strip()


class KnowledgeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None
    file_url: Optional[str] = None
    image_url: Optional[str] = None
    article_code: Optional[str] = None
    type: Optional[KnowledgeType] = None
    is_ai_source: Optional[bool] = None
    is_public: Optional[bool] = None
    categories: Optional[List[str]] = None


class QuoteRequest(BaseModel):
    """Calculator input: the product card plus room parameters."""
    product: ProductRecord
    area: float
    layout: Literal["straight", "diagonal", "herringbone"] = "straight"
    discount_percent: float = 0.0


class CustomerInfo(BaseModel):
    full_name: Optional[str] = None
    email: str
    phone_number: Optional[str] = None
    city: Optional[str] = None


class QuoteEmailRequest(QuoteRequest):
    customer: CustomerInfo


class OrderRequest(BaseModel):
    """Order form submitted from a product card."""
    product: ProductRecord
    user_name: str
    user_email: str
    phone_number: str
    city: str
    retail_point: str
    legal_entity_id: Optional[str] = None
    quantity: int = 1
    total_cost: float = 0.0
    comment: Optional[str] = None


class FeedSyncResponse(BaseModel):
    item_id: str
    products_count: int


class FAQCreate(BaseModel):
    question: str
    answer: str
    categories: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    order: int = 0
    is_published: bool = True

    @field_validator("question", "answer")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question and answer are required")
        return value.strip()


class VideoCreate(BaseModel):
    title: str
    description: Optional[str] = None
    url: str
    platform: str = "unknown"
    embed_url: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    order: int = 0
    is_published: bool = True


class CategoryCreate(BaseModel):
    """FAQ or video category."""
    name: str
    description: Optional[str] = None
    order: int = 0
    is_active: bool = True


class AISettingsUpdate(BaseModel):
    """Assistant settings; system_prompt is the persona used for grounded answers."""
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    system_prompt: Optional[str] = None
    yandex_disk_path: Optional[str] = None
    use_only_knowledge_base: Optional[bool] = None
    enable_external_search: Optional[bool] = None
