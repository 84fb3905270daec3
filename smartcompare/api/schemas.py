"""Request/response schemas shared by the API routes."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from smartcompare.models import CandidateDeal, Condition, Listing, Platform, PricePoint, to_decimal
from smartcompare.reconcile.verification import VerificationStatus, from_status


class ListingIn(BaseModel):
    id: str
    title: str
    price: float
    vendor: str
    platform: Optional[str] = None
    condition: str = Condition.NEW.value
    url: str = ""
    external_id: Optional[str] = Field(default=None, alias="externalId")
    currency: str = "USD"
    image: str = ""
    rating: float = 0.0
    review_count: int = Field(default=0, alias="reviewCount")
    shipping: str = ""
    seller_trust_score: int = Field(default=0, ge=0, le=100, alias="sellerTrustScore")
    verification_status: str = Field(default="unverified", alias="verificationStatus")
    is_alternative: bool = Field(default=False, alias="isAlternative")
    average_price: Optional[float] = Field(default=None, ge=0, alias="averagePrice")

    model_config = {"populate_by_name": True}

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and Platform.parse(v) is None:
            raise ValueError(f"Invalid platform '{v}'. Available: {', '.join(p.value for p in Platform)}")
        return v

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v: str) -> str:
        if Condition.parse(v) is None:
            raise ValueError(f"Invalid condition '{v}'")
        return v

    @field_validator("verification_status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v.lower() not in {s.value for s in VerificationStatus}:
            raise ValueError(f"Invalid verification status '{v}'")
        return v.lower()

    @model_validator(mode="after")
    def check_alternative(self) -> "ListingIn":
        if self.is_alternative and self.verification_status != VerificationStatus.VERIFIED.value:
            raise ValueError("isAlternative requires verificationStatus 'verified'")
        return self

    def to_listing(self) -> Listing:
        return Listing(
            id=self.id,
            title=self.title,
            price=self.price,
            vendor=self.vendor,
            platform=Platform.parse(self.platform),
            condition=Condition.parse(self.condition),
            url=self.url,
            external_id=self.external_id,
            currency=self.currency,
            image=self.image,
            rating=self.rating,
            review_count=self.review_count,
            shipping=self.shipping,
            seller_trust_score=self.seller_trust_score,
            verification=from_status(self.verification_status, self.is_alternative),
            average_price=to_decimal(self.average_price),
        )


class DealIn(BaseModel):
    vendor: Optional[str] = None
    price: Optional[float] = None
    url: Optional[str] = None
    condition: Optional[str] = None

    def to_deal(self) -> CandidateDeal:
        return CandidateDeal.from_dict(self.model_dump())


class PricePointOut(BaseModel):
    timestamp: int
    price: float
    vendor: str

    @classmethod
    def from_point(cls, point: PricePoint) -> "PricePointOut":
        return cls(**point.to_dict())
