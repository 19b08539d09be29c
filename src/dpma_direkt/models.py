from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
_DE_ZIP_RE = re.compile(r"^\d{5}$")
_IBAN_RE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{4,30}$")
_BIC_RE = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")
_DATA_URL_PREFIX_RE = re.compile(r"^data:[^;,]+;base64,")


class _RequestModel(BaseModel):
    # JSON requests use camelCase; Python callers may use field names.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )


class Address(_RequestModel):
    street: str = Field(min_length=1)
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    zip: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: str = "DE"

    @model_validator(mode="after")
    def _validate_country_and_zip(self) -> "Address":
        if not _COUNTRY_RE.match(self.country):
            raise ValueError("country must be a two-letter upper-case ISO code (e.g. 'DE')")
        if self.country == "DE" and not _DE_ZIP_RE.match(self.zip):
            raise ValueError("zip must have exactly 5 digits for German addresses")
        return self


class NaturalPersonApplicant(_RequestModel):
    type: Literal["natural"] = "natural"
    salutation: Optional[str] = None
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    name_suffix: Optional[str] = None
    address: Address

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class LegalEntityApplicant(_RequestModel):
    type: Literal["legal"] = "legal"
    company_name: str = Field(min_length=1)
    legal_form: Optional[str] = None
    address: Address

    @property
    def display_name(self) -> str:
        return self.company_name


Applicant = Annotated[Union[NaturalPersonApplicant, LegalEntityApplicant], Field(discriminator="type")]


class SanctionsDeclaration(_RequestModel):
    """EU sanctions declaration (Council Regulation 833/2014, Art. 5k) required from natural persons."""

    has_russian_nationality: bool
    has_russian_residence: bool


class Contact(_RequestModel):
    email: str
    telephone: Optional[str] = None
    fax: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("invalid e-mail address")
        return v


class DeliveryAddress(_RequestModel):
    """
    Where the office sends correspondence.

    By default the applicant's address is reused; set `copy_from_applicant: false` to enter a separate one.
    """

    copy_from_applicant: bool = True
    type: Literal["natural", "legal"] = "natural"
    salutation: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    legal_form: Optional[str] = None
    address: Optional[Address] = None
    contact: Optional[Contact] = None

    @model_validator(mode="after")
    def _require_manual_fields(self) -> "DeliveryAddress":
        if self.copy_from_applicant:
            return self
        if self.address is None:
            raise ValueError("address is required when copyFromApplicant is false")
        if self.contact is None:
            raise ValueError("contact is required when copyFromApplicant is false")
        if self.type == "natural" and not (self.first_name and self.last_name):
            raise ValueError("firstName and lastName are required for a natural-person delivery address")
        if self.type == "legal" and not self.company_name:
            raise ValueError("companyName is required for a legal-entity delivery address")
        return self


class _MarkBase(_RequestModel):
    color_elements: list[str] = Field(default_factory=list)
    has_non_latin_characters: bool = False
    description: Optional[str] = None


class WordMark(_MarkBase):
    type: Literal["word"] = "word"
    text: str = Field(min_length=1, max_length=500)


class _ImageMark(_MarkBase):
    image_data: bytes = Field(repr=False)
    image_mime_type: str = "image/jpeg"
    image_file_name: str = "trademark.jpg"
    text: Optional[str] = None

    @field_validator("image_data", mode="before")
    @classmethod
    def _decode_base64(cls, v: object) -> object:
        if isinstance(v, str):
            raw = _DATA_URL_PREFIX_RE.sub("", v.strip())
            try:
                return base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError("imageData must be base64-encoded") from e
        return v

    @field_validator("image_data")
    @classmethod
    def _require_content(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("imageData must not be empty")
        return v


class FigurativeMark(_ImageMark):
    type: Literal["figurative"] = "figurative"


class CombinedMark(_ImageMark):
    type: Literal["combined"] = "combined"


class ThreeDimensionalMark(_ImageMark):
    type: Literal["3d"] = "3d"


Trademark = Annotated[
    Union[WordMark, FigurativeMark, CombinedMark, ThreeDimensionalMark],
    Field(discriminator="type"),
]


class NiceClassSelection(_RequestModel):
    class_number: int = Field(ge=1, le=45)
    terms: list[str] = Field(default_factory=list)
    # None means: select the whole class header only when no terms are given.
    select_class_header: Optional[bool] = None

    @field_validator("terms")
    @classmethod
    def _drop_blank_terms(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]

    @property
    def has_terms(self) -> bool:
        return bool(self.terms)

    @property
    def wants_header(self) -> bool:
        if self.select_class_header is not None:
            return self.select_class_header
        return not self.has_terms


class AdditionalOptions(_RequestModel):
    accelerated_examination: bool = False
    certification_mark: bool = False
    licensing_declaration: bool = False
    disposition_declaration: bool = False


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    SEPA_DIRECT_DEBIT = "SEPA_DIRECT_DEBIT"


class SepaDetails(_RequestModel):
    iban: str
    bic: str
    account_holder: str = Field(min_length=1)
    mandate_reference: Optional[str] = None

    @field_validator("iban", "bic", mode="before")
    @classmethod
    def _normalize(cls, v: object) -> object:
        if isinstance(v, str):
            return re.sub(r"\s+", "", v).upper()
        return v

    @field_validator("iban")
    @classmethod
    def _validate_iban(cls, v: str) -> str:
        if not _IBAN_RE.match(v):
            raise ValueError("invalid IBAN format")
        return v

    @field_validator("bic")
    @classmethod
    def _validate_bic(cls, v: str) -> str:
        if not _BIC_RE.match(v):
            raise ValueError("invalid BIC format")
        return v


class TrademarkRegistrationRequest(_RequestModel):
    applicant: Applicant
    sanctions: Optional[SanctionsDeclaration] = None
    email: str
    delivery_address: Optional[DeliveryAddress] = None
    trademark: Trademark
    nice_classes: list[NiceClassSelection] = Field(min_length=1)
    lead_class: Optional[int] = Field(default=None, ge=1, le=45)
    options: AdditionalOptions = AdditionalOptions()
    payment_method: PaymentMethod
    sepa_details: Optional[SepaDetails] = None
    internal_reference: Optional[str] = None
    sender_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("invalid e-mail address")
        return v

    @model_validator(mode="after")
    def _validate_cross_fields(self) -> "TrademarkRegistrationRequest":
        if isinstance(self.applicant, NaturalPersonApplicant) and self.sanctions is None:
            raise ValueError("sanctions declaration is required for natural-person applicants")

        numbers = [c.class_number for c in self.nice_classes]
        dupes = sorted({n for n in numbers if numbers.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate Nice classes: {', '.join(str(n) for n in dupes)}")
        if self.lead_class is not None and self.lead_class not in numbers:
            raise ValueError(f"leadClass {self.lead_class} must be one of the selected Nice classes")

        if self.payment_method == PaymentMethod.SEPA_DIRECT_DEBIT and self.sepa_details is None:
            raise ValueError("sepaDetails are required for SEPA direct debit")
        return self

    @property
    def effective_lead_class(self) -> int:
        return self.lead_class if self.lead_class is not None else self.nice_classes[0].class_number

    @property
    def effective_sender_name(self) -> str:
        return self.sender_name or self.applicant.display_name

    @property
    def copies_applicant_address(self) -> bool:
        return self.delivery_address is None or self.delivery_address.copy_from_applicant


# ---- results ----


class FeeItem(BaseModel):
    code: str
    description: str
    amount: Decimal


class BankDetails(BaseModel):
    recipient: str
    iban: str
    bic: str
    reference: str


class PaymentInfo(BaseModel):
    method: PaymentMethod
    total_amount: Decimal
    currency: str = "EUR"
    bank_details: Optional[BankDetails] = None


class DownloadedDocument(BaseModel):
    filename: str
    content_type: str
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class VersandMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    message: str = ""
    severity: str = ""


class VersandValidationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    state: Optional[str] = None
    user_message: Optional[str] = None
    validation_message_list: list[VersandMessage] = Field(default_factory=list)


class VersandResponse(BaseModel):
    """JSON answer of the dispatch endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    status: str = ""
    validation_result: Optional[VersandValidationResult] = None
    drn: str = ""
    akz: str = ""
    transaction_id: str = ""
    transaction_type: str = ""
    creation_time: str = ""


class RegistrationSuccess(BaseModel):
    success: Literal[True] = True
    aktenzeichen: str
    drn: str
    transaction_id: str
    submission_time: str
    submitted_at: Optional[datetime] = None
    fees: list[FeeItem] = Field(default_factory=list)
    payment: PaymentInfo
    receipt_documents: list[DownloadedDocument] = Field(default_factory=list)
    archive_bytes: Optional[bytes] = Field(default=None, repr=False)
    receipt_file_path: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


class RegistrationFailure(BaseModel):
    success: Literal[False] = False
    error_code: str
    error_message: str
    failed_at_step: Optional[int] = None
    warnings: list[str] = Field(default_factory=list)


RegistrationResult = Union[RegistrationSuccess, RegistrationFailure]
