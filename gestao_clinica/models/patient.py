import re
from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import field_validator, model_validator
from sqlmodel import Field
from .base import SyncModel

PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,3}[-\s.]?[0-9]{1,4}[-\s.]?[0-9]{1,4}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class Patient(SyncModel):
    first_name: str = Field(min_length=2, max_length=100)
    last_name: str = Field(min_length=2, max_length=100)
    date_of_birth: date
    gender: Gender

    phone_number: Optional[str] = None
    email: Optional[str] = None

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    blood_type: Optional[BloodType] = None
    allergies: List[str] = Field(default_factory=list)
    medical_conditions: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def birth_not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Data de nascimento não pode estar no futuro")
        return value

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, value: Optional[str]) -> Optional[str]:
        if value and not PHONE_RE.match(value):
            raise ValueError("Formato de telefone inválido")
        return value

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: Optional[str]) -> Optional[str]:
        if value and not EMAIL_RE.match(value):
            raise ValueError("Formato de e-mail inválido")
        return value

    @model_validator(mode="after")
    def city_required_with_address(self):
        # Cidade é obrigatória quando o endereço é informado
        if self.address and self.address.strip() and not self.city:
            raise ValueError("Cidade é obrigatória quando o endereço é informado")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
