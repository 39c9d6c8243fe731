from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional


class UserRegister(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str = Field(alias="confirmPassword")
    first_name: str = Field(alias="firstName", min_length=1, max_length=50)
    last_name: str = Field(alias="lastName", min_length=1, max_length=50)

    class Config:
        populate_by_name = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, alias="firstName", min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, alias="lastName", min_length=1, max_length=50)
    avatar: Optional[str] = None

    class Config:
        populate_by_name = True


class PasswordChange(BaseModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=6)

    class Config:
        populate_by_name = True
