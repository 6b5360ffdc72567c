from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    branch_code: str = Field(min_length=1, max_length=20)
    username: str = Field(min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None


class LoginRequest(BaseModel):
    branch_code: str = Field(min_length=1, max_length=20)
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
