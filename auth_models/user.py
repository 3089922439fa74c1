from sqlalchemy import Column, String

from auth_models.base_model import Base, BaseModel

USER = "USER"
ADMIN = "ADMIN"
ROLES = (USER, ADMIN)


class User(BaseModel, Base):
    __tablename__ = "users"
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=USER)

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("role", USER)
        super().__init__(*args, **kwargs)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
