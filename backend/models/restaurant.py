"""Restaurant model."""

from sqlalchemy import Boolean, Column, Integer, String

from database import Base


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(10), nullable=False, index=True)
    vegan_only = Column(Boolean, nullable=False, default=False)
    is_good = Column(Boolean, nullable=True, default=False)

    def __repr__(self):
        return f"<Restaurant {self.name}>"
