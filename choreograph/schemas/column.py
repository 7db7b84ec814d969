from typing import List, Optional
from pydantic import BaseModel, Field, validator


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    return value


class ColumnBase(BaseModel):
    """Base schema for column data"""
    name: str = Field(..., min_length=1)

    @validator("name")
    def strip_name(cls, value):
        return _clean_name(value)


class ColumnCreate(ColumnBase):
    """Schema for column creation; order is assigned when omitted"""
    order: Optional[int] = Field(None, ge=0)


class ColumnUpdate(BaseModel):
    """Schema for column update"""
    name: Optional[str] = Field(None, min_length=1)
    order: Optional[int] = Field(None, ge=0)

    @validator("name")
    def strip_name(cls, value):
        return _clean_name(value)


class ColumnResponse(BaseModel):
    """Schema for column response"""
    id: int
    name: str
    order: int

    class Config:
        from_attributes = True


class ColumnReorderItem(BaseModel):
    id: int
    order: int = Field(..., ge=0)


class ColumnReorderRequest(BaseModel):
    """Schema for assigning explicit orders to many columns at once"""
    columns: List[ColumnReorderItem] = Field(..., min_length=1)

    @validator("columns")
    def check_unique(cls, columns):
        ids = [item.id for item in columns]
        if len(set(ids)) != len(ids):
            raise ValueError("column ids must be unique")
        orders = [item.order for item in columns]
        if len(set(orders)) != len(orders):
            raise ValueError("orders must be unique")
        return columns


class ColumnListResponse(BaseModel):
    """Schema for the result of reorder and repair operations"""
    message: str
    columns: List[ColumnResponse]
