from pydantic import BaseModel, Field


class UploadInvoiceInput(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: str = Field(..., min_length=1)
    file_data: str = Field(..., min_length=1, description="Base64 encoded file content")


class UploadInvoiceResponse(BaseModel):
    file_path: str
    success: bool


class ExtractInvoiceInput(BaseModel):
    filename: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
