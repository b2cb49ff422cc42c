# sahayak/schemas/applications.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any


class SubmitApplicationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    artisan_id: Optional[str] = Field(None, alias="artisanId")
    scheme_id: Optional[str] = Field(None, alias="schemeId")
    form_data: Optional[Dict[str, Any]] = Field(None, alias="formData")
