"""
Order status configuration entries
"""
from pydantic import BaseModel, Field, ConfigDict, AliasChoices


class StatusConfig(BaseModel):
    """
    One entry of a tenant's order-status vocabulary

    key is the stable machine identifier stored on orders; label is the
    user-editable display text; order is the display/workflow position.
    """

    # older saved configs call the key "status"
    key: str = Field(..., min_length=1, validation_alias=AliasChoices('key', 'status'))
    label: str = Field(..., description="Display label")
    order: int = Field(..., ge=1, description="Display/workflow position")
    enabled: bool = Field(True, description="Offered in selection lists")

    model_config = ConfigDict(populate_by_name=True)
