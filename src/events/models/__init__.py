from .event import Event
from .event_payloads import CustomFormAdapter, FormFieldDefinition, FormFieldType, ItemDetails, MerchandiseVariant
from .registration import Registration

__all__ = [
    "CustomFormAdapter",
    "Event",
    "FormFieldDefinition",
    "FormFieldType",
    "ItemDetails",
    "MerchandiseVariant",
    "Registration",
]
