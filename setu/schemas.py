"""
Setu - Request Models
One validated body per endpoint. Field aliases are declared here once;
handlers only ever see the canonical attribute names.
"""
from typing import Annotated, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field


def as_flag(value):
    """{False, "false", 0, "0"} -> False; everything else -> True. None passes through."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() not in ("false", "0")


Flag = Annotated[bool, BeforeValidator(as_flag)]


def as_strict_flag(value):
    """Only {True, "true", 1, "1"} -> True; everything else -> False. None passes through."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in ("true", "1")


StrictFlag = Annotated[bool, BeforeValidator(as_strict_flag)]


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================
# AUTH
# ============================================================
class LoginBody(_Body):
    username: str
    password: str
    device_id: Optional[str] = Field(None, alias="deviceId")


class NewUserBody(_Body):
    username: str
    password: str
    role: str = "user"
    display_name: Optional[str] = Field(None, alias="displayName")


class BanBody(_Body):
    banned: Flag = True


# ============================================================
# CATALOG
# ============================================================
class EnableBody(_Body):
    enabled: Flag = True


class FolderCreate(_Body):
    name: str = Field(validation_alias=AliasChoices("name", "folderName"))
    enabled: Flag = True


class FolderUpdate(_Body):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "folderName"))
    enabled: Optional[Flag] = None


class EventCreate(_Body):
    folder_ref: Optional[Union[int, str]] = Field(None, validation_alias=AliasChoices("folderId", "folder_id", "folderSlug"))
    name: str = Field(validation_alias=AliasChoices("name", "eventName"))
    enabled: Flag = True
    show_donation_detail: Flag = Field(True, validation_alias=AliasChoices("showDonationDetail", "show_donation_detail"))
    show_expense_detail: Flag = Field(True, validation_alias=AliasChoices("showExpenseDetail", "show_expense_detail"))


class EventUpdate(_Body):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "eventName"))
    enabled: Optional[Flag] = None
    show_donation_detail: Optional[Flag] = Field(None, validation_alias=AliasChoices("showDonationDetail", "show_donation_detail"))
    show_expense_detail: Optional[Flag] = Field(None, validation_alias=AliasChoices("showExpenseDetail", "show_expense_detail"))


class FolderReorder(_Body):
    folder_id: int = Field(validation_alias=AliasChoices("folderId", "id"))
    direction: Optional[str] = None
    new_index: Optional[int] = Field(None, validation_alias=AliasChoices("newIndex", "new_index"))


class EventReorder(_Body):
    folder_ref: Optional[Union[int, str]] = Field(None, validation_alias=AliasChoices("folderId", "folder_id"))
    event_id: int = Field(validation_alias=AliasChoices("eventId", "id"))
    direction: Optional[str] = None
    new_index: Optional[int] = Field(None, validation_alias=AliasChoices("newIndex", "new_index"))


# ============================================================
# LEDGERS
# ============================================================
class DonationUpdate(_Body):
    amount: Optional[float] = None
    donor_name: Optional[str] = Field(None, alias="donorName")
    category: Optional[str] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    cash_receiver_name: Optional[str] = Field(None, alias="cashReceiverName")
    receipt_code: Optional[str] = Field(None, alias="receiptCode")
    regenerate_receipt_code: Flag = Field(False, alias="regenerateReceiptCode")


class ExpenseSubmit(_Body):
    amount: float
    category: str = Field(validation_alias=AliasChoices("category", "eventName"))
    description: Optional[str] = None
    paid_to: Optional[str] = Field(None, alias="paidTo")
    date: Optional[str] = None


class ExpenseCreate(ExpenseSubmit):
    approve_now: Flag = Field(True, alias="approveNow")
    enabled: Flag = True


class ExpenseUpdate(_Body):
    amount: Optional[float] = None
    category: Optional[str] = None
    description: Optional[str] = None
    paid_to: Optional[str] = Field(None, alias="paidTo")
    date: Optional[str] = None
    enabled: Optional[Flag] = None


class ApproveBody(_Body):
    approve: StrictFlag = False


class DonationApproveBody(ApproveBody):
    id: int


# ============================================================
# CATEGORIES / GALLERY / E-BOOKS
# ============================================================
class CategoryCreate(_Body):
    name: str
    enabled: Flag = True


class CategoryUpdate(_Body):
    name: Optional[str] = None
    enabled: Optional[Flag] = None


class RenameBody(_Body):
    name: str = Field(validation_alias=AliasChoices("name", "newName"))


class MediaFolderCreate(_Body):
    name: str
    enabled: Flag = True


class ImageReorder(_Body):
    image_id: int = Field(validation_alias=AliasChoices("imageId", "fileId", "id"))
    direction: Optional[str] = None
    new_index: Optional[int] = Field(None, validation_alias=AliasChoices("newIndex", "new_index"))


class CoverBody(_Body):
    image_id: int = Field(validation_alias=AliasChoices("imageId", "id"))
