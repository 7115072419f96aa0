from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PROFILE_FIELDS = (
    "name",
    "controllerUrl",
    "accountName",
    "clientName",
    "clientSecret",
    "teamsWebhookUrl",
)


class ClientProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    controller_url: str = Field(default="", alias="controllerUrl")
    account_name: str = Field(default="", alias="accountName")
    client_name: str = Field(default="", alias="clientName")
    client_secret: str = Field(default="", alias="clientSecret")
    teams_webhook_url: str = Field(default="", alias="teamsWebhookUrl")


class ClientProfileInput(BaseModel):
    """Create/update body. Omitted fields are left unchanged on update."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    controller_url: Optional[str] = Field(default=None, alias="controllerUrl")
    account_name: Optional[str] = Field(default=None, alias="accountName")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")
    teams_webhook_url: Optional[str] = Field(default=None, alias="teamsWebhookUrl")

    def provided(self):
        return self.model_dump(by_alias=True, exclude_none=True)


class AppDynamicsDataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    controller_url: Optional[str] = Field(default=None, alias="controllerUrl")
    account_name: Optional[str] = Field(default=None, alias="accountName")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")


class TeamsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="clientId")


class MessageRequest(BaseModel):
    message: Optional[str] = None
