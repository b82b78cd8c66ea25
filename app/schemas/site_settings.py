from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


class SettingValueOut(BaseModel):
    value: Optional[str] = None
    type: str


class SettingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: Optional[str] = None
    type: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[int] = None


class SettingsMapOut(BaseModel):
    settings: Dict[str, SettingValueOut]


class SettingEnvelope(BaseModel):
    setting: SettingOut
    message: Optional[str] = None


class SettingImageOut(SettingEnvelope):
    image_url: str


class SettingVideoOut(SettingEnvelope):
    video_url: str


class SettingUpdate(BaseModel):
    # "value" ausente != value null; checado via model_fields_set
    value: Optional[Union[str, int, float, bool]] = None


class MessageOut(BaseModel):
    message: str
