"""Pydantic schemas for subscriptions"""
from pydantic import BaseModel, field_validator

from mailroom.utils.email_address import parse_email_address, parse_subscriber_name


class SubscribeRequest(BaseModel):
    name: str
    email: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return parse_subscriber_name(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return parse_email_address(v)
