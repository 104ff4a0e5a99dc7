"""Pydantic schemas for newsletter publishing"""
from pydantic import BaseModel


class PublishNewsletterRequest(BaseModel):
    title: str
    text_content: str
    html_content: str
    # Validated by the route so a bad key is a 400, not a 422
    idempotency_key: str
