# imapreader/models/__init__.py
from imapreader.models.headers import Headers, canonical_header_key
from imapreader.models.message import EmailMessage

__all__ = ["EmailMessage", "Headers", "canonical_header_key"]
