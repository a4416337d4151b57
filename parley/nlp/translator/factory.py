from __future__ import annotations
import os
from typing import Optional
from .base import Translator
from .argos import ArgosTranslator
from .remote import RemoteTranslator
from parley.remote.client import ServiceClient

def get_translator(provider: str | None = None, client: Optional[ServiceClient] = None) -> Translator:
    provider = (provider or os.getenv("PARLEY_TRANSLATOR", "remote")).lower().strip()

    if provider == "argos":
        return ArgosTranslator()
    if provider == "remote":
        if client is None:
            raise ValueError("remote translator needs a service client")
        return RemoteTranslator(client)

    raise ValueError(f"Unknown translator provider: {provider}")
