"""Shared FastAPI dependencies for gridserve routers.

Resolve the long-lived collaborators that ``create_app`` puts on
``app.state``:
- Settings
- BlobStore service
- CapabilitySigner
"""

from __future__ import annotations

from typing import Annotated, cast

from fastapi import Depends, Request

from gridserve.config import Settings
from gridserve.security.capability import CapabilitySigner
from gridserve.storage.service import BlobStore


def get_settings(request: Request) -> Settings:
    return cast(Settings, request.app.state.settings)


def get_blob_store(request: Request) -> BlobStore:
    return cast(BlobStore, request.app.state.blob_store)


def get_signer(request: Request) -> CapabilitySigner:
    return cast(CapabilitySigner, request.app.state.signer)


SettingsDep = Annotated[Settings, Depends(get_settings)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
SignerDep = Annotated[CapabilitySigner, Depends(get_signer)]
