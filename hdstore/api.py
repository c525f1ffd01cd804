"""
Request routing for hdstore

A single endpoint serves every operation; the ``action`` query parameter
selects the handler and all other parameters come from the form body.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, Response
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException

from .auth import authenticate_user
from .errors import (
    AuthenticationFailed, MalformedRequest, MissingParameter, MissingUpload, StoreError
)
from .metrics import metrics_manager
from .models import Action, DEFAULT_EXTENSION, TransferMode
from .paths import check_extension
from .responses import boolean_text, emit, empty, failure, success
from .sessions import SessionStore
from .storage_server import StorageServer
from .utils import get_mime_type

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Everything a handler may touch for one request"""
    sessions: SessionStore
    storage: StorageServer
    cookie_name: str
    session_id: Optional[str] = None

    def user_folder(self) -> str:
        """Folder of the logged-in user; raises Unauthorized otherwise"""
        return self.sessions.resolve_user_folder(self.session_id)


class FormParams:
    """Ordered access to form fields; the first failing lookup ends the request"""

    def __init__(self, form: FormData):
        self.form = form

    def require(self, name: str) -> str:
        value = self.form.get(name)
        if value is None or isinstance(value, UploadFile):
            raise MissingParameter(name)
        return value

    def extension(self) -> str:
        """Optional extension, validated against the allow-list when supplied"""
        value = self.form.get("extension")
        if value is None or isinstance(value, UploadFile):
            return DEFAULT_EXTENSION
        return check_extension(value)

    def upload(self, name: str) -> UploadFile:
        """Uploaded part stored under field ``name`` or sent with client filename ``name``"""
        value = self.form.get(name)
        if isinstance(value, UploadFile):
            return value
        for _, item in self.form.multi_items():
            if isinstance(item, UploadFile) and item.filename == name:
                return item
        raise MissingUpload(name)


async def read_form(request: Request) -> FormData:
    """Parse the form body; a body Starlette rejects becomes a failure envelope"""
    try:
        return await request.form()
    except HTTPException as e:
        logger.warning(f"Unreadable form body: {e.detail}")
        raise MalformedRequest(str(e.detail))


Handler = Callable[[RequestContext, FormParams], Awaitable[Response]]


async def handle_login(ctx: RequestContext, params: FormParams) -> Response:
    username = params.require("username")
    password = params.require("password")

    user = authenticate_user(username, password)
    if user is None:
        metrics_manager.increment_auth_failures()
        raise AuthenticationFailed()

    ctx.sessions.purge_expired()
    session = ctx.sessions.bind(ctx.session_id, user)
    response = success()
    response.set_cookie(ctx.cookie_name, session.session_id, httponly=True, samesite="lax")
    return response


async def handle_list_files(ctx: RequestContext, params: FormParams) -> Response:
    folder_name = params.require("folderName")
    extension = params.extension()

    names = await ctx.storage.list_files(ctx.user_folder(), folder_name, extension)
    return emit({"list": names})


async def handle_load(ctx: RequestContext, params: FormParams) -> Response:
    file_name = params.require("fileName")
    folder_name = params.require("folderName")
    extension = params.extension()

    content = await ctx.storage.load(ctx.user_folder(), folder_name, file_name, extension)
    return emit(content, media_type=get_mime_type(Path(f"{file_name}{extension}")))


async def handle_exists(ctx: RequestContext, params: FormParams) -> Response:
    file_name = params.require("fileName")
    folder_name = params.require("folderName")
    extension = params.extension()

    found = await ctx.storage.exists(ctx.user_folder(), folder_name, file_name, extension)
    return boolean_text(found)


async def handle_save(ctx: RequestContext, params: FormParams) -> Response:
    file_name = params.require("fileName")
    folder_name = params.require("folderName")
    extension = params.extension()
    upload = params.upload("file")

    await ctx.storage.save(ctx.user_folder(), folder_name, file_name, extension, upload)
    return success()


async def handle_delete(ctx: RequestContext, params: FormParams) -> Response:
    file_name = params.require("fileName")
    folder_name = params.require("folderName")
    extension = params.extension()

    await ctx.storage.delete(ctx.user_folder(), folder_name, file_name, extension)
    return success()


def _transfer_handler(mode: TransferMode) -> Handler:
    async def handle_transfer(ctx: RequestContext, params: FormParams) -> Response:
        file_name = params.require("fileName")
        new_file_name = params.require("newFileName")
        folder_name = params.require("folderName")
        extension = params.extension()

        await ctx.storage.transfer(
            ctx.user_folder(), folder_name, file_name, new_file_name, extension, mode
        )
        return success()

    handle_transfer.__name__ = f"handle_{mode.value}"
    return handle_transfer


HANDLERS: Dict[Action, Handler] = {
    Action.LOGIN: handle_login,
    Action.LIST_FILES: handle_list_files,
    Action.LOAD: handle_load,
    Action.EXISTS: handle_exists,
    Action.SAVE: handle_save,
    Action.DELETE: handle_delete,
    Action.RENAME: _transfer_handler(TransferMode.RENAME),
    Action.COPY: _transfer_handler(TransferMode.COPY),
}


async def online_module(request: Request) -> Response:
    """Dispatch one request to the handler named by ``action``"""

    raw_action = request.query_params.get("action")
    if raw_action is None:
        return empty()

    action = Action.parse(raw_action)
    if action is None:
        logger.warning(f"Ignoring unknown action: {raw_action}")
        return empty()

    request.state.action = action.value
    metrics_manager.record_action(action.value)

    cookie_name = request.app.state.config.sessions.cookie_name
    ctx = RequestContext(
        sessions=request.app.state.sessions,
        storage=request.app.state.storage,
        cookie_name=cookie_name,
        session_id=request.cookies.get(cookie_name),
    )

    try:
        form = await read_form(request)
        return await HANDLERS[action](ctx, FormParams(form))
    except StoreError as e:
        metrics_manager.increment_failed_operations()
        logger.info(f"{action.value} failed: {e.message}")
        return failure(e.message)


def setup_api_routes(app: FastAPI, endpoint: str):
    """Setup API routes"""
    api_router = APIRouter(tags=["online"])
    api_router.add_api_route(endpoint, online_module, methods=["GET", "POST"])
    app.include_router(api_router)
    logger.info(f"API endpoint mounted at {endpoint}")
