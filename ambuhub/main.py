import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import crud, schemas, sessions, uploads
from .auth import hash_password
from .config import PACKAGE_DIR, get_settings, validate_runtime_config
from .db import get_db, init_db
from .errors import AmbuHubError, DuplicateEmail, InvalidCredentials, NotFoundOrForbidden, PersistenceError, Unauthenticated
from .guards import get_session_context, require_role
from .models import Role
from .sessions import SessionContext

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("ambuhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = get_settings()
    validate_runtime_config(current)
    init_db(retries=current.db_connect_retries, backoff=current.db_connect_backoff)
    yield


app = FastAPI(title="AmbuHub", lifespan=lifespan)

templates = Jinja2Templates(directory=os.path.join(PACKAGE_DIR, "templates"))
app.mount("/static", StaticFiles(directory=os.path.join(PACKAGE_DIR, "static")), name="static")

LOGIN_FAILED = "Invalid email or password."
HOME_BY_ROLE = {
    Role.vendor_user: "/usuario_ambulante",
    Role.standard_user: "/usuario_padrao",
}

require_vendor = require_role(Role.vendor_user)
require_standard = require_role(Role.standard_user)


# -------------------- Error mapping --------------------

@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    return RedirectResponse(url="/login", status_code=303)


@app.exception_handler(AmbuHubError)
async def ambuhub_error_handler(request: Request, exc: AmbuHubError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    # get_db has already rolled the session back
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return PlainTextResponse(PersistenceError.message, status_code=PersistenceError.status_code)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return PlainTextResponse(_describe(exc), status_code=400)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return PlainTextResponse(_describe(exc), status_code=400)


def _describe(exc) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body")
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "invalid input"))
    return "; ".join(parts) or "invalid input"


def _is_checked(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in ("", "0", "false", "off", "no")


# -------------------- Pages --------------------

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, ctx: Optional[SessionContext] = Depends(get_session_context)):
    return templates.TemplateResponse(request, "index.html", {"session": ctx})


@app.get(uploads.URL_PREFIX + "{filename}")
async def uploaded_image(filename: str):
    path = uploads.stored_path(filename, get_settings().upload_dir)
    if path is None:
        raise NotFoundOrForbidden("image not found")
    return FileResponse(path)


@app.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    return templates.TemplateResponse(request, "login.html", {"error": None, "email": ""})


@app.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request):
    return templates.TemplateResponse(request, "signup.html", {"error": None, "email": ""})


# -------------------- Accounts --------------------

@app.post("/signup")
async def signup(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    advertiser: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
):
    role = Role.vendor_user if _is_checked(advertiser) else Role.standard_user
    try:
        user_in = schemas.UserCreate(email=email, password=password, role=role)
    except ValidationError as e:
        return templates.TemplateResponse(
            request, "signup.html", {"error": _describe(e), "email": email}, status_code=400,
        )

    password_hash = await run_in_threadpool(hash_password, user_in.password)
    try:
        user = crud.create_user(db, user_in, password_hash=password_hash)
    except DuplicateEmail as e:
        logger.info("Signup rejected, email already registered")
        return templates.TemplateResponse(
            request, "signup.html", {"error": e.message, "email": email}, status_code=400,
        )
    logger.info("User %s signed up as %s", user.id, user.role.value)
    return RedirectResponse(url="/login", status_code=303)


@app.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    try:
        user = await run_in_threadpool(crud.authenticate_user, db, email, password)
    except InvalidCredentials:
        logger.info("Failed login for %s", email)
        return templates.TemplateResponse(
            request, "login.html", {"error": LOGIN_FAILED, "email": email}, status_code=400,
        )

    token = sessions.start(db, user.id, user.role)
    logger.info("User %s logged in", user.id)
    response = RedirectResponse(url=HOME_BY_ROLE[user.role], status_code=303)
    sessions.set_session_cookie(response, token)
    return response


@app.get("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(get_settings().session_cookie_name)
    sessions.destroy(db, token)
    response = RedirectResponse(url="/login", status_code=303)
    sessions.clear_session_cookie(response)
    return response


# -------------------- Product views --------------------

@app.get("/usuario_padrao", response_class=HTMLResponse)
async def standard_home(request: Request, ctx: SessionContext = Depends(require_standard), db: Session = Depends(get_db)):
    return templates.TemplateResponse(
        request, "usuario_padrao.html", {"session": ctx, "products": crud.list_products(db)},
    )


@app.get("/usuario_ambulante", response_class=HTMLResponse)
async def vendor_home(request: Request, ctx: SessionContext = Depends(require_vendor), db: Session = Depends(get_db)):
    return templates.TemplateResponse(
        request, "usuario_ambulante.html", {"session": ctx, "products": crud.list_products_by_owner(db, ctx.user_id)},
    )


# -------------------- Product management --------------------

async def _store_image(image: Optional[UploadFile]) -> Optional[str]:
    current = get_settings()
    return await run_in_threadpool(uploads.save_image, image, current.upload_dir, current.max_upload_bytes)


async def _discard_image(image_url: Optional[str]) -> None:
    await run_in_threadpool(uploads.discard_image, image_url, get_settings().upload_dir)


@app.post("/create-product")
async def create_product(
    name: str = Form(...),
    description: str = Form(...),
    price: str = Form(...),
    stock: str = Form(...),
    image: Optional[UploadFile] = File(default=None),
    ctx: SessionContext = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    fields = schemas.ProductCreate(name=name, description=description, price=price, stock=stock)
    image_url = await _store_image(image)
    try:
        product = crud.create_product(db, ctx.user_id, fields, image_url=image_url)
    except (AmbuHubError, SQLAlchemyError):
        await _discard_image(image_url)
        raise
    logger.info("User %s created product %s", ctx.user_id, product.id)
    return RedirectResponse(url="/usuario_ambulante", status_code=303)


@app.post("/edit-product/{product_id}")
async def edit_product(
    product_id: int,
    name: str = Form(...),
    description: str = Form(...),
    price: str = Form(...),
    stock: str = Form(...),
    image: Optional[UploadFile] = File(default=None),
    ctx: SessionContext = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    fields = schemas.ProductCreate(name=name, description=description, price=price, stock=stock)
    image_url = await _store_image(image)
    try:
        product, replaced_image = crud.update_product(db, product_id, ctx.user_id, fields, image_url=image_url)
    except (AmbuHubError, SQLAlchemyError):
        await _discard_image(image_url)
        raise
    await _discard_image(replaced_image)
    logger.info("User %s updated product %s", ctx.user_id, product.id)
    return RedirectResponse(url="/usuario_ambulante", status_code=303)


@app.post("/delete-product/{product_id}")
async def delete_product(
    product_id: int,
    ctx: SessionContext = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    image_url = crud.delete_product(db, product_id, ctx.user_id)
    await _discard_image(image_url)
    logger.info("User %s deleted product %s", ctx.user_id, product_id)
    return RedirectResponse(url="/usuario_ambulante", status_code=303)
