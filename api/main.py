"""Web front end for the product code substitutions list.

Serves a single page: a search box, the matching substitution cards, and,
for signed-in managers, add/refresh/edit/delete controls with their login and
editor dialogs. Every user action is a form post that redirects back to the
page with the current search query.

The page only reflects what the hosted backend allows. Reads are public,
writes are accepted or refused by the backend's row-level policies.

Copyright (c) Bryn Gwalad 2025
"""

from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
import logging

from utils import config
from utils.backend import BackendClient
from workflows.search import filter_catalog, search_text
from .views import ClientRegistry, ClientView

CLIENT_COOKIE = "subs_client"

# Web app manifest so the page can be installed to a home screen.
MANIFEST = {
    "name": "PLU Substitutions",
    "short_name": "PLU Subs",
    "start_url": "/",
    "scope": "/",
    "display": "standalone",
    "background_color": "#ffffff",
    "theme_color": "#ffffff",
    "icons": [
        {"src": "/icons/icon-192.png", "sizes": "192x192", "type": "image/png"},
        {"src": "/icons/icon-512.png", "sizes": "512x512", "type": "image/png"},
    ],
}

app = FastAPI(title="Product Code Substitutions")
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

# Module logger
logger = logging.getLogger("substitutions_web")

client_registry = ClientRegistry(
    backend_factory=BackendClient,
    login_shortcuts=config.LOGIN_SHORTCUTS,
    idle_seconds=config.CLIENT_IDLE_MINUTES * 60,
    max_views=config.CLIENT_MAX_VIEWS,
)


def get_registry() -> ClientRegistry:
    return client_registry


@app.on_event("startup")
async def on_startup():
    # Configure logger (do not override global config if already set by app)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.LOG_LEVEL)
    if not config.BACKEND_URL:
        logger.warning("BACKEND_URL is not set; every backend call will fail")
    logger.info("Serving substitutions from table %s", config.SUBSTITUTIONS_TABLE)


@app.on_event("shutdown")
async def on_shutdown():
    client_registry.close()


def _page_url(q: str = "") -> str:
    return "/?" + urlencode({"q": q}) if q else "/"


def _redirect(client_id: str, q: str = "") -> RedirectResponse:
    response = RedirectResponse(_page_url(q), status_code=303)
    response.set_cookie(CLIENT_COOKIE, client_id, httponly=True, samesite="lax")
    return response


def _record_or_404(view: ClientView, record_id: str):
    record = view.catalog.find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Substitution not found")
    return record


def _page_context(catalog, q: str, **state) -> dict:
    """Template context: every card with its search text, plus which ones match ``q``."""
    matches = {str(record.id) for record in filter_catalog(catalog.records, q)}
    cards = [
        {"record": record, "search_text": search_text(record), "visible": str(record.id) in matches}
        for record in catalog.records
    ]
    context = {
        "q": q,
        "cards": cards,
        "result_count": len(matches),
        "loading": catalog.loading,
        "load_error": catalog.error.message if catalog.error else None,
        "alert": None,
        "is_authorized": False,
        "login_open": False,
        "login_identifier": "",
        "editor": None,
        "delete_prompt": None,
    }
    context.update(state)
    return context


@app.get("/")
def index(request: Request, q: str = "", registry: ClientRegistry = Depends(get_registry)):
    """Render the page filtered by ``q``, reloading the catalog as on startup.

    Browsers without a live view are served from the shared public catalog
    and get no cookie until they post an action.
    """
    client_id = request.cookies.get(CLIENT_COOKIE)
    view = registry.get(client_id)
    if view is None:
        public = registry.public()
        with public.lock:
            public.catalog.reload()
            context = _page_context(public.catalog, q)
        return templates.TemplateResponse(request, "index.html", context)

    with view.lock:
        view.session.sync()
        view.load_page()
        context = _page_context(
            view.catalog,
            q,
            alert=view.take_alert(),
            is_authorized=view.session.is_authorized,
            login_open=view.login.is_open,
            login_identifier=view.login.identifier,
            editor=view.editor if view.editor.is_open else None,
            delete_prompt=view.deleter.prompt,
        )
    response = templates.TemplateResponse(request, "index.html", context)
    response.set_cookie(CLIENT_COOKIE, client_id, httponly=True, samesite="lax")
    return response


@app.get("/manifest.webmanifest")
def manifest():
    return MANIFEST


@app.post("/refresh")
def refresh(request: Request, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.catalog.reload()
    return _redirect(client_id, q)


@app.post("/login/open")
def open_login(request: Request, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.login.open()
    return _redirect(client_id, q)


@app.post("/login/close")
def close_login(request: Request, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.login.close()
    return _redirect(client_id, q)


@app.post("/login")
def login(
    request: Request,
    identifier: str = Form(""),
    password: str = Form(""),
    q: str = Form(""),
    registry: ClientRegistry = Depends(get_registry),
):
    """Sign in with an email or a configured username shortcut."""
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.login.open()
        view.report(view.login.sign_in(identifier, password))
    return _redirect(client_id, q)


@app.post("/logout")
def logout(request: Request, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.sign_out()
    return _redirect(client_id, q)


@app.post("/editor/open")
def open_editor(
    request: Request,
    record_id: Optional[str] = Form(None),
    q: str = Form(""),
    registry: ClientRegistry = Depends(get_registry),
):
    """Open the editor: empty for a new substitution, or seeded from ``record_id``."""
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        record = _record_or_404(view, record_id) if record_id else None
        view.editor.open(record)
    return _redirect(client_id, q)


@app.post("/editor/close")
def close_editor(request: Request, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.editor.close()
    return _redirect(client_id, q)


@app.post("/editor/submit")
def submit_editor(
    request: Request,
    product_name: str = Form(""),
    old_code: str = Form(""),
    new_code: str = Form(""),
    notes: str = Form(""),
    q: str = Form(""),
    registry: ClientRegistry = Depends(get_registry),
):
    """Save the editor's draft (insert or update)."""
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        if not view.editor.is_open:
            raise HTTPException(status_code=409, detail="Editor is not open")
        view.session.sync()
        view.editor.update_draft(product_name=product_name, old_code=old_code, new_code=new_code, notes=notes)
        view.report(view.editor.submit())
    return _redirect(client_id, q)


@app.post("/records/{record_id}/delete")
def request_delete(
    request: Request, record_id: str, q: str = Form(""), registry: ClientRegistry = Depends(get_registry)
):
    """Ask for confirmation before deleting a substitution."""
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        record = _record_or_404(view, record_id)
        view.session.sync()
        view.report(view.deleter.request(record))
    return _redirect(client_id, q)


@app.post("/delete/confirm")
def confirm_delete(
    request: Request,
    confirmed: str = Form("no"),
    q: str = Form(""),
    registry: ClientRegistry = Depends(get_registry),
):
    client_id, view = registry.get_or_create(request.cookies.get(CLIENT_COOKIE))
    with view.lock:
        view.session.sync()
        view.report(view.deleter.resolve(confirmed == "yes"))
    return _redirect(client_id, q)
