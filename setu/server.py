"""
Setu Ledger - Donation & Expense Bookkeeping API
Donations with receipt codes, expenses, an ordered analytics catalog of
folders/events, category totals, a photo gallery, an e-book shelf and per-user
notifications.

Run: python -m setu.server   (or: uvicorn setu.server:app)
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from setu import catalog, categories, donations, ebooks, expenses, gallery, notifications, reports
from setu.auth import (
    authenticate, create_jwt, create_user, get_optional_user, is_privileged,
    list_users, require_roles, seed_admin, set_banned,
)
from setu.config import (
    AUTO_MIGRATE, CORS_ORIGINS, EVENT_PAGE_DEFAULT, EVENT_PAGE_MAX, LOG_LEVEL, MEMBER_ROLES,
    PORT, PRIVILEGED_ROLES, SCREENSHOT_FOLDER, TOP_ROLE, VERSION,
)
from setu.db import open_database
from setu.db.migrations import migrate
from setu.errors import AppError, ConflictError, NotFoundError, ValidationError
from setu.schemas import (
    ApproveBody, BanBody, CategoryCreate, CategoryUpdate, CoverBody, DonationApproveBody, DonationUpdate,
    EnableBody, EventCreate, EventReorder, EventUpdate, ExpenseCreate, ExpenseSubmit, ExpenseUpdate,
    FolderCreate, FolderReorder, FolderUpdate, ImageReorder, LoginBody, MediaFolderCreate,
    NewUserBody, RenameBody,
)
from setu.uploads import LocalObjectStore, discard, open_object_store

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("setu.server")

admins = require_roles(*PRIVILEGED_ROLES)
members = require_roles(*MEMBER_ROLES)
top_admin = require_roles(TOP_ROLE)


def get_db(request: Request):
    return request.app.state.db


def get_store(request: Request):
    return request.app.state.store


def _qflag(value) -> bool:
    return str(value or "").strip().lower() in ("1", "true")


def _page(limit: int, offset: int):
    return max(1, min(EVENT_PAGE_MAX, limit)), max(0, offset)


router = APIRouter()

# ============================================================
# HEALTH
# ============================================================
@router.get("/health")
@router.get("/api/health")
async def health():
    return {"ok": True, "version": VERSION}

# ============================================================
# AUTH & USERS
# ============================================================
@router.post("/auth/login")
async def login(body: LoginBody, db=Depends(get_db)):
    user = authenticate(db, body.username, body.password, body.device_id)
    return {"token": create_jwt(user), "user": user}


@router.get("/auth/me")
async def me(user=Depends(members)):
    return user


@router.get("/admin/users")
async def admin_list_users(db=Depends(get_db), user=Depends(admins)):
    return list_users(db)


@router.post("/admin/users", status_code=201)
async def admin_create_user(body: NewUserBody, db=Depends(get_db), user=Depends(admins)):
    return create_user(db, body.username, body.password, body.role, body.display_name)


@router.post("/admin/users/{uid}/ban")
async def admin_ban_user(uid: int, body: BanBody, db=Depends(get_db), user=Depends(top_admin)):
    return set_banned(db, uid, body.banned)

# ============================================================
# ANALYTICS CATALOG (admin)
# ============================================================
@router.get("/analytics/admin/folders")
async def admin_folders(db=Depends(get_db), user=Depends(admins)):
    return catalog.list_folders(db)


@router.post("/analytics/admin/folders", status_code=201)
async def admin_create_folder(body: FolderCreate, db=Depends(get_db), user=Depends(admins)):
    return catalog.create_folder(db, body.name, body.enabled)


@router.post("/analytics/admin/folders/reorder")
async def admin_reorder_folders(body: FolderReorder, db=Depends(get_db), user=Depends(admins)):
    order = catalog.reorder_folders(db, body.folder_id, body.direction, body.new_index)
    return {"ok": True, "order": order}


@router.put("/analytics/admin/folders/{fid}")
async def admin_update_folder(fid: int, body: FolderUpdate, db=Depends(get_db), user=Depends(admins)):
    return catalog.update_folder(db, fid, body.name, body.enabled)


@router.delete("/analytics/admin/folders/{fid}")
async def admin_delete_folder(fid: int, db=Depends(get_db), user=Depends(admins)):
    return catalog.delete_folder(db, fid)


@router.post("/analytics/admin/folders/{fid}/enable")
async def admin_enable_folder(fid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return catalog.set_folder_enabled(db, fid, body.enabled)


@router.get("/analytics/admin/folders/{folder_ref}/events")
async def admin_folder_events(folder_ref: str, db=Depends(get_db), user=Depends(admins)):
    return catalog.list_events(db, folder_ref)


@router.post("/analytics/admin/folders/{folder_ref}/events", status_code=201)
async def admin_create_folder_event(folder_ref: str, body: EventCreate, db=Depends(get_db), user=Depends(admins)):
    return catalog.create_event(db, folder_ref, body.name, body.enabled,
                                body.show_donation_detail, body.show_expense_detail)


@router.post("/analytics/admin/events", status_code=201)
async def admin_create_event(body: EventCreate, db=Depends(get_db), user=Depends(admins)):
    if body.folder_ref is None:
        raise ValidationError("folderId required")
    return catalog.create_event(db, body.folder_ref, body.name, body.enabled,
                                body.show_donation_detail, body.show_expense_detail)


@router.post("/analytics/admin/events/reorder")
async def admin_reorder_events(body: EventReorder, db=Depends(get_db), user=Depends(admins)):
    order = catalog.reorder_events(db, body.event_id, body.direction, body.new_index, body.folder_ref)
    return {"ok": True, "order": order}


@router.put("/analytics/admin/events/{eid}")
async def admin_update_event(eid: int, body: EventUpdate, db=Depends(get_db), user=Depends(admins)):
    return catalog.update_event(db, eid, body.name, enabled=body.enabled,
                                show_donation_detail=body.show_donation_detail,
                                show_expense_detail=body.show_expense_detail)


@router.delete("/analytics/admin/events/{eid}")
async def admin_delete_event(eid: int, db=Depends(get_db), user=Depends(admins)):
    return catalog.delete_event(db, eid)


@router.post("/analytics/admin/events/{eid}/enable")
async def admin_enable_event(eid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return catalog.set_event_enabled(db, eid, body.enabled)

# ============================================================
# ANALYTICS (public, optional auth)
# ============================================================
@router.get("/analytics/events")
async def public_events(q: str = "", db=Depends(get_db)):
    return catalog.public_events(db, q)


@router.get("/analytics/events/{ref}/donations")
async def event_donations(ref: str, limit: int = EVENT_PAGE_DEFAULT, offset: int = 0,
                          db=Depends(get_db), user=Depends(get_optional_user)):
    event = catalog.require_visible(db, ref, user["role"], catalog.DONATION_DETAIL)
    return catalog.event_donations(db, event, False, *_page(limit, offset))


@router.get("/analytics/events/{ref}/gifts")
async def event_gifts(ref: str, limit: int = EVENT_PAGE_DEFAULT, offset: int = 0,
                      db=Depends(get_db), user=Depends(get_optional_user)):
    event = catalog.require_visible(db, ref, user["role"], catalog.DONATION_DETAIL)
    return catalog.event_donations(db, event, True, *_page(limit, offset))


@router.get("/analytics/events/{ref}/expenses")
async def event_expenses(ref: str, limit: int = EVENT_PAGE_DEFAULT, offset: int = 0,
                         db=Depends(get_db), user=Depends(get_optional_user)):
    event = catalog.require_visible(db, ref, user["role"], catalog.EXPENSE_DETAIL)
    return catalog.event_expenses(db, event, *_page(limit, offset))


@router.get("/analytics/summary")
async def analytics_summary(db=Depends(get_db), user=Depends(members)):
    return reports.summary(db, user["role"])


@router.get("/totals")
async def totals(db=Depends(get_db), user=Depends(members)):
    return reports.totals(db)

# ============================================================
# DONATIONS
# ============================================================
@router.post("/api/donations/submit-donation", status_code=201)
@router.post("/api/donations/create", status_code=201)
async def submit_donation(
    request: Request,
    amount: Optional[str] = Form(None),
    payment_method: Optional[str] = Form(None, alias="paymentMethod"),
    category: Optional[str] = Form(None),
    donor_name: Optional[str] = Form(None, alias="donorName"),
    cash_receiver_name: Optional[str] = Form(None, alias="cashReceiverName"),
    screenshot: Optional[UploadFile] = File(None),
    db=Depends(get_db), user=Depends(members),
):
    store = get_store(request)
    stored = None
    if screenshot is not None and screenshot.filename:
        stored = store.store(await screenshot.read(), screenshot.filename, SCREENSHOT_FOLDER)
    try:
        donation = donations.submit_donation(db, user, donor_name, amount, payment_method, category,
                                             cash_receiver_name, stored)
    except Exception:
        if stored:
            discard(store, [stored.locator])
        raise
    return {"message": "Donation submitted", "donation": donation}


@router.get("/api/donations/donations")
async def my_donations(status: str = "approved", q: str = "", search: str = "",
                       db=Depends(get_db), user=Depends(members)):
    return donations.list_donations(db, user, status, q or search)


@router.get("/api/donations/all-donations")
async def all_donations(q: str = "", search: str = "", db=Depends(get_db), user=Depends(admins)):
    return donations.all_donations(db, user["role"], q or search)


@router.get("/api/donations/search")
async def search_donations(q: str = "", search: str = "", db=Depends(get_db), user=Depends(members)):
    return donations.search_donations(db, user, q or search)


@router.get("/myaccount/receipts")
async def my_receipts(db=Depends(get_db), user=Depends(members)):
    return donations.my_receipts(db, user)


@router.get("/admin/donations/pending")
async def pending_donations(db=Depends(get_db), user=Depends(admins)):
    return donations.pending_donations(db, user["role"])


@router.post("/admin/donations/{did}/approve")
async def approve_donation(did: int, db=Depends(get_db), user=Depends(admins)):
    donation = donations.approve_donation(db, did, user)
    return {"message": "Donation approved", "donation": donations.redact_donation(donation, user["role"])}


@router.post("/admin/donations/{did}/disapprove")
async def disapprove_donation(did: int, db=Depends(get_db), user=Depends(admins)):
    donation = donations.disapprove_donation(db, did)
    return {"message": "Donation set to pending", "donation": donation}


@router.post("/api/donations/approve")
async def set_donation_approval(body: DonationApproveBody, db=Depends(get_db), user=Depends(admins)):
    if body.approve:
        return await approve_donation(body.id, db, user)
    return await disapprove_donation(body.id, db, user)


@router.put("/admin/donations/{did}")
@router.put("/api/donations/{did}")
async def update_donation(did: int, body: DonationUpdate, db=Depends(get_db), user=Depends(admins)):
    donation = donations.update_donation(
        db, did, amount=body.amount, receipt_code=body.receipt_code,
        regenerate_receipt_code=body.regenerate_receipt_code,
        donor_name=body.donor_name, category=body.category,
        payment_method=body.payment_method, cash_receiver_name=body.cash_receiver_name)
    return {"message": "Donation updated", "donation": donations.redact_donation(donation, user["role"])}

# ============================================================
# EXPENSES
# ============================================================
@router.get("/api/expenses/list")
async def list_expenses(status: Optional[str] = None, category: str = "",
                        eventName: str = "", includeDisabled: str = "", mine: str = "",
                        includePendingMine: str = "", db=Depends(get_db), user=Depends(members)):
    return expenses.list_expenses(db, user, status, category or eventName,
                                  _qflag(includeDisabled), _qflag(mine) or _qflag(includePendingMine))


@router.post("/api/expenses/submit", status_code=201)
async def submit_expense(body: ExpenseSubmit, db=Depends(get_db), user=Depends(members)):
    expense = expenses.submit_expense(db, user, body.amount, body.category, body.description, body.paid_to, body.date)
    return {"message": "Expense submitted (pending)", "expense": expense}


@router.post("/api/expenses", status_code=201)
async def create_expense(body: ExpenseCreate, db=Depends(get_db), user=Depends(admins)):
    expense = expenses.create_expense(db, user, body.amount, body.category, body.description,
                                      body.paid_to, body.date, body.approve_now, body.enabled)
    return {"message": "Expense created", "expense": expense}


@router.put("/api/expenses/{eid}")
async def update_expense(eid: int, body: ExpenseUpdate, db=Depends(get_db), user=Depends(admins)):
    expense = expenses.update_expense(db, eid, amount=body.amount, date=body.date, enabled=body.enabled,
                                      category=body.category, description=body.description, paid_to=body.paid_to)
    return {"message": "Expense updated", "expense": expense}


@router.post("/api/expenses/{eid}/enable")
async def enable_expense(eid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return {"ok": True, "expense": expenses.set_expense_enabled(db, eid, body.enabled)}


@router.post("/admin/expenses/{eid}/approve")
async def approve_expense(eid: int, body: ApproveBody, db=Depends(get_db), user=Depends(admins)):
    expense = expenses.approve_expense(db, eid, user, body.approve)
    return {"message": f"Expense {'approved' if body.approve else 'set to pending'}", "expense": expense}


@router.delete("/api/expenses/{eid}")
async def delete_expense(eid: int, db=Depends(get_db), user=Depends(admins)):
    return {"message": "Expense deleted", "expense": expenses.delete_expense(db, eid)}

# ============================================================
# CATEGORIES
# ============================================================
@router.get("/api/categories")
async def list_categories(includeDisabled: str = "", db=Depends(get_db), user=Depends(get_optional_user)):
    return categories.list_categories(db, is_privileged(user["role"]) or _qflag(includeDisabled))


@router.get("/public/categories")
async def public_categories(db=Depends(get_db), user=Depends(get_optional_user)):
    return categories.list_categories(db, include_disabled=False)


@router.post("/api/categories", status_code=201)
async def create_category(body: CategoryCreate, db=Depends(get_db), user=Depends(admins)):
    return categories.create_category(db, body.name, body.enabled)


@router.put("/api/categories/{cid}")
async def update_category(cid: int, body: CategoryUpdate, db=Depends(get_db), user=Depends(admins)):
    return categories.update_category(db, cid, body.name, body.enabled)


@router.delete("/api/categories/{cid}")
async def delete_category(cid: int, db=Depends(get_db), user=Depends(admins)):
    return categories.delete_category(db, cid)

# ============================================================
# GALLERY
# ============================================================
@router.get("/gallery/folders")
async def gallery_folders(db=Depends(get_db), user=Depends(get_optional_user)):
    return gallery.list_gallery_folders(db, include_disabled=is_privileged(user["role"]))


@router.post("/gallery/folders", status_code=201)
async def gallery_create_folder(body: MediaFolderCreate, db=Depends(get_db), user=Depends(admins)):
    return gallery.create_gallery_folder(db, body.name, body.enabled)


@router.post("/gallery/folders/reorder")
async def gallery_reorder_folders(body: FolderReorder, db=Depends(get_db), user=Depends(admins)):
    return {"ok": True, "order": gallery.reorder_gallery_folders(db, body.folder_id, body.direction, body.new_index)}


@router.put("/gallery/folders/{fid}")
async def gallery_rename_folder(fid: int, body: RenameBody, db=Depends(get_db), user=Depends(admins)):
    return gallery.rename_gallery_folder(db, fid, body.name)


@router.post("/gallery/folders/{fid}/enable")
async def gallery_enable_folder(fid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return gallery.set_gallery_folder_enabled(db, fid, body.enabled)


@router.delete("/gallery/folders/{fid}")
async def gallery_delete_folder(fid: int, request: Request, db=Depends(get_db), user=Depends(admins)):
    return gallery.delete_gallery_folder(db, get_store(request), fid)


@router.get("/gallery/folders/{fid}/images")
async def gallery_images(fid: int, db=Depends(get_db), user=Depends(get_optional_user)):
    return gallery.list_images(db, fid, include_disabled=is_privileged(user["role"]))


@router.post("/gallery/folders/{fid}/images", status_code=201)
async def gallery_upload(fid: int, request: Request, files: List[UploadFile] = File(...),
                         db=Depends(get_db), user=Depends(admins)):
    payload = [(f.filename, await f.read()) for f in files]
    return gallery.add_images(db, get_store(request), fid, payload)


@router.post("/gallery/folders/{fid}/cover")
async def gallery_set_cover(fid: int, body: CoverBody, db=Depends(get_db), user=Depends(admins)):
    return gallery.set_cover(db, fid, body.image_id)


@router.get("/gallery/images")
@router.get("/gallery/home/images")
async def gallery_root_images(includeDisabled: str = "", db=Depends(get_db), user=Depends(get_optional_user)):
    return gallery.list_root_images(db, is_privileged(user["role"]) or _qflag(includeDisabled))


@router.post("/gallery/upload", status_code=201)
@router.post("/gallery/home/upload", status_code=201)
async def gallery_root_upload(request: Request, files: List[UploadFile] = File(...),
                              db=Depends(get_db), user=Depends(admins)):
    payload = [(f.filename, await f.read()) for f in files]
    return gallery.add_root_images(db, get_store(request), payload)


@router.post("/gallery/images/reorder")
async def gallery_reorder_images(body: ImageReorder, db=Depends(get_db), user=Depends(admins)):
    return {"ok": True, "order": gallery.reorder_images(db, body.image_id, body.direction, body.new_index)}


@router.put("/gallery/images/{iid}")
async def gallery_rename_image(iid: int, body: RenameBody, db=Depends(get_db), user=Depends(admins)):
    return gallery.rename_image(db, iid, body.name)


@router.post("/gallery/images/{iid}/enable")
async def gallery_enable_image(iid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return gallery.set_image_enabled(db, iid, body.enabled)


@router.delete("/gallery/images/{iid}")
async def gallery_delete_image(iid: int, request: Request, db=Depends(get_db), user=Depends(admins)):
    return gallery.delete_image(db, get_store(request), iid)

# ============================================================
# E-BOOKS
# ============================================================
@router.get("/ebooks/folders")
async def ebook_folders(includeDisabled: str = "", db=Depends(get_db), user=Depends(members)):
    return ebooks.list_folders(db, is_privileged(user["role"]) or _qflag(includeDisabled))


@router.post("/ebooks/folders", status_code=201)
async def ebook_create_folder(body: MediaFolderCreate, db=Depends(get_db), user=Depends(admins)):
    return ebooks.create_folder(db, body.name, body.enabled)


@router.post("/ebooks/folders/reorder")
async def ebook_reorder_folders(body: FolderReorder, db=Depends(get_db), user=Depends(admins)):
    return {"ok": True, "order": ebooks.reorder_folders(db, body.folder_id, body.direction, body.new_index)}


@router.put("/ebooks/folders/{fid}")
async def ebook_rename_folder(fid: int, body: RenameBody, db=Depends(get_db), user=Depends(admins)):
    return ebooks.rename_folder(db, fid, body.name)


@router.post("/ebooks/folders/{fid}/enable")
async def ebook_enable_folder(fid: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return ebooks.set_folder_enabled(db, fid, body.enabled)


@router.delete("/ebooks/folders/{fid}")
async def ebook_delete_folder(fid: int, request: Request, db=Depends(get_db), user=Depends(admins)):
    return ebooks.delete_folder(db, get_store(request), fid)


@router.get("/ebooks/files")
async def ebook_root_files(includeDisabled: str = "", db=Depends(get_db), user=Depends(members)):
    return ebooks.list_files(db, None, is_privileged(user["role"]) or _qflag(includeDisabled))


@router.get("/ebooks/folders/{fid}/files")
async def ebook_folder_files(fid: int, includeDisabled: str = "", db=Depends(get_db), user=Depends(members)):
    return ebooks.list_files(db, fid, is_privileged(user["role"]) or _qflag(includeDisabled))


@router.post("/ebooks/upload", status_code=201)
async def ebook_root_upload(request: Request, files: List[UploadFile] = File(...),
                            db=Depends(get_db), user=Depends(admins)):
    payload = [(f.filename, await f.read()) for f in files]
    return ebooks.add_files(db, get_store(request), None, payload)


@router.post("/ebooks/folders/{fid}/upload", status_code=201)
async def ebook_folder_upload(fid: int, request: Request, files: List[UploadFile] = File(...),
                              db=Depends(get_db), user=Depends(admins)):
    payload = [(f.filename, await f.read()) for f in files]
    return ebooks.add_files(db, get_store(request), fid, payload)


@router.post("/ebooks/files/reorder")
async def ebook_reorder_files(body: ImageReorder, db=Depends(get_db), user=Depends(admins)):
    return {"ok": True, "order": ebooks.reorder_files(db, body.image_id, body.direction, body.new_index)}


@router.put("/ebooks/files/{file_id}")
async def ebook_rename_file(file_id: int, body: RenameBody, db=Depends(get_db), user=Depends(admins)):
    return ebooks.rename_file(db, file_id, body.name)


@router.post("/ebooks/files/{file_id}/enable")
async def ebook_enable_file(file_id: int, body: EnableBody, db=Depends(get_db), user=Depends(admins)):
    return ebooks.set_file_enabled(db, file_id, body.enabled)


@router.delete("/ebooks/files/{file_id}")
async def ebook_delete_file(file_id: int, request: Request, db=Depends(get_db), user=Depends(admins)):
    return ebooks.delete_file(db, get_store(request), file_id)

# ============================================================
# NOTIFICATIONS
# ============================================================
@router.get("/notifications")
async def my_notifications(unread: str = "", db=Depends(get_db), user=Depends(members)):
    return notifications.list_for(db, user["username"], _qflag(unread))


@router.post("/notifications/{nid}/read")
async def read_notification(nid: int, db=Depends(get_db), user=Depends(members)):
    return notifications.mark_read(db, nid, user["username"])

# ============================================================
# UPLOADS
# ============================================================
@router.get("/uploads/{folder}/{filename}")
async def serve_upload(folder: str, filename: str, request: Request):
    """Serve a locally stored upload (screenshots, gallery images, e-books)."""
    store = get_store(request)
    if not isinstance(store, LocalObjectStore):
        raise NotFoundError("File not found")
    fp = store.resolve(folder, filename)
    return FileResponse(fp, media_type=store.media_type(fp))

# ============================================================
# APP FACTORY
# ============================================================
async def _app_error(request: Request, exc: AppError):
    content = {"detail": exc.detail}
    if isinstance(exc, ConflictError) and exc.constraint:
        content["constraint"] = exc.constraint
    return JSONResponse(content, status_code=exc.status_code)


async def _validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse({"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())}, status_code=400)


async def _unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


def create_app(db=None, object_store=None) -> FastAPI:
    """Build the API. Without arguments the database and object store come from config at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.db is None
        if owned:
            app.state.db = open_database()
            if AUTO_MIGRATE:
                migrate(app.state.db)
            seed_admin(app.state.db)
        if app.state.store is None:
            app.state.store = open_object_store()
        logger.info("Setu Ledger %s ready", VERSION)
        yield
        if owned:
            app.state.db.close()

    app = FastAPI(title="Setu Ledger", version=VERSION, lifespan=lifespan)
    app.state.db = db
    app.state.store = object_store
    app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_credentials=True,
                       allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path,
                    response.status_code, (time.perf_counter() - started) * 1000)
        return response

    app.add_exception_handler(AppError, _app_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
