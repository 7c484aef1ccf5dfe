"""
Setu Ledger - Donation & Expense Bookkeeping Backend

Architecture:
  setu/
  ├── config/         Constants, env settings, role matrix
  ├── db/             Database abstraction (SQLite / PostgreSQL), migrations
  ├── auth/           JWT, bcrypt, role guards, user store
  ├── catalog/        Analytics folders & events: ordering, slugs, visibility
  ├── donations/      Donation ledger: receipt codes, approval, redaction
  ├── expenses/       Expense ledger: submit, approve, enable
  ├── categories/     Flat category list used by the public pickers
  ├── reports/        Totals and per-category / per-event aggregation
  ├── uploads/        Object store relay (local disk or Cloudinary)
  ├── gallery/        Ordered gallery folders & images
  ├── notifications/  Per-user inbox
  ├── matching.py     Category-name association between ledger rows and events
  ├── errors.py       HTTP error taxonomy
  ├── schemas.py      Validated request bodies
  └── server.py       FastAPI routing layer

Domain modules take an explicit Database handle; the server injects it.
"""
