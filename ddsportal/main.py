import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ddsportal.api.v1 import index
from ddsportal.api.v1 import supplier
from ddsportal.api.v1 import admin_auth
from ddsportal.api.v1 import admin
from ddsportal.api.v1 import connection
from ddsportal.api.v1 import org
from ddsportal.api.v1 import customer

from ddsportal.core.config import settings
from ddsportal.core.exceptions import register_exception_handlers
from ddsportal.core.logging import setup_logging

setup_logging()

app = FastAPI(title=settings.app_name)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(supplier.router, prefix="/api/supplier", tags=["Supplier"])
app.include_router(admin_auth.router, prefix="/api/admin/auth", tags=["Admin Auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin Links"])
app.include_router(connection.router, prefix="/api/admin/v2", tags=["Connections"])
app.include_router(org.router, prefix="/api/org", tags=["Organisation"])
app.include_router(customer.router, prefix="/api/customer", tags=["Customer"])

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
